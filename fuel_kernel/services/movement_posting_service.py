"""
MovementPostingService -- turns business events into ledger entries.

Responsibility:
    Translate deals, receipts and inter-warehouse transfers into calls to
    InventoryLedgerService, and undo them by reversal when the originating
    record is revised or cancelled.

Architecture position:
    Kernel > Services.  Orchestrates InventoryLedgerService and
    LedgerSelector inside the caller's transaction.

Invariants enforced:
    - Every entry carries a SourceRef to the deal or movement behind it.
    - Revising a source reverses its still-active entries first, then posts
      the new state; cancelling only reverses.  History is never deleted.
    - A transfer locks both positions in sorted order before posting, then
      writes TRANSFER_OUT at the source and TRANSFER_IN at the destination
      for the full requested quantity.
    - The incoming value of a transfer is the quantity at the source's
      average cost before the transfer, plus any delivery cost.
"""

from __future__ import annotations

from datetime import UTC, datetime, time
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from fuel_kernel.db.types import round_cost, round_quantity, to_decimal
from fuel_kernel.domain.dtos import LedgerEntryRecord, ReversalResult, TransferResult
from fuel_kernel.domain.values import DealType, MovementKind, SourceKind, SourceRef
from fuel_kernel.exceptions import (
    DealNotFoundError,
    InvalidMovementError,
    InvalidQuantityError,
)
from fuel_kernel.logging_config import LogContext, get_logger
from fuel_kernel.models.deal import DealRecord
from fuel_kernel.models.ledger_entry import LedgerEntry
from fuel_kernel.selectors.ledger_selector import LedgerSelector
from fuel_kernel.services.base import BaseService
from fuel_kernel.services.ledger_service import InventoryLedgerService

logger = get_logger("services.movement_posting")

ZERO = Decimal("0")


def deal_source(deal: DealRecord) -> SourceRef:
    return SourceRef(DealType(deal.deal_type).source_kind, str(deal.id))


class MovementPostingService(BaseService[LedgerEntry]):
    """
    Usage:
        posting = MovementPostingService(session, ledger_service)
        posting.record_receipt(wh_id, "kerosene", Decimal("1000"), actor_id,
                               unit_price=Decimal("50"))
        posting.record_transfer(wh_a, wh_b, "kerosene", Decimal("200"), actor_id)
    """

    def __init__(self, session: Session, ledger: InventoryLedgerService):
        super().__init__(session)
        self._ledger = ledger
        self._selector = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Deals
    # ------------------------------------------------------------------

    def record_deal(self, deal_id: UUID, actor_id: UUID) -> LedgerEntryRecord | None:
        """
        Post the outflow for a deal drawn from a warehouse.

        Wholesale deals post SALE, refueling deals post CONSUMPTION.  Deals
        without a warehouse post nothing and return None.
        """
        deal = self._live_deal(deal_id)
        if deal.warehouse_id is None:
            logger.debug("deal_without_warehouse", extra={"deal_id": str(deal.id)})
            return None

        deal_type = DealType(deal.deal_type)
        source = deal_source(deal)
        with LogContext.bind(source_ref=str(source), warehouse_id=str(deal.warehouse_id)):
            entry = self._ledger.apply_movement(
                warehouse_id=deal.warehouse_id,
                product=deal.product,
                kind=deal_type.movement_kind,
                quantity_delta=-Decimal(deal.quantity_kg),
                unit_price=deal.unit_price,
                source_ref=source,
                actor_id=actor_id,
                transaction_at=_business_time(deal.deal_date),
            )
            logger.info(
                "deal_posted",
                extra={
                    "deal_id": str(deal.id),
                    "deal_type": deal_type.value,
                    "entry_id": str(entry.id),
                },
            )
        return entry

    def revise_deal(
        self, deal_id: UUID, actor_id: UUID
    ) -> tuple[list[ReversalResult], LedgerEntryRecord | None]:
        """Reverse what the deal previously posted, then post its current state."""
        deal = self._live_deal(deal_id)
        reversals = self.reverse_source(deal_source(deal), actor_id)
        return reversals, self.record_deal(deal_id, actor_id)

    def cancel_deal(self, deal_id: UUID, actor_id: UUID) -> list[ReversalResult]:
        """Reverse everything the deal posted.  The deal itself may already be deleted."""
        deal = self.session.get(DealRecord, deal_id)
        if deal is None:
            raise DealNotFoundError(str(deal_id))
        return self.reverse_source(deal_source(deal), actor_id)

    # ------------------------------------------------------------------
    # Receipts and transfers
    # ------------------------------------------------------------------

    def record_receipt(
        self,
        warehouse_id: UUID,
        product: str,
        quantity: Decimal | int | str,
        actor_id: UUID,
        unit_price: Decimal | int | str | None = None,
        total_sum: Decimal | int | str | None = None,
        delivery_cost: Decimal | int | str | None = None,
        source_ref: SourceRef | None = None,
        transaction_at: datetime | None = None,
    ) -> LedgerEntryRecord:
        """
        Post a supplier receipt.

        Delivery cost is folded into the incoming value, so it raises the
        average cost of the received fuel.
        """
        quantity = self._positive(quantity, "quantity")
        if delivery_cost is not None:
            delivery = self._non_negative(delivery_cost, "delivery_cost")
            if total_sum is None and unit_price is not None:
                total_sum = quantity * to_decimal(unit_price, "unit_price")
            if total_sum is not None:
                total_sum = round_cost(to_decimal(total_sum, "total_sum") + delivery)

        source = source_ref or SourceRef(SourceKind.MOVEMENT, str(uuid4()))
        return self._ledger.apply_movement(
            warehouse_id=warehouse_id,
            product=product,
            kind=MovementKind.RECEIPT,
            quantity_delta=quantity,
            unit_price=unit_price,
            total_sum=total_sum,
            source_ref=source,
            actor_id=actor_id,
            transaction_at=transaction_at,
        )

    def record_transfer(
        self,
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        product: str,
        quantity: Decimal | int | str,
        actor_id: UUID,
        delivery_cost: Decimal | int | str = ZERO,
        movement_id: UUID | str | None = None,
        transaction_at: datetime | None = None,
    ) -> TransferResult:
        """
        Move fuel between two warehouses.

        Raises:
            InvalidMovementError: If source and destination are the same.
        """
        quantity = self._positive(quantity, "quantity")
        delivery = self._non_negative(delivery_cost, "delivery_cost")
        if from_warehouse_id == to_warehouse_id:
            raise InvalidMovementError(
                MovementKind.TRANSFER_OUT.value,
                -quantity,
                "source and destination warehouse are the same",
            )

        source = SourceRef(SourceKind.MOVEMENT, str(movement_id or uuid4()))
        self._ledger.lock_positions(
            [(from_warehouse_id, product), (to_warehouse_id, product)]
        )

        with LogContext.bind(source_ref=str(source)):
            outgoing = self._ledger.apply_movement(
                warehouse_id=from_warehouse_id,
                product=product,
                kind=MovementKind.TRANSFER_OUT,
                quantity_delta=-quantity,
                source_ref=source,
                actor_id=actor_id,
                transaction_at=transaction_at,
            )
            incoming_value = round_cost(quantity * outgoing.average_cost_before + delivery)
            incoming = self._ledger.apply_movement(
                warehouse_id=to_warehouse_id,
                product=product,
                kind=MovementKind.TRANSFER_IN,
                quantity_delta=quantity,
                total_sum=incoming_value if incoming_value > ZERO else None,
                source_ref=source,
                actor_id=actor_id,
                transaction_at=transaction_at,
            )
            logger.info(
                "transfer_posted",
                extra={
                    "from_warehouse_id": str(from_warehouse_id),
                    "to_warehouse_id": str(to_warehouse_id),
                    "product": product,
                    "quantity": str(quantity),
                    "incoming_value": str(incoming_value),
                    "shortfall": str(outgoing.shortfall),
                },
            )
        return TransferResult(outgoing=outgoing, incoming=incoming)

    # ------------------------------------------------------------------
    # Reversal by source
    # ------------------------------------------------------------------

    def reverse_source(self, source_ref: SourceRef, actor_id: UUID) -> list[ReversalResult]:
        """Reverse every still-active entry of a source, newest first."""
        active = self._selector.active_entries_for_source(source_ref)
        results = [
            self._ledger.reverse_entry(entry.id, actor_id)
            for entry in reversed(active)
        ]
        if results:
            logger.info(
                "source_reversed",
                extra={"source_ref": str(source_ref), "entries_reversed": len(results)},
            )
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _live_deal(self, deal_id: UUID) -> DealRecord:
        deal = self.session.get(DealRecord, deal_id)
        if deal is None or deal.is_deleted:
            raise DealNotFoundError(str(deal_id))
        return deal

    @staticmethod
    def _positive(value, field: str) -> Decimal:
        amount = round_quantity(to_decimal(value, field))
        if amount <= ZERO:
            raise InvalidQuantityError(field, value)
        return amount

    @staticmethod
    def _non_negative(value, field: str) -> Decimal:
        amount = round_quantity(to_decimal(value, field))
        if amount < ZERO:
            raise InvalidQuantityError(field, value)
        return amount


def _business_time(day) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)
