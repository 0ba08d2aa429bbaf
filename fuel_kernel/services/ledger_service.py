"""
InventoryLedgerService -- the single write path for warehouse stock.

Responsibility:
    Apply one inventory movement to one (warehouse, product) position and
    append the matching immutable LedgerEntry, or append a reversal entry
    for a previously applied movement.

Architecture position:
    Kernel > Services -- imperative shell around fuel_engines.costing.
    Locks and reads the stock row, calls the pure engine, enforces the
    negative-balance policy, writes the stock row and the entry in one
    flush, and logs.

Invariants enforced:
    - Atomicity: the stock update and the entry insert share one flush in
      the caller's transaction; the service never commits.
    - Serialization: the stock row is read with SELECT ... FOR UPDATE and
      written under its optimistic version column.  A stale version or a
      duplicate (warehouse, product, seq) raises OptimisticLockError.
    - History is append-only: reversals are new ADJUSTMENT entries linked
      by reversal_of_id, at most one per original.
    - Validation happens before any write: unknown warehouse, unknown
      product, zero or wrongly-signed delta, negative prices.

Failure modes:
    - WarehouseNotFoundError, UnknownProductError, InvalidMovementError,
      InvalidQuantityError on bad input.
    - InsufficientBalanceError under the REJECT policy.
    - LedgerEntryNotFoundError, EntryAlreadyReversedError,
      ReversalOfReversalError on reversal.
    - OptimisticLockError on a concurrent writer (the coordinator retries).

Audit relevance:
    Every applied movement logs ``movement_applied``; every clamped outflow
    logs ``insufficient_balance_clamped`` at WARNING with the computed
    negative balance; every reversal logs ``entry_reversed``.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from fuel_engines.costing import (
    MovementOutcome,
    StockPosition,
    apply_movement,
    incoming_value_of,
    reverse_movement,
)
from fuel_kernel.db.types import round_quantity, to_decimal
from fuel_kernel.domain.clock import Clock, SystemClock
from fuel_kernel.domain.dtos import LedgerEntryRecord, ReversalResult
from fuel_kernel.domain.policy import LedgerPolicy
from fuel_kernel.domain.values import (
    MovementKind,
    NegativeBalancePolicy,
    SourceRef,
    as_enum,
)
from fuel_kernel.exceptions import (
    EntryAlreadyReversedError,
    InsufficientBalanceError,
    InvalidMovementError,
    InvalidQuantityError,
    LedgerEntryNotFoundError,
    OptimisticLockError,
    ReversalOfReversalError,
    UnknownProductError,
    WarehouseNotFoundError,
)
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.ledger_entry import LedgerEntry
from fuel_kernel.models.warehouse import Warehouse, WarehouseStock
from fuel_kernel.services.base import BaseService

logger = get_logger("services.ledger")

ZERO = Decimal("0")


class InventoryLedgerService(BaseService[LedgerEntry]):
    """
    Applies movements and reversals to warehouse stock.

    Usage:
        service = InventoryLedgerService(session, clock, policy)
        entry = service.apply_movement(
            warehouse_id=wh_id,
            product="kerosene",
            kind=MovementKind.RECEIPT,
            quantity_delta=Decimal("1000"),
            unit_price=Decimal("50"),
            source_ref=SourceRef(SourceKind.MOVEMENT, movement_id),
            actor_id=actor_id,
        )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy or LedgerPolicy()

    @property
    def policy(self) -> LedgerPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def apply_movement(
        self,
        *,
        warehouse_id: UUID,
        product: str,
        kind: MovementKind | str,
        quantity_delta: Decimal | int | str,
        source_ref: SourceRef,
        actor_id: UUID,
        unit_price: Decimal | int | str | None = None,
        total_sum: Decimal | int | str | None = None,
        transaction_at: datetime | None = None,
    ) -> LedgerEntryRecord:
        """
        Apply one movement and append its ledger entry.

        Args:
            warehouse_id: Target warehouse.
            product: Tracked product (one of the policy's products).
            kind: Movement kind; the delta sign must match it.
            quantity_delta: Signed quantity in kg.
            source_ref: Deal or movement that caused this entry.
            actor_id: Who is recording the movement.
            unit_price: Price per kg; re-weights cost on receipts and
                transfers-in.
            total_sum: Total incoming value; wins over unit_price.
            transaction_at: Business timestamp; defaults to the clock.

        Returns:
            The appended entry.
        """
        kind = as_enum(MovementKind, kind, "kind")
        delta = round_quantity(to_decimal(quantity_delta, "quantity_delta"))
        price = self._optional_amount(unit_price, "unit_price")
        total = self._optional_amount(total_sum, "total_sum")
        self._validate_movement(kind, delta)
        self._require_product(product)
        self._require_warehouse(warehouse_id)

        stock = self._lock_stock(warehouse_id, product)
        position = self._position(stock)

        outcome = apply_movement(
            position=position,
            kind=kind,
            quantity_delta=delta,
            unit_price=price,
            total_sum=total,
            cost_decimal_places=self._policy.cost_decimal_places,
        )
        self._enforce_balance_policy(warehouse_id, product, kind, outcome)

        entry = self._append(
            stock=stock,
            kind=kind,
            outcome=outcome,
            source_ref=source_ref,
            actor_id=actor_id,
            transaction_at=transaction_at,
        )

        logger.info(
            "movement_applied",
            extra={
                "warehouse_id": str(warehouse_id),
                "product": product,
                "kind": kind.value,
                "seq": entry.seq,
                "quantity_delta": str(delta),
                "balance_before": str(outcome.before.balance),
                "balance_after": str(outcome.after.balance),
                "average_cost_before": str(outcome.before.average_cost),
                "average_cost_after": str(outcome.after.average_cost),
                "source_ref": str(source_ref),
            },
        )
        return entry

    def reverse_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        transaction_at: datetime | None = None,
    ) -> ReversalResult:
        """
        Append an ADJUSTMENT entry that undoes ``entry_id``.

        The reversal carries the original's source reference and points at
        it through reversal_of_id.  The original entry is left untouched.
        """
        original = self.session.get(LedgerEntry, entry_id)
        if original is None:
            raise LedgerEntryNotFoundError(str(entry_id))
        if original.reversal_of_id is not None:
            raise ReversalOfReversalError(str(entry_id))

        existing = self.session.execute(
            select(LedgerEntry.id).where(LedgerEntry.reversal_of_id == entry_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise EntryAlreadyReversedError(str(entry_id), str(existing))

        self._require_warehouse(original.warehouse_id)
        record = LedgerEntryRecord.from_model(original)

        stock = self._lock_stock(original.warehouse_id, original.product)
        position = self._position(stock)

        original_before = StockPosition(record.balance_before, record.average_cost_before)
        outcome = reverse_movement(
            position=position,
            original_before=original_before,
            original_after=StockPosition(record.balance_after, record.average_cost_after),
            incoming_value=incoming_value_of(record, self._policy.cost_decimal_places),
            cost_decimal_places=self._policy.cost_decimal_places,
        )
        self._enforce_balance_policy(
            original.warehouse_id, original.product, MovementKind.ADJUSTMENT, outcome
        )

        reversal = self._append(
            stock=stock,
            kind=MovementKind.ADJUSTMENT,
            outcome=outcome,
            source_ref=record.source,
            actor_id=actor_id,
            transaction_at=transaction_at,
            reversal_of_id=original.id,
        )

        logger.info(
            "entry_reversed",
            extra={
                "entry_id": str(entry_id),
                "reversal_id": str(reversal.id),
                "warehouse_id": str(original.warehouse_id),
                "product": original.product,
                "quantity_delta": str(outcome.requested_delta),
                "balance_after": str(outcome.after.balance),
                "average_cost_after": str(outcome.after.average_cost),
                "restored_exactly": outcome.after == original_before,
            },
        )
        return ReversalResult(original_entry_id=original.id, reversal=reversal)

    def lock_positions(self, keys: Iterable[tuple[UUID, str]]) -> None:
        """
        Lock several stock rows in a deterministic order.

        Used before multi-position operations (transfers) so that two
        opposite transfers cannot deadlock on row locks.
        """
        for warehouse_id, product in sorted(set(keys), key=lambda k: (str(k[0]), k[1])):
            self._require_product(product)
            self._require_warehouse(warehouse_id)
            self._lock_stock(warehouse_id, product)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _optional_amount(self, value, field: str) -> Decimal | None:
        if value is None:
            return None
        amount = round_quantity(to_decimal(value, field))
        if amount < ZERO:
            raise InvalidQuantityError(field, value)
        return amount

    def _validate_movement(self, kind: MovementKind, delta: Decimal) -> None:
        if delta == ZERO:
            raise InvalidMovementError(kind.value, delta, "quantity delta must be non-zero")
        if kind.is_inflow and delta < ZERO:
            raise InvalidMovementError(kind.value, delta, "inflow requires a positive delta")
        if kind.is_outflow and delta > ZERO:
            raise InvalidMovementError(kind.value, delta, "outflow requires a negative delta")

    def _require_product(self, product: str) -> None:
        if product not in self._policy.products:
            raise UnknownProductError(product, self._policy.products)

    def _require_warehouse(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None or warehouse.is_deleted:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse

    def _lock_stock(self, warehouse_id: UUID, product: str) -> WarehouseStock:
        """
        Read the stock row FOR UPDATE, creating it on first use.

        populate_existing overwrites a row already in the identity map
        (loaded unlocked through Warehouse.stock) with the locked values.
        """
        stock = self.session.execute(
            select(WarehouseStock)
            .where(
                WarehouseStock.warehouse_id == warehouse_id,
                WarehouseStock.product == product,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if stock is None:
            stock = WarehouseStock(
                warehouse_id=warehouse_id,
                product=product,
                balance=ZERO,
                average_cost=ZERO,
                last_seq=0,
            )
            self.session.add(stock)
            self._flush(warehouse_id, product)
        return stock

    @staticmethod
    def _position(stock: WarehouseStock) -> StockPosition:
        return StockPosition(
            balance=Decimal(stock.balance),
            average_cost=Decimal(stock.average_cost),
        )

    def _enforce_balance_policy(
        self,
        warehouse_id: UUID,
        product: str,
        kind: MovementKind,
        outcome: MovementOutcome,
    ) -> None:
        if not outcome.clamped:
            return

        requested = -outcome.requested_delta
        if self._policy.negative_balance_policy is NegativeBalancePolicy.REJECT:
            logger.warning(
                "insufficient_balance_rejected",
                extra={
                    "warehouse_id": str(warehouse_id),
                    "product": product,
                    "kind": kind.value,
                    "available": str(outcome.before.balance),
                    "requested": str(requested),
                },
            )
            raise InsufficientBalanceError(
                warehouse_id=str(warehouse_id),
                product=product,
                available=outcome.before.balance,
                requested=requested,
            )

        logger.warning(
            "insufficient_balance_clamped",
            extra={
                "warehouse_id": str(warehouse_id),
                "product": product,
                "kind": kind.value,
                "available": str(outcome.before.balance),
                "requested": str(requested),
                "computed_balance": str(-outcome.shortfall),
                "shortfall": str(outcome.shortfall),
            },
        )

    def _append(
        self,
        *,
        stock: WarehouseStock,
        kind: MovementKind,
        outcome: MovementOutcome,
        source_ref: SourceRef,
        actor_id: UUID,
        transaction_at: datetime | None,
        reversal_of_id: UUID | None = None,
    ) -> LedgerEntryRecord:
        now = self._clock.now()
        seq = stock.last_seq + 1

        entry = LedgerEntry(
            warehouse_id=stock.warehouse_id,
            product=stock.product,
            kind=kind.value,
            seq=seq,
            quantity_delta=outcome.requested_delta,
            unit_price=outcome.unit_price,
            total_sum=outcome.total_sum,
            balance_before=outcome.before.balance,
            balance_after=outcome.after.balance,
            average_cost_before=outcome.before.average_cost,
            average_cost_after=outcome.after.average_cost,
            shortfall=outcome.shortfall,
            source_kind=source_ref.kind.value,
            source_id=source_ref.id,
            reversal_of_id=reversal_of_id,
            transaction_at=transaction_at or now,
            created_at=now,
            created_by_id=actor_id,
        )

        stock.balance = outcome.after.balance
        stock.average_cost = outcome.after.average_cost
        stock.last_seq = seq
        self.session.add(entry)
        self._flush(stock.warehouse_id, stock.product)

        return LedgerEntryRecord.from_model(entry)

    def _flush(self, warehouse_id: UUID, product: str) -> None:
        try:
            self.session.flush()
        except (StaleDataError, IntegrityError) as exc:
            logger.warning(
                "stock_write_conflict",
                extra={
                    "warehouse_id": str(warehouse_id),
                    "product": product,
                    "error": type(exc).__name__,
                },
            )
            raise OptimisticLockError(
                "WarehouseStock", f"{warehouse_id}/{product}"
            ) from exc

