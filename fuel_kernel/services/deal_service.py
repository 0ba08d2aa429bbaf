"""
DealService -- record keeping for wholesale and refueling deals.

Deals are the records that volume selection aggregates and that movement
posting turns into warehouse outflows.  This service owns their creation,
revision and soft deletion; it never touches stock.  Posting the matching
ledger entries is MovementPostingService's job, and the coordinator runs
both in one transaction.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from fuel_kernel.db.types import round_quantity, to_decimal
from fuel_kernel.domain.clock import Clock, SystemClock
from fuel_kernel.domain.policy import LedgerPolicy
from fuel_kernel.domain.values import DealType, as_enum, as_uuid
from fuel_kernel.exceptions import (
    DealNotFoundError,
    InvalidFieldValueError,
    InvalidQuantityError,
    UnknownProductError,
    WarehouseNotFoundError,
)
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.deal import DealRecord
from fuel_kernel.models.warehouse import Warehouse
from fuel_kernel.services.base import BaseService

logger = get_logger("services.deal")

_UPDATABLE_FIELDS = frozenset(
    {
        "supplier_id",
        "buyer_id",
        "basis_id",
        "product",
        "quantity_kg",
        "unit_price",
        "deal_date",
        "warehouse_id",
    }
)


class DealService(BaseService[DealRecord]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy or LedgerPolicy()

    def get_live(self, deal_id: UUID) -> DealRecord:
        """
        Raises:
            DealNotFoundError: If the deal does not exist or was deleted.
        """
        deal = self.session.get(DealRecord, deal_id)
        if deal is None or deal.is_deleted:
            raise DealNotFoundError(str(deal_id))
        return deal

    def create_deal(
        self,
        *,
        deal_type: DealType | str,
        supplier_id: UUID,
        buyer_id: UUID,
        basis_id: UUID,
        product: str,
        quantity_kg: Decimal | int | str,
        deal_date: date,
        actor_id: UUID,
        unit_price: Decimal | int | str | None = None,
        warehouse_id: UUID | None = None,
    ) -> DealRecord:
        """
        Record a new deal.

        Args:
            deal_type: Wholesale, refueling or refueling abroad.
            supplier_id: Supplying counterparty.
            buyer_id: Buying counterparty.
            basis_id: Supply base of delivery.
            product: Tracked product.
            quantity_kg: Positive quantity in kg.
            deal_date: Business date of the deal.
            actor_id: Who is recording the deal.
            unit_price: Agreed price per kg, if known.
            warehouse_id: Warehouse the fuel is drawn from, if any.

        Returns:
            The flushed DealRecord.
        """
        deal = DealRecord(
            deal_type=as_enum(DealType, deal_type, "deal_type").value,
            supplier_id=as_uuid(supplier_id, "supplier_id"),
            buyer_id=as_uuid(buyer_id, "buyer_id"),
            basis_id=self._basis(basis_id),
            product=self._product(product),
            quantity_kg=self._quantity(quantity_kg),
            unit_price=self._price(unit_price),
            deal_date=deal_date,
            warehouse_id=self._warehouse(warehouse_id),
            created_by_id=actor_id,
        )
        self.session.add(deal)
        self.session.flush()

        logger.info(
            "deal_created",
            extra={
                "deal_id": str(deal.id),
                "deal_type": deal.deal_type,
                "product": deal.product,
                "quantity_kg": str(deal.quantity_kg),
                "deal_date": deal.deal_date.isoformat(),
                "warehouse_id": str(deal.warehouse_id) if deal.warehouse_id else None,
            },
        )
        return deal

    def update_deal(self, deal_id: UUID, actor_id: UUID, **changes) -> DealRecord:
        """Apply field changes to a live deal.  deal_type cannot change."""
        deal = self.get_live(deal_id)

        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise InvalidFieldValueError(field, changes[field])

        for field, value in changes.items():
            if field in ("supplier_id", "buyer_id"):
                value = as_uuid(value, field)
            elif field == "basis_id":
                value = self._basis(value)
            elif field == "product":
                value = self._product(value)
            elif field == "quantity_kg":
                value = self._quantity(value)
            elif field == "unit_price":
                value = self._price(value)
            elif field == "warehouse_id":
                value = self._warehouse(value)
            setattr(deal, field, value)

        deal.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "deal_updated",
            extra={"deal_id": str(deal.id), "fields": sorted(changes)},
        )
        return deal

    def delete_deal(self, deal_id: UUID, actor_id: UUID) -> DealRecord:
        """Soft-delete a deal; it drops out of volume sums."""
        deal = self.get_live(deal_id)
        deal.deleted_at = self._clock.now()
        deal.deleted_by_id = actor_id
        deal.updated_by_id = actor_id
        self.session.flush()

        logger.info("deal_deleted", extra={"deal_id": str(deal.id)})
        return deal

    def _product(self, product: str) -> str:
        if product not in self._policy.products:
            raise UnknownProductError(product, self._policy.products)
        return product

    def _basis(self, basis_id) -> UUID:
        basis_id = as_uuid(basis_id, "basis_id")
        self._require_supply_base(basis_id)
        return basis_id

    @staticmethod
    def _quantity(value) -> Decimal:
        quantity = round_quantity(to_decimal(value, "quantity_kg"))
        if quantity <= 0:
            raise InvalidQuantityError("quantity_kg", value)
        return quantity

    @staticmethod
    def _price(value) -> Decimal | None:
        if value is None:
            return None
        price = round_quantity(to_decimal(value, "unit_price"))
        if price < 0:
            raise InvalidQuantityError("unit_price", value)
        return price

    def _warehouse(self, warehouse_id) -> UUID | None:
        if warehouse_id is None:
            return None
        warehouse_id = as_uuid(warehouse_id, "warehouse_id")
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None or warehouse.is_deleted:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse_id
