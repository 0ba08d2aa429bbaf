"""
Service layer for warehouses and supply bases.

Creates warehouses with one zeroed stock row per tracked product, links
them to supply bases, and soft-deletes them.  Balances are never written
here; only InventoryLedgerService moves stock.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fuel_kernel.domain.clock import Clock, SystemClock
from fuel_kernel.domain.dtos import StockSnapshot, WarehouseSnapshot
from fuel_kernel.domain.policy import LedgerPolicy
from fuel_kernel.exceptions import InvalidFieldValueError, WarehouseNotFoundError
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.supply_base import SupplyBase
from fuel_kernel.models.warehouse import Warehouse, WarehouseBaseLink, WarehouseStock
from fuel_kernel.services.base import BaseService

logger = get_logger("services.warehouse")


class WarehouseService(BaseService[Warehouse]):
    """
    Directory operations for warehouses.

    Returns WarehouseSnapshot DTOs, never ORM entities.
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

    def _get_live(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None or warehouse.is_deleted:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse

    def _to_dto(self, warehouse: Warehouse) -> WarehouseSnapshot:
        stock_rows = self.session.execute(
            select(WarehouseStock)
            .where(WarehouseStock.warehouse_id == warehouse.id)
            .order_by(WarehouseStock.product)
        ).scalars().all()
        links = self.session.execute(
            select(WarehouseBaseLink.base_id).where(
                WarehouseBaseLink.warehouse_id == warehouse.id
            )
        ).scalars().all()
        return WarehouseSnapshot(
            warehouse_id=warehouse.id,
            name=warehouse.name,
            base_ids=tuple(sorted(links, key=str)),
            positions=tuple(StockSnapshot.from_model(s) for s in stock_rows),
            deleted_at=warehouse.deleted_at,
        )

    def create_supply_base(
        self,
        name: str,
        actor_id: UUID,
        base_type: str | None = None,
    ) -> UUID:
        """Register a supply base and return its id."""
        if not name or not name.strip():
            raise InvalidFieldValueError("name", name)
        base = SupplyBase(
            name=name.strip(),
            base_type=base_type,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(base)
        self.session.flush()

        logger.info(
            "supply_base_created",
            extra={"base_id": str(base.id), "base_name": base.name},
        )
        return base.id

    def create_warehouse(
        self,
        name: str,
        actor_id: UUID,
        base_ids: tuple[UUID, ...] | list[UUID] = (),
    ) -> WarehouseSnapshot:
        """
        Create a warehouse with zero balance and zero cost for every
        configured product.

        Args:
            name: Unique warehouse name.
            actor_id: Who is creating the warehouse.
            base_ids: Supply bases this warehouse serves.

        Returns:
            WarehouseSnapshot with one zeroed position per product.
        """
        if not name or not name.strip():
            raise InvalidFieldValueError("name", name)
        base_ids = list(dict.fromkeys(base_ids))
        for base_id in base_ids:
            self._require_supply_base(base_id)

        warehouse = Warehouse(name=name.strip(), created_by_id=actor_id)
        self.session.add(warehouse)
        self.session.flush()

        for product in self._policy.products:
            self.session.add(
                WarehouseStock(
                    warehouse_id=warehouse.id,
                    product=product,
                    balance=Decimal("0"),
                    average_cost=Decimal("0"),
                    last_seq=0,
                )
            )
        for base_id in base_ids:
            self.session.add(WarehouseBaseLink(warehouse_id=warehouse.id, base_id=base_id))
        self.session.flush()

        logger.info(
            "warehouse_created",
            extra={
                "warehouse_id": str(warehouse.id),
                "warehouse_name": warehouse.name,
                "products": list(self._policy.products),
                "base_count": len(base_ids),
            },
        )
        return self._to_dto(warehouse)

    def link_base(self, warehouse_id: UUID, base_id: UUID) -> WarehouseSnapshot:
        """Link a supply base to a warehouse; linking twice is a no-op."""
        warehouse = self._get_live(warehouse_id)
        self._require_supply_base(base_id)
        existing = self.session.execute(
            select(WarehouseBaseLink).where(
                WarehouseBaseLink.warehouse_id == warehouse_id,
                WarehouseBaseLink.base_id == base_id,
            )
        ).scalar_one_or_none()
        if existing is None:
            self.session.add(WarehouseBaseLink(warehouse_id=warehouse_id, base_id=base_id))
            self.session.flush()
            logger.info(
                "warehouse_base_linked",
                extra={"warehouse_id": str(warehouse_id), "base_id": str(base_id)},
            )
        return self._to_dto(warehouse)

    def soft_delete_warehouse(self, warehouse_id: UUID, actor_id: UUID) -> WarehouseSnapshot:
        """
        Mark a warehouse deleted.

        Its ledger history and stock rows remain readable; new movements
        and reversals against it are rejected.
        """
        warehouse = self._get_live(warehouse_id)
        now: datetime = self._clock.now()
        warehouse.deleted_at = now
        warehouse.deleted_by_id = actor_id
        warehouse.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "warehouse_soft_deleted",
            extra={"warehouse_id": str(warehouse_id)},
        )
        return self._to_dto(warehouse)
