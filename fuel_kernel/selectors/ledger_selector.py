"""
LedgerSelector -- read path for warehouse positions and ledger history.

Responsibility:
    Warehouse snapshots, newest-first paginated entry listings, entries for
    a source record, and replay verification of stored positions.

Architecture position:
    Kernel > Selectors.  Read-only; returns DTOs.  Uses fuel_engines.costing
    for replay.

Invariants enforced:
    - Listing order is newest first: transaction_at DESC, created_at DESC,
      seq DESC.
    - Replay order is seq ASC per (warehouse, product), the order in which
      entries were applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select

from fuel_engines.costing import ReplayResult, StockPosition, replay
from fuel_kernel.domain.dtos import (
    LedgerEntryRecord,
    LedgerPage,
    StockSnapshot,
    WarehouseSnapshot,
)
from fuel_kernel.domain.values import SourceRef
from fuel_kernel.exceptions import WarehouseNotFoundError
from fuel_kernel.models.ledger_entry import LedgerEntry
from fuel_kernel.models.warehouse import Warehouse, WarehouseStock
from fuel_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PositionCheck:
    """Stored position compared with the position rebuilt by replay."""

    warehouse_id: UUID
    product: str
    stored: StockPosition
    replayed: ReplayResult

    @property
    def matches(self) -> bool:
        return self.replayed.consistent and self.replayed.position == self.stored


class LedgerSelector(BaseSelector[LedgerEntry]):
    """Queries over warehouses, stock rows and ledger entries."""

    def get_entry(self, entry_id: UUID) -> LedgerEntryRecord | None:
        entry = self.session.get(LedgerEntry, entry_id)
        return LedgerEntryRecord.from_model(entry) if entry else None

    def get_stock(self, warehouse_id: UUID, product: str) -> StockSnapshot | None:
        stock = self.session.execute(
            select(WarehouseStock).where(
                WarehouseStock.warehouse_id == warehouse_id,
                WarehouseStock.product == product,
            )
        ).scalar_one_or_none()
        return StockSnapshot.from_model(stock) if stock else None

    def get_warehouse_snapshot(
        self,
        warehouse_id: UUID,
        include_deleted: bool = False,
    ) -> WarehouseSnapshot:
        """
        Current balance and average cost per product.

        Raises:
            WarehouseNotFoundError: If the warehouse does not exist, or is
                soft-deleted and ``include_deleted`` is False.
        """
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None or (warehouse.is_deleted and not include_deleted):
            raise WarehouseNotFoundError(str(warehouse_id))

        stock_rows = self.session.execute(
            select(WarehouseStock)
            .where(WarehouseStock.warehouse_id == warehouse_id)
            .order_by(WarehouseStock.product)
        ).scalars().all()

        return WarehouseSnapshot(
            warehouse_id=warehouse.id,
            name=warehouse.name,
            base_ids=tuple(sorted((link.base_id for link in warehouse.base_links), key=str)),
            positions=tuple(StockSnapshot.from_model(s) for s in stock_rows),
            deleted_at=warehouse.deleted_at,
        )

    def list_entries(
        self,
        warehouse_id: UUID,
        product: str | None = None,
        page: int = 1,
        per_page: int = 50,
    ) -> LedgerPage:
        """Ledger entries for a warehouse, newest first, one page at a time."""
        page = max(page, 1)
        per_page = max(per_page, 1)

        filters = [LedgerEntry.warehouse_id == warehouse_id]
        if product is not None:
            filters.append(LedgerEntry.product == product)

        total = self.session.execute(
            select(func.count()).select_from(LedgerEntry).where(*filters)
        ).scalar_one()

        rows = self.session.execute(
            select(LedgerEntry)
            .where(*filters)
            .order_by(
                LedgerEntry.transaction_at.desc(),
                LedgerEntry.created_at.desc(),
                LedgerEntry.seq.desc(),
            )
            .limit(per_page)
            .offset((page - 1) * per_page)
        ).scalars().all()

        return LedgerPage(
            entries=tuple(LedgerEntryRecord.from_model(e) for e in rows),
            page=page,
            per_page=per_page,
            total=total,
        )

    def entries_in_order(self, warehouse_id: UUID, product: str) -> list[LedgerEntryRecord]:
        """All entries for one position in application (seq) order."""
        rows = self.session.execute(
            select(LedgerEntry)
            .where(
                LedgerEntry.warehouse_id == warehouse_id,
                LedgerEntry.product == product,
            )
            .order_by(LedgerEntry.seq)
        ).scalars().all()
        return [LedgerEntryRecord.from_model(e) for e in rows]

    def entries_for_source(self, source: SourceRef) -> list[LedgerEntryRecord]:
        """Entries produced by one deal or movement, oldest first."""
        rows = self.session.execute(
            select(LedgerEntry)
            .where(
                LedgerEntry.source_kind == source.kind.value,
                LedgerEntry.source_id == source.id,
            )
            .order_by(LedgerEntry.created_at, LedgerEntry.seq)
        ).scalars().all()
        return [LedgerEntryRecord.from_model(e) for e in rows]

    def active_entries_for_source(self, source: SourceRef) -> list[LedgerEntryRecord]:
        """
        Entries for a source that still count: not reversals themselves and
        not yet reversed.
        """
        entries = self.entries_for_source(source)
        reversed_ids = {e.reversal_of_id for e in entries if e.reversal_of_id is not None}
        return [
            e for e in entries
            if e.reversal_of_id is None and e.id not in reversed_ids
        ]

    def reversal_of(self, entry_id: UUID) -> LedgerEntryRecord | None:
        """The entry that reverses ``entry_id``, if any."""
        entry = self.session.execute(
            select(LedgerEntry).where(LedgerEntry.reversal_of_id == entry_id)
        ).scalar_one_or_none()
        return LedgerEntryRecord.from_model(entry) if entry else None

    def replay_position(
        self,
        warehouse_id: UUID,
        product: str,
        cost_decimal_places: int = 9,
    ) -> ReplayResult:
        return replay(
            self.entries_in_order(warehouse_id, product),
            cost_decimal_places=cost_decimal_places,
        )

    def verify_position(
        self,
        warehouse_id: UUID,
        product: str,
        cost_decimal_places: int = 9,
    ) -> PositionCheck:
        stock = self.get_stock(warehouse_id, product)
        stored = (
            StockPosition(balance=stock.balance, average_cost=stock.average_cost)
            if stock
            else StockPosition.zero()
        )
        return PositionCheck(
            warehouse_id=warehouse_id,
            product=product,
            stored=stored,
            replayed=self.replay_position(warehouse_id, product, cost_decimal_places),
        )

    def verify_all(self, cost_decimal_places: int = 9) -> list[PositionCheck]:
        """Replay every stored position, including soft-deleted warehouses."""
        keys = self.session.execute(
            select(WarehouseStock.warehouse_id, WarehouseStock.product).order_by(
                WarehouseStock.warehouse_id, WarehouseStock.product
            )
        ).all()
        return [
            self.verify_position(warehouse_id, product, cost_decimal_places)
            for warehouse_id, product in keys
        ]

