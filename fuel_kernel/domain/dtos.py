"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures returned by services and selectors: stock and
    warehouse snapshots, ledger entry records and pages, price records,
    overlap results, and volume selection results.

Architecture position:
    Kernel > Domain -- zero I/O.  ``from_model()`` class methods are boundary
    converters invoked only from services and selectors.

Invariants enforced:
    - Services and selectors return DTOs, never ORM entities.
    - OverlapResult.status is ERROR iff overlaps is non-empty.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from fuel_kernel.domain.values import MovementKind, OverlapStatus, SourceRef

if TYPE_CHECKING:
    from fuel_kernel.models.ledger_entry import LedgerEntry as LedgerEntryModel
    from fuel_kernel.models.price import PriceRecord as PriceRecordModel
    from fuel_kernel.models.warehouse import WarehouseStock as WarehouseStockModel


@dataclass(frozen=True)
class StockSnapshot:
    """Current position for one (warehouse, product) pair."""

    warehouse_id: UUID
    product: str
    balance: Decimal
    average_cost: Decimal
    entry_count: int

    @property
    def stock_value(self) -> Decimal:
        return self.balance * self.average_cost

    @classmethod
    def from_model(cls, stock: WarehouseStockModel) -> StockSnapshot:
        return cls(
            warehouse_id=stock.warehouse_id,
            product=stock.product,
            balance=Decimal(stock.balance),
            average_cost=Decimal(stock.average_cost),
            entry_count=stock.last_seq,
        )


@dataclass(frozen=True)
class WarehouseSnapshot:
    """Warehouse identity plus every tracked product position."""

    warehouse_id: UUID
    name: str
    base_ids: tuple[UUID, ...]
    positions: tuple[StockSnapshot, ...]
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def position(self, product: str) -> StockSnapshot | None:
        for pos in self.positions:
            if pos.product == product:
                return pos
        return None


@dataclass(frozen=True)
class LedgerEntryRecord:
    """
    Read-only view of one immutable ledger entry.

    ``quantity_delta`` is the delta as requested; ``effective_delta`` is
    ``balance_after - balance_before`` and differs only when an outflow was
    clamped (then ``shortfall`` is positive).
    """

    id: UUID
    warehouse_id: UUID
    product: str
    kind: MovementKind
    seq: int
    quantity_delta: Decimal
    unit_price: Decimal | None
    total_sum: Decimal | None
    balance_before: Decimal
    balance_after: Decimal
    average_cost_before: Decimal
    average_cost_after: Decimal
    shortfall: Decimal
    source: SourceRef
    reversal_of_id: UUID | None
    transaction_at: datetime
    created_at: datetime
    created_by_id: UUID

    @property
    def effective_delta(self) -> Decimal:
        return self.balance_after - self.balance_before

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @classmethod
    def from_model(cls, entry: LedgerEntryModel) -> LedgerEntryRecord:
        return cls(
            id=entry.id,
            warehouse_id=entry.warehouse_id,
            product=entry.product,
            kind=MovementKind(entry.kind),
            seq=entry.seq,
            quantity_delta=Decimal(entry.quantity_delta),
            unit_price=_opt_decimal(entry.unit_price),
            total_sum=_opt_decimal(entry.total_sum),
            balance_before=Decimal(entry.balance_before),
            balance_after=Decimal(entry.balance_after),
            average_cost_before=Decimal(entry.average_cost_before),
            average_cost_after=Decimal(entry.average_cost_after),
            shortfall=Decimal(entry.shortfall),
            source=SourceRef(kind=entry.source_kind, id=entry.source_id),
            reversal_of_id=entry.reversal_of_id,
            transaction_at=entry.transaction_at,
            created_at=entry.created_at,
            created_by_id=entry.created_by_id,
        )


@dataclass(frozen=True)
class LedgerPage:
    """One page of ledger entries, newest first."""

    entries: tuple[LedgerEntryRecord, ...]
    page: int
    per_page: int
    total: int

    @property
    def pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


@dataclass(frozen=True)
class ReversalResult:
    original_entry_id: UUID
    reversal: LedgerEntryRecord


@dataclass(frozen=True)
class TransferResult:
    outgoing: LedgerEntryRecord
    incoming: LedgerEntryRecord


@dataclass(frozen=True)
class OverlapRecord:
    """An active price record whose range intersects the candidate range."""

    id: UUID
    date_from: date
    date_to: date


@dataclass(frozen=True)
class OverlapResult:
    """
    Outcome of a price validity check.

    Any non-empty overlap set is an ERROR; there is no warning tier.
    """

    status: OverlapStatus
    overlaps: tuple[OverlapRecord, ...] = ()
    message: str = ""

    @classmethod
    def from_overlaps(cls, overlaps: list[OverlapRecord]) -> OverlapResult:
        if not overlaps:
            return cls(status=OverlapStatus.OK, message="No overlapping prices")
        ranges = ", ".join(
            f"{o.date_from.isoformat()}..{o.date_to.isoformat()}" for o in overlaps
        )
        return cls(
            status=OverlapStatus.ERROR,
            overlaps=tuple(overlaps),
            message=f"Date range overlaps {len(overlaps)} active price(s): {ranges}",
        )

    @property
    def has_overlaps(self) -> bool:
        return self.status is OverlapStatus.ERROR


@dataclass(frozen=True)
class PriceRecordInfo:
    id: UUID
    counterparty_id: UUID
    counterparty_type: str
    counterparty_role: str
    product: str
    basis_id: UUID
    date_from: date
    date_to: date
    price_values: tuple[Decimal, ...]
    volume: Decimal | None
    sold_volume: Decimal | None
    currency: str
    is_active: bool
    contract_number: str | None = None
    notes: str | None = None
    date_check_warning: str | None = None

    @classmethod
    def from_model(cls, price: PriceRecordModel) -> PriceRecordInfo:
        return cls(
            id=price.id,
            counterparty_id=price.counterparty_id,
            counterparty_type=price.counterparty_type,
            counterparty_role=price.counterparty_role,
            product=price.product,
            basis_id=price.basis_id,
            date_from=price.date_from,
            date_to=price.date_to,
            price_values=tuple(Decimal(v) for v in (price.price_values or [])),
            volume=_opt_decimal(price.volume),
            sold_volume=_opt_decimal(price.sold_volume),
            currency=price.currency,
            is_active=price.is_active,
            contract_number=price.contract_number,
            notes=price.notes,
            date_check_warning=price.date_check_warning,
        )


@dataclass(frozen=True)
class PriceWriteResult:
    """A created or updated price plus the advisory overlap check."""

    price: PriceRecordInfo
    overlap: OverlapResult


@dataclass(frozen=True)
class SelectionResult:
    """Total deal volume matching a price scope over a date range."""

    total_volume: Decimal
    deal_count: int
    date_from: date
    date_to: date
    price_id: UUID | None = None


def _opt_decimal(value) -> Decimal | None:
    return Decimal(value) if value is not None else None
