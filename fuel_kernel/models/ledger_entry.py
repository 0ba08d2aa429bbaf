"""
Module: fuel_kernel.models.ledger_entry
Responsibility: ORM persistence for inventory ledger entries, the append-only
    record of every movement applied to a (warehouse, product) position.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are blocked by ORM listeners
      (db/immutability.py) and PostgreSQL triggers (db/triggers.py).
    - (warehouse_id, product, seq) is unique: seq is the application order
      used by replay, and no two writers can claim the same slot.
    - reversal_of_id is unique: an entry is reversed at most once.

Audit relevance:
    Replaying entries in seq order from (0, 0) reproduces the stored
    WarehouseStock position.  Each entry carries its before/after snapshot so
    the history can be audited without replay.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from fuel_kernel.db.base import Base, UUIDString


class LedgerEntry(Base):
    """One immutable inventory movement with its before/after snapshot."""

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "product", "seq", name="uq_ledger_entry_seq"),
        UniqueConstraint("reversal_of_id", name="uq_ledger_entry_reversal"),
        # Query: newest-first listing per warehouse
        Index("idx_ledger_entry_listing", "warehouse_id", "transaction_at", "seq"),
        # Query: entries for a deal or movement
        Index("idx_ledger_entry_source", "source_kind", "source_id"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    product: Mapped[str] = mapped_column(String(20), nullable=False)

    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # As requested by the caller; see balance_after - balance_before for the
    # delta actually applied
    quantity_delta: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    total_sum: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    balance_before: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    balance_after: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    average_cost_before: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False
    )

    average_cost_after: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False
    )

    # Amount an outflow exceeded the available balance by (clamp policy)
    shortfall: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    source_kind: Mapped[str] = mapped_column(String(30), nullable=False)

    source_id: Mapped[str] = mapped_column(String(100), nullable=False)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_entries.id"),
        nullable=True,
    )

    transaction_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.warehouse_id}/{self.product}#{self.seq} "
            f"{self.kind} {self.quantity_delta}>"
        )
