"""
Module: fuel_kernel.models.deal
Responsibility: ORM persistence for deals (wholesale, refueling, refueling
    abroad) in one table discriminated by deal_type.  Deals are the
    collaborator records that movement posting and volume selection read.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - quantity_kg > 0 (enforced by the service that records the deal).
    - Deals are soft-deleted; deleted deals are excluded from volume sums.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from fuel_kernel.db.base import TrackedBase, UUIDString


class DealRecord(TrackedBase):
    """
    A fuel deal between a supplier and a buyer at a basis.

    When warehouse_id is set the deal draws fuel from that warehouse and is
    posted to its ledger.
    """

    __tablename__ = "deals"

    __table_args__ = (
        # Query: volume selection, supplier side
        Index("idx_deal_supplier", "deal_type", "supplier_id", "basis_id", "deal_date"),
        # Query: volume selection, buyer side
        Index("idx_deal_buyer", "deal_type", "buyer_id", "basis_id", "deal_date"),
    )

    deal_type: Mapped[str] = mapped_column(String(30), nullable=False)

    supplier_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    buyer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    basis_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("supply_bases.id"),
        nullable=False,
    )

    product: Mapped[str] = mapped_column(String(20), nullable=False)

    quantity_kg: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    deal_date: Mapped[date] = mapped_column(Date, nullable=False)

    warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=True,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    deleted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<DealRecord {self.deal_type} {self.id}: {self.quantity_kg}kg "
            f"{self.product} on {self.deal_date}>"
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
