"""
Module: fuel_kernel.models.price
Responsibility: ORM persistence for contractual price records valid over an
    inclusive date range for one scope (counterparty, type, role, product,
    basis).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - date_from <= date_to (enforced by PriceService).
    - Overlap between active records of one scope is detected by
      PriceService, not by a database constraint; strict mode rejects it.
    - Records are deactivated, never deleted.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from fuel_kernel.db.base import TrackedBase, UUIDString


class PriceRecord(TrackedBase):
    """
    A price valid for a scope over [date_from, date_to].

    price_values holds one or more tiered prices as decimal strings.
    sold_volume is a recomputable cache written by the volume selection.
    date_check_warning is set by price writes that detect an overlap and
    cleared when the record's own write finds none.
    """

    __tablename__ = "prices"

    __table_args__ = (
        # Query: overlap check and find-active per scope
        Index(
            "idx_price_scope",
            "counterparty_id",
            "counterparty_type",
            "counterparty_role",
            "product",
            "basis_id",
            "is_active",
        ),
        Index("idx_price_dates", "date_from", "date_to"),
    )

    counterparty_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    counterparty_type: Mapped[str] = mapped_column(String(30), nullable=False)

    counterparty_role: Mapped[str] = mapped_column(String(20), nullable=False)

    product: Mapped[str] = mapped_column(String(20), nullable=False)

    basis_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("supply_bases.id"),
        nullable=False,
    )

    date_from: Mapped[date] = mapped_column(Date, nullable=False)

    date_to: Mapped[date] = mapped_column(Date, nullable=False)

    price_values: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    volume: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    sold_volume: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="RUB")

    contract_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    # "error" while the record is known to overlap another active record of its scope
    date_check_warning: Mapped[str | None] = mapped_column(String(10), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    deleted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<PriceRecord {self.id}: {self.counterparty_type}/{self.counterparty_role} "
            f"{self.product} {self.date_from}..{self.date_to}>"
        )
