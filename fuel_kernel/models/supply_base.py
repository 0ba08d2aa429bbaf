"""
Module: fuel_kernel.models.supply_base
Responsibility: ORM persistence for supply bases (delivery locations).
    Prices and deals reference a base by id; the name is display only.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fuel_kernel.db.base import TrackedBase


class SupplyBase(TrackedBase):
    """A named delivery or supply location (airport fuel farm, rail terminal)."""

    __tablename__ = "supply_bases"

    __table_args__ = (
        UniqueConstraint("name", name="uq_supply_base_name"),
        Index("idx_supply_base_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Free-form classification from the directory (e.g. "wholesale", "refueling")
    base_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<SupplyBase {self.name}>"
