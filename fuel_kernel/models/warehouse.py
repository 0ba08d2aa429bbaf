"""
Module: fuel_kernel.models.warehouse
Responsibility: ORM persistence for warehouse accounts: the warehouse itself,
    its linked supply bases, and one stock row per tracked product holding the
    current balance and weighted-average cost.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One stock row per (warehouse_id, product) (uq_warehouse_stock_product).
    - WarehouseStock.version is the optimistic-lock column: a flush that
      updates a row whose version changed underneath raises StaleDataError.
    - Warehouses are soft-deleted (deleted_at / deleted_by_id); physical
      DELETE is blocked by db/immutability.py.

Failure modes:
    - StaleDataError on concurrent stock update (translated to
      OptimisticLockError by the ledger service).
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
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fuel_kernel.db.base import Base, TrackedBase, UUIDString


class Warehouse(TrackedBase):
    """
    A storage location holding fuel stock.

    Balances and costs live on WarehouseStock rows and are mutated only by
    InventoryLedgerService.
    """

    __tablename__ = "warehouses"

    __table_args__ = (
        UniqueConstraint("name", name="uq_warehouse_name"),
        Index("idx_warehouse_deleted", "deleted_at"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    deleted_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    stock: Mapped[list["WarehouseStock"]] = relationship(
        back_populates="warehouse",
        lazy="selectin",
        passive_deletes="all",
        order_by="WarehouseStock.product",
    )

    base_links: Mapped[list["WarehouseBaseLink"]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Warehouse {self.name}>"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class WarehouseBaseLink(Base):
    """Link between a warehouse and a supply base it serves."""

    __tablename__ = "warehouse_bases"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "base_id", name="uq_warehouse_base"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    base_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("supply_bases.id"),
        nullable=False,
    )


class WarehouseStock(Base):
    """
    Current position for one (warehouse, product) pair.

    Guarantees:
        - balance >= 0 under both negative-balance policies.
        - average_cost is rounded to 9 decimal places on every write.
        - last_seq equals the seq of the most recent ledger entry for this
          pair (0 when no entry exists).
    """

    __tablename__ = "warehouse_stock"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "product", name="uq_warehouse_stock_product"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )

    product: Mapped[str] = mapped_column(String(20), nullable=False)

    balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    average_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    last_seq: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
    )

    version: Mapped[int] = mapped_column(BigInteger, nullable=False)

    warehouse: Mapped[Warehouse] = relationship(back_populates="stock")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<WarehouseStock {self.warehouse_id}/{self.product}: "
            f"{self.balance} @ {self.average_cost}>"
        )
