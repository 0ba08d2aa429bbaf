"""ORM models for the fuel kernel."""

from fuel_kernel.models.deal import DealRecord
from fuel_kernel.models.ledger_entry import LedgerEntry
from fuel_kernel.models.price import PriceRecord
from fuel_kernel.models.supply_base import SupplyBase
from fuel_kernel.models.warehouse import Warehouse, WarehouseBaseLink, WarehouseStock

__all__ = [
    "DealRecord",
    "LedgerEntry",
    "PriceRecord",
    "SupplyBase",
    "Warehouse",
    "WarehouseBaseLink",
    "WarehouseStock",
]
