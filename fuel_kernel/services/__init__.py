"""Kernel services: flush-only write paths plus the transactional coordinator."""

from fuel_kernel.services.deal_service import DealService
from fuel_kernel.services.ledger_coordinator import (
    KeyedLockRegistry,
    LedgerCoordinator,
    LedgerUnitOfWork,
    build_unit_of_work,
)
from fuel_kernel.services.ledger_service import InventoryLedgerService
from fuel_kernel.services.movement_posting_service import MovementPostingService
from fuel_kernel.services.price_service import PriceService
from fuel_kernel.services.volume_selection_service import VolumeSelectionService
from fuel_kernel.services.warehouse_service import WarehouseService

__all__ = [
    "DealService",
    "InventoryLedgerService",
    "KeyedLockRegistry",
    "LedgerCoordinator",
    "LedgerUnitOfWork",
    "MovementPostingService",
    "PriceService",
    "VolumeSelectionService",
    "WarehouseService",
    "build_unit_of_work",
]
