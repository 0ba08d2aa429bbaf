"""Read-only query classes returning DTOs."""

from fuel_kernel.selectors.deal_selector import DealSelector
from fuel_kernel.selectors.ledger_selector import LedgerSelector, PositionCheck
from fuel_kernel.selectors.price_selector import PriceSelector

__all__ = ["DealSelector", "LedgerSelector", "PositionCheck", "PriceSelector"]
