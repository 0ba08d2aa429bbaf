"""
Config -> Kernel Bridges.

Converts ``LedgerSettings`` into kernel inputs.  Lives in fuel_config (the
producer) because the kernel must never import fuel_config.

Usage:
    from fuel_config import get_active_settings
    from fuel_config.bridges import build_ledger_policy

    policy = build_ledger_policy(get_active_settings())
"""

from __future__ import annotations

from fuel_config.schema import LedgerSettings
from fuel_kernel.domain.policy import LedgerPolicy
from fuel_kernel.domain.values import NegativeBalancePolicy


def build_ledger_policy(settings: LedgerSettings) -> LedgerPolicy:
    return LedgerPolicy(
        negative_balance_policy=NegativeBalancePolicy(settings.negative_balance_policy),
        products=settings.products,
        cost_decimal_places=settings.cost_decimal_places,
        strict_price_overlap=settings.strict_price_overlap,
        lock_retry_attempts=settings.lock_retry_attempts,
    )
