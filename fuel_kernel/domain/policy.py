"""
LedgerPolicy -- Kernel-side ledger behaviour knobs.

Built from configuration by ``fuel_config.bridges.build_ledger_policy``;
the kernel never reads configuration files itself.
"""

from __future__ import annotations

from dataclasses import dataclass

from fuel_kernel.domain.values import NegativeBalancePolicy, ProductType


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Guarantees:
        - products is non-empty.
        - lock_retry_attempts >= 1 (1 means no retry).
    """

    negative_balance_policy: NegativeBalancePolicy = NegativeBalancePolicy.CLAMP
    products: tuple[str, ...] = (ProductType.KEROSENE.value, ProductType.PVKJ.value)
    cost_decimal_places: int = 9
    strict_price_overlap: bool = False
    lock_retry_attempts: int = 3

    def __post_init__(self) -> None:
        if not self.products:
            raise ValueError("LedgerPolicy.products must not be empty")
        if self.lock_retry_attempts < 1:
            raise ValueError("LedgerPolicy.lock_retry_attempts must be >= 1")
        if not 0 <= self.cost_decimal_places <= 9:
            raise ValueError("LedgerPolicy.cost_decimal_places must be between 0 and 9")
