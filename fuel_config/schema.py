"""
Ledger settings schema.

Frozen dataclasses the YAML settings file is parsed into.  These are the
human-authored knobs; ``fuel_config.bridges`` turns them into the kernel's
``LedgerPolicy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ApiSettings:
    """Pagination limits for the HTTP layer."""

    default_page_size: int = 50
    max_page_size: int = 500


@dataclass(frozen=True)
class LedgerSettings:
    """
    Parsed settings file.

    negative_balance_policy is "clamp" (outflows floor the balance at zero
    and record a shortfall) or "reject" (outflows exceeding the balance
    fail).
    """

    name: str
    version: int
    negative_balance_policy: str = "clamp"
    products: tuple[str, ...] = ("kerosene", "pvkj")
    cost_decimal_places: int = 9
    strict_price_overlap: bool = False
    lock_retry_attempts: int = 3
    default_currency: str = "RUB"
    api: ApiSettings = field(default_factory=ApiSettings)
    checksum: str = ""
