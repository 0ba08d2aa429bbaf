"""
Settings Loader (``fuel_config.loader``).

Responsibility
--------------
Loads the YAML settings file and parses it into ``fuel_config.schema``
dataclasses.  The public runtime entry point is
``fuel_config.get_active_settings()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from fuel_config.schema import ApiSettings, LedgerSettings

_POLICIES = ("clamp", "reject")
_PRODUCTS = ("kerosene", "pvkj")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed settings for change detection."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_api(data: dict[str, Any]) -> ApiSettings:
    settings = ApiSettings(
        default_page_size=int(data.get("default_page_size", 50)),
        max_page_size=int(data.get("max_page_size", 500)),
    )
    if settings.default_page_size < 1 or settings.max_page_size < settings.default_page_size:
        raise ValueError(
            "api.default_page_size must be >= 1 and <= api.max_page_size, got "
            f"{settings.default_page_size}/{settings.max_page_size}"
        )
    return settings


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse a ``LedgerSettings`` from a dict.

    Raises:
        KeyError: if ``name`` or ``version`` is missing.
        ValueError: on unknown policy or product names, or bad numbers.
    """
    ledger = data.get("ledger", {})

    policy = ledger.get("negative_balance_policy", "clamp")
    if policy not in _POLICIES:
        raise ValueError(
            f"ledger.negative_balance_policy must be one of {_POLICIES}, got {policy!r}"
        )

    products = tuple(ledger.get("products", _PRODUCTS))
    unknown = [p for p in products if p not in _PRODUCTS]
    if not products or unknown:
        raise ValueError(f"ledger.products must be a non-empty subset of {_PRODUCTS}")

    places = int(ledger.get("cost_decimal_places", 9))
    if not 0 <= places <= 9:
        raise ValueError(f"ledger.cost_decimal_places must be 0..9, got {places}")

    retries = int(ledger.get("lock_retry_attempts", 3))
    if retries < 1:
        raise ValueError(f"ledger.lock_retry_attempts must be >= 1, got {retries}")

    pricing = data.get("pricing", {})

    return LedgerSettings(
        name=data["name"],
        version=int(data["version"]),
        negative_balance_policy=policy,
        products=products,
        cost_decimal_places=places,
        strict_price_overlap=bool(pricing.get("strict_overlap", False)),
        lock_retry_attempts=retries,
        default_currency=str(pricing.get("default_currency", "RUB")),
        api=parse_api(data.get("api", {})),
        checksum=compute_checksum(data),
    )
