"""
fuel_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  YAML loading is internal tooling.

Architecture position:
    Configuration -- sits above ``fuel_kernel``.  The kernel MUST NEVER
    import from ``fuel_config``; ``fuel_config.bridges`` translates settings
    into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- a value is out of range or unknown.

Audit relevance:
    Every successful ``get_active_settings()`` call emits a
    ``FUEL_CONFIG_TRACE`` log record with the settings name, version and
    checksum, tying ledger behaviour to a known settings file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fuel_config.loader import load_yaml_file, parse_settings
from fuel_config.schema import ApiSettings, LedgerSettings
from fuel_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "ApiSettings",
    "LedgerSettings",
    "get_active_settings",
    "load_settings_from_dict",
]


def get_active_settings(config_path: Path | str | None = None) -> LedgerSettings:
    """
    The ONLY public settings entrypoint.

    Args:
        config_path: Override path to a settings YAML file.  Defaults to
            fuel_config/sets/default.yaml.
    """
    path = Path(config_path) if config_path else _DEFAULT_SETTINGS_FILE
    settings = parse_settings(load_yaml_file(path))

    _logger.info(
        "FUEL_CONFIG_TRACE",
        extra={
            "trace_type": "FUEL_CONFIG_TRACE",
            "settings_name": settings.name,
            "settings_version": settings.version,
            "checksum": settings.checksum,
            "negative_balance_policy": settings.negative_balance_policy,
            "strict_price_overlap": settings.strict_price_overlap,
        },
    )
    return settings


def load_settings_from_dict(data: dict[str, Any]) -> LedgerSettings:
    """Parse settings from an in-memory dict (tests, overrides)."""
    return parse_settings(data)
