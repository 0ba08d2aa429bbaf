"""
Module: fuel_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by the
    fuel kernel services and selectors.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import fuel_kernel domain values, DTOs and exceptions.
    MUST NOT import fuel_kernel services, selectors, models or fuel_api.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic for quantities and costs.
    - Determinism: identical inputs always produce identical outputs, which
      is what makes ledger replay meaningful.
"""

from fuel_engines.costing import (
    MovementOutcome,
    ReplayResult,
    StockPosition,
    apply_movement,
    incoming_value_of,
    replay,
    reverse_movement,
)
from fuel_engines.overlap import DateRange, detect_overlaps

__all__ = [
    "DateRange",
    "MovementOutcome",
    "ReplayResult",
    "StockPosition",
    "apply_movement",
    "detect_overlaps",
    "incoming_value_of",
    "replay",
    "reverse_movement",
]
