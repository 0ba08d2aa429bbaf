"""
fuel_engines.overlap -- Inclusive date-range intersection for price validity.

Responsibility:
    Validate price date ranges and decide which existing ranges intersect a
    candidate range.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Called by PriceService after PriceSelector has narrowed the candidates
    to active records of the same scope.

Invariants enforced:
    - Ranges are inclusive on both ends and date_from <= date_to.
    - Two ranges overlap iff a.date_from <= b.date_to and a.date_to >= b.date_from.
      Adjacent ranges (Jan 31 / Feb 1) do not overlap.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from fuel_kernel.domain.dtos import OverlapRecord
from fuel_kernel.exceptions import InvalidDateRangeError
from fuel_engines.tracer import traced_engine


@dataclass(frozen=True)
class DateRange:
    """Inclusive [date_from, date_to] range."""

    date_from: date
    date_to: date

    def __post_init__(self) -> None:
        if self.date_from > self.date_to:
            raise InvalidDateRangeError(self.date_from, self.date_to)

    def overlaps(self, other: DateRange) -> bool:
        return self.date_from <= other.date_to and self.date_to >= other.date_from

    def contains(self, day: date) -> bool:
        return self.date_from <= day <= self.date_to

    @property
    def days(self) -> int:
        return (self.date_to - self.date_from).days + 1


@traced_engine("price_overlap", "1.0", fingerprint_fields=("candidate", "exclude_id"))
def detect_overlaps(
    *,
    candidate: DateRange,
    existing: Iterable[tuple[UUID, DateRange]],
    exclude_id: UUID | None = None,
) -> list[OverlapRecord]:
    """
    Return the existing ranges that intersect ``candidate``.

    ``exclude_id`` drops the record being edited so it is not reported as
    overlapping itself.  Results are ordered by date_from, then id.
    """
    found = [
        OverlapRecord(id=record_id, date_from=rng.date_from, date_to=rng.date_to)
        for record_id, rng in existing
        if record_id != exclude_id and candidate.overlaps(rng)
    ]
    found.sort(key=lambda o: (o.date_from, str(o.id)))
    return found
