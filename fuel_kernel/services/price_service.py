"""
PriceService -- price records and their validity-period checks.

Responsibility:
    Create, update and deactivate price records, and decide whether a
    candidate [date_from, date_to] range for a scope overlaps an active
    record of the same scope.

Architecture position:
    Kernel > Services.  Narrows candidates through PriceSelector, decides
    overlap through fuel_engines.overlap.detect_overlaps.

Invariants enforced:
    - Overlap is computed only against active records of the exact scope
      (counterparty id, type, role, product, basis id).
    - The record being edited is excluded from its own check.
    - Lenient mode (default): writes go through and the overlap result is
      returned alongside the record.  Strict mode: any overlap raises
      PriceOverlapError and nothing is written.
    - Records are deactivated, never deleted.
    - A lenient write that detects overlaps sets date_check_warning to
      "error" on the written record and on every record it collided with;
      a write that finds none clears the written record's flag.

Failure modes:
    - InvalidDateRangeError, MissingScopeFieldError, InvalidFieldValueError,
      InvalidQuantityError, InvalidCurrencyError on bad input.
    - PriceRecordNotFoundError on unknown id.
    - PriceOverlapError in strict mode.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from fuel_engines.overlap import DateRange, detect_overlaps
from fuel_kernel.db.types import DEFAULT_CURRENCY, round_quantity, to_decimal, validate_currency
from fuel_kernel.domain.clock import Clock, SystemClock
from fuel_kernel.domain.dtos import OverlapResult, PriceRecordInfo, PriceWriteResult
from fuel_kernel.domain.policy import LedgerPolicy
from fuel_kernel.domain.values import OverlapStatus, PriceScope
from fuel_kernel.exceptions import (
    InvalidFieldValueError,
    InvalidQuantityError,
    PriceOverlapError,
    PriceRecordNotFoundError,
    UnknownProductError,
)
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.price import PriceRecord
from fuel_kernel.selectors.price_selector import PriceSelector
from fuel_kernel.services.base import BaseService

logger = get_logger("services.price")


def _warning_for(overlap: OverlapResult) -> str | None:
    return OverlapStatus.ERROR.value if overlap.has_overlaps else None


_SCOPE_FIELDS = (
    "counterparty_id",
    "counterparty_type",
    "counterparty_role",
    "product",
    "basis_id",
)
_UPDATABLE_FIELDS = frozenset(
    _SCOPE_FIELDS
    + (
        "date_from",
        "date_to",
        "price_values",
        "volume",
        "currency",
        "contract_number",
        "notes",
    )
)


class PriceService(BaseService[PriceRecord]):
    """
    Usage:
        service = PriceService(session, clock, policy)
        result = service.check_overlap(scope, date(2024, 1, 15), date(2024, 2, 15))
        if result.has_overlaps:
            ...
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy or LedgerPolicy()
        self._selector = PriceSelector(session)

    # ------------------------------------------------------------------
    # Overlap check
    # ------------------------------------------------------------------

    def check_overlap(
        self,
        scope: PriceScope,
        date_from: date,
        date_to: date,
        exclude_id: UUID | None = None,
    ) -> OverlapResult:
        """
        Report active records of ``scope`` whose range intersects the
        candidate range.

        Raises:
            InvalidDateRangeError: If date_from is after date_to.
        """
        candidate = DateRange(date_from=date_from, date_to=date_to)
        existing = self._selector.active_ranges_intersecting(
            scope, candidate.date_from, candidate.date_to
        )
        overlaps = detect_overlaps(
            candidate=candidate,
            existing=existing,
            exclude_id=exclude_id,
        )
        result = OverlapResult.from_overlaps(overlaps)

        if result.has_overlaps:
            logger.warning(
                "price_overlap_detected",
                extra={
                    "counterparty_id": str(scope.counterparty_id),
                    "counterparty_type": scope.counterparty_type.value,
                    "counterparty_role": scope.counterparty_role.value,
                    "product": scope.product.value,
                    "basis_id": str(scope.basis_id),
                    "date_from": date_from.isoformat(),
                    "date_to": date_to.isoformat(),
                    "conflicting_ids": [str(o.id) for o in overlaps],
                },
            )
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_price(
        self,
        *,
        scope: PriceScope,
        date_from: date,
        date_to: date,
        price_values: Sequence[Decimal | int | str],
        actor_id: UUID,
        volume: Decimal | int | str | None = None,
        currency: str = DEFAULT_CURRENCY,
        contract_number: str | None = None,
        notes: str | None = None,
        strict: bool | None = None,
    ) -> PriceWriteResult:
        """
        Create a price record for ``scope`` valid over [date_from, date_to].

        Args:
            scope: Counterparty, type, role, product and basis.
            date_from: First valid day, inclusive.
            date_to: Last valid day, inclusive.
            price_values: One or more positive prices.
            actor_id: Who is creating the record.
            volume: Contracted volume in kg, if any.
            currency: Three-letter currency code.
            strict: Reject overlaps; defaults to the ledger policy.

        Returns:
            The new record and the overlap check computed before the write.
        """
        self._require_product(scope)
        self._require_supply_base(scope.basis_id)
        values = self._price_values(price_values)
        volume_value = self._volume(volume)
        currency = validate_currency(currency)

        overlap = self._check_or_reject(scope, date_from, date_to, None, strict)

        price = PriceRecord(
            counterparty_id=scope.counterparty_id,
            counterparty_type=scope.counterparty_type.value,
            counterparty_role=scope.counterparty_role.value,
            product=scope.product.value,
            basis_id=scope.basis_id,
            date_from=date_from,
            date_to=date_to,
            price_values=values,
            volume=volume_value,
            currency=currency,
            contract_number=contract_number,
            notes=notes,
            is_active=True,
            date_check_warning=_warning_for(overlap),
            created_by_id=actor_id,
        )
        self.session.add(price)
        self._flag_conflicts(overlap)
        self.session.flush()

        logger.info(
            "price_created",
            extra={
                "price_id": str(price.id),
                "date_from": date_from.isoformat(),
                "date_to": date_to.isoformat(),
                "overlap_status": overlap.status.value,
            },
        )
        return PriceWriteResult(price=PriceRecordInfo.from_model(price), overlap=overlap)

    def update_price(
        self,
        price_id: UUID,
        actor_id: UUID,
        strict: bool | None = None,
        **changes,
    ) -> PriceWriteResult:
        """
        Change fields of an existing record.

        The overlap check runs on the resulting scope and range with this
        record excluded.
        """
        price = self._get(price_id)

        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise InvalidFieldValueError(field, changes[field])

        scope = PriceScope.from_values(
            **{f: changes.get(f, getattr(price, f)) for f in _SCOPE_FIELDS}
        )
        self._require_product(scope)
        self._require_supply_base(scope.basis_id)
        date_from = changes.get("date_from", price.date_from)
        date_to = changes.get("date_to", price.date_to)

        updates: dict = {}
        if "price_values" in changes:
            updates["price_values"] = self._price_values(changes["price_values"])
        if "volume" in changes:
            updates["volume"] = self._volume(changes["volume"])
        if "currency" in changes:
            updates["currency"] = validate_currency(changes["currency"])
        for field in ("contract_number", "notes"):
            if field in changes:
                updates[field] = changes[field]

        overlap = (
            self._check_or_reject(scope, date_from, date_to, price.id, strict)
            if price.is_active
            else OverlapResult.from_overlaps([])
        )

        price.counterparty_id = scope.counterparty_id
        price.counterparty_type = scope.counterparty_type.value
        price.counterparty_role = scope.counterparty_role.value
        price.product = scope.product.value
        price.basis_id = scope.basis_id
        price.date_from = date_from
        price.date_to = date_to
        for field, value in updates.items():
            setattr(price, field, value)
        price.updated_by_id = actor_id
        price.date_check_warning = _warning_for(overlap)
        self._flag_conflicts(overlap)
        self.session.flush()

        logger.info(
            "price_updated",
            extra={
                "price_id": str(price.id),
                "fields": sorted(changes),
                "overlap_status": overlap.status.value,
            },
        )
        return PriceWriteResult(price=PriceRecordInfo.from_model(price), overlap=overlap)

    def deactivate_price(self, price_id: UUID, actor_id: UUID) -> PriceRecordInfo:
        """Mark a record inactive; it stops competing in overlap checks."""
        price = self._get(price_id)
        if price.is_active:
            price.is_active = False
            price.deleted_at = self._clock.now()
            price.deleted_by_id = actor_id
            price.updated_by_id = actor_id
            self.session.flush()
            logger.info("price_deactivated", extra={"price_id": str(price.id)})
        return PriceRecordInfo.from_model(price)

    def set_sold_volume(self, price_id: UUID, sold_volume: Decimal, actor_id: UUID | None) -> None:
        """Write the cached sold volume computed by the volume selection."""
        price = self._get(price_id)
        price.sold_volume = sold_volume
        if actor_id is not None:
            price.updated_by_id = actor_id
        self.session.flush()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_price(self, price_id: UUID) -> PriceRecordInfo:
        return PriceRecordInfo.from_model(self._get(price_id))

    def find_active_prices(self, scope: PriceScope, on_date: date) -> list[PriceRecordInfo]:
        """Active records of ``scope`` valid on ``on_date``."""
        return self._selector.find_active(scope, on_date)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, price_id: UUID) -> PriceRecord:
        price = self.session.get(PriceRecord, price_id)
        if price is None:
            raise PriceRecordNotFoundError(str(price_id))
        return price

    def _check_or_reject(
        self,
        scope: PriceScope,
        date_from: date,
        date_to: date,
        exclude_id: UUID | None,
        strict: bool | None,
    ) -> OverlapResult:
        result = self.check_overlap(scope, date_from, date_to, exclude_id=exclude_id)
        if strict is None:
            strict = self._policy.strict_price_overlap
        if strict and result.has_overlaps:
            raise PriceOverlapError(list(result.overlaps))
        return result

    def _flag_conflicts(self, overlap: OverlapResult) -> None:
        """Mark the active records a write collided with."""
        for conflict in overlap.overlaps:
            other = self.session.get(PriceRecord, conflict.id)
            if other is not None:
                other.date_check_warning = OverlapStatus.ERROR.value

    def _require_product(self, scope: PriceScope) -> None:
        if scope.product.value not in self._policy.products:
            raise UnknownProductError(scope.product.value, self._policy.products)

    @staticmethod
    def _price_values(values) -> list[str]:
        if isinstance(values, (str, bytes)) or not values:
            raise InvalidQuantityError("price_values", values)
        result = []
        for raw in values:
            value = round_quantity(to_decimal(raw, "price_values"))
            if value <= 0:
                raise InvalidQuantityError("price_values", raw)
            result.append(str(value))
        return result

    @staticmethod
    def _volume(value) -> Decimal | None:
        if value is None:
            return None
        volume = round_quantity(to_decimal(value, "volume"))
        if volume < 0:
            raise InvalidQuantityError("volume", value)
        return volume
