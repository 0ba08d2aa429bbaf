"""
Tests for PriceService: validity-range overlap detection and price writes.

Overlap is inclusive on both ends and scoped to the exact
(counterparty, type, role, product, basis) tuple; only active records
compete.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from fuel_kernel.domain.values import CounterpartyRole, OverlapStatus, ProductType
from fuel_kernel.exceptions import (
    InvalidCurrencyError,
    InvalidDateRangeError,
    InvalidFieldValueError,
    InvalidQuantityError,
    PriceOverlapError,
    PriceRecordNotFoundError,
    SupplyBaseNotFoundError,
)
from fuel_kernel.selectors.price_selector import PriceSelector
from fuel_kernel.services.price_service import PriceService


@pytest.fixture
def create(price_service, price_scope, test_actor_id):
    """create(date_from, date_to, scope=price_scope, **kwargs) -> PriceWriteResult"""

    def _create(date_from, date_to, scope=None, **kwargs):
        kwargs.setdefault("price_values", [Decimal("61.5")])
        return price_service.create_price(
            scope=scope or price_scope,
            date_from=date_from,
            date_to=date_to,
            actor_id=test_actor_id,
            **kwargs,
        )

    return _create


class TestCheckOverlap:
    def test_no_existing_prices(self, price_service, price_scope):
        result = price_service.check_overlap(price_scope, date(2024, 1, 1), date(2024, 1, 31))
        assert result.status is OverlapStatus.OK
        assert result.overlaps == ()

    def test_intersecting_range_reported(self, price_service, price_scope, create):
        january = create(date(2024, 1, 1), date(2024, 1, 31)).price

        result = price_service.check_overlap(price_scope, date(2024, 1, 15), date(2024, 2, 15))

        assert result.status is OverlapStatus.ERROR
        assert [o.id for o in result.overlaps] == [january.id]
        assert result.overlaps[0].date_from == date(2024, 1, 1)
        assert result.overlaps[0].date_to == date(2024, 1, 31)
        assert "2024-01-01..2024-01-31" in result.message

    @pytest.mark.parametrize(
        "date_from, date_to, expected",
        [
            (date(2024, 1, 31), date(2024, 2, 15), True),
            (date(2023, 12, 1), date(2024, 1, 1), True),
            (date(2024, 2, 1), date(2024, 2, 28), False),
            (date(2023, 12, 1), date(2023, 12, 31), False),
        ],
    )
    def test_bounds_are_inclusive(self, price_service, price_scope, create, date_from, date_to, expected):
        create(date(2024, 1, 1), date(2024, 1, 31))
        result = price_service.check_overlap(price_scope, date_from, date_to)
        assert result.has_overlaps is expected

    def test_single_day_range(self, price_service, price_scope, create):
        create(date(2024, 3, 10), date(2024, 3, 10))
        assert price_service.check_overlap(price_scope, date(2024, 3, 10), date(2024, 3, 10)).has_overlaps

    def test_other_scope_does_not_compete(self, price_service, price_scope, create):
        create(date(2024, 1, 1), date(2024, 1, 31))

        buyer_side = replace(price_scope, counterparty_role=CounterpartyRole.BUYER)
        other_product = replace(price_scope, product=ProductType.PVKJ)
        other_counterparty = replace(price_scope, counterparty_id=uuid4())

        for scope in (buyer_side, other_product, other_counterparty):
            result = price_service.check_overlap(scope, date(2024, 1, 1), date(2024, 1, 31))
            assert result.status is OverlapStatus.OK

    def test_inactive_records_ignored(self, price_service, price_scope, create, test_actor_id):
        january = create(date(2024, 1, 1), date(2024, 1, 31)).price
        price_service.deactivate_price(january.id, test_actor_id)

        result = price_service.check_overlap(price_scope, date(2024, 1, 10), date(2024, 1, 20))
        assert not result.has_overlaps

    def test_exclude_id(self, price_service, price_scope, create):
        january = create(date(2024, 1, 1), date(2024, 1, 31)).price
        result = price_service.check_overlap(
            price_scope, date(2024, 1, 1), date(2024, 1, 31), exclude_id=january.id
        )
        assert not result.has_overlaps

    def test_several_overlaps_ordered_by_start(self, price_service, price_scope, create):
        feb = create(date(2024, 2, 1), date(2024, 2, 29)).price
        jan = create(date(2024, 1, 1), date(2024, 1, 31)).price

        result = price_service.check_overlap(price_scope, date(2024, 1, 20), date(2024, 2, 10))
        assert [o.id for o in result.overlaps] == [jan.id, feb.id]

    def test_inverted_range_rejected(self, price_service, price_scope):
        with pytest.raises(InvalidDateRangeError):
            price_service.check_overlap(price_scope, date(2024, 2, 1), date(2024, 1, 1))

    def test_overlap_logged_as_warning(self, price_service, price_scope, create, captured_logs):
        january = create(date(2024, 1, 1), date(2024, 1, 31)).price
        price_service.check_overlap(price_scope, date(2024, 1, 5), date(2024, 1, 6))

        records = [r for r in captured_logs() if r["message"] == "price_overlap_detected"]
        assert records[-1]["level"] == "WARNING"
        assert records[-1]["conflicting_ids"] == [str(january.id)]


class TestCreatePrice:
    def test_fields_stored(self, create, price_scope):
        result = create(
            date(2024, 1, 1),
            date(2024, 1, 31),
            price_values=["61.5", "62"],
            volume="120000",
            currency="USD",
            contract_number="K-17",
        )
        price = result.price
        assert price.counterparty_id == price_scope.counterparty_id
        assert price.counterparty_role == "supplier"
        assert price.price_values == (Decimal("61.5"), Decimal("62"))
        assert price.volume == Decimal("120000")
        assert price.sold_volume is None
        assert price.currency == "USD"
        assert price.contract_number == "K-17"
        assert price.is_active
        assert price.date_check_warning is None
        assert result.overlap.status is OverlapStatus.OK

    def test_lenient_mode_saves_overlapping_price(self, create, price_service, price_scope):
        first = create(date(2024, 1, 1), date(2024, 1, 31)).price
        second = create(date(2024, 1, 20), date(2024, 2, 20))

        assert second.overlap.status is OverlapStatus.ERROR
        assert [o.id for o in second.overlap.overlaps] == [first.id]
        assert price_service.get_price(second.price.id).is_active

    def test_strict_mode_rejects_overlap(self, create, session, price_scope):
        first = create(date(2024, 1, 1), date(2024, 1, 31)).price

        with pytest.raises(PriceOverlapError) as exc_info:
            create(date(2024, 1, 20), date(2024, 2, 20), strict=True)

        assert exc_info.value.conflicting_ids == [str(first.id)]
        remaining = PriceSelector(session).find_active(price_scope, date(2024, 1, 25))
        assert [p.id for p in remaining] == [first.id]

    def test_strict_policy_default(self, session, deterministic_clock, ledger_policy, price_scope, test_actor_id):
        strict = PriceService(session, deterministic_clock, replace(ledger_policy, strict_price_overlap=True))
        strict.create_price(
            scope=price_scope,
            date_from=date(2024, 1, 1),
            date_to=date(2024, 1, 31),
            price_values=[Decimal("60")],
            actor_id=test_actor_id,
        )
        with pytest.raises(PriceOverlapError):
            strict.create_price(
                scope=price_scope,
                date_from=date(2024, 1, 31),
                date_to=date(2024, 2, 1),
                price_values=[Decimal("60")],
                actor_id=test_actor_id,
            )

    @pytest.mark.parametrize("values", [[], ["0"], ["-1"], ["abc"]])
    def test_price_values_must_be_positive(self, create, values):
        with pytest.raises(InvalidQuantityError):
            create(date(2024, 1, 1), date(2024, 1, 31), price_values=values)

    def test_currency_validated(self, create):
        with pytest.raises(InvalidCurrencyError):
            create(date(2024, 1, 1), date(2024, 1, 31), currency="rubles")

    def test_inverted_range_rejected(self, create):
        with pytest.raises(InvalidDateRangeError):
            create(date(2024, 2, 1), date(2024, 1, 1))

    def test_unknown_basis_rejected(self, create, session, price_scope):
        elsewhere = replace(price_scope, basis_id=uuid4())
        with pytest.raises(SupplyBaseNotFoundError) as exc_info:
            create(date(2024, 1, 1), date(2024, 1, 31), scope=elsewhere)

        assert exc_info.value.base_id == str(elsewhere.basis_id)
        assert PriceSelector(session).find_active(elsewhere, date(2024, 1, 15)) == []


class TestUpdatePrice:
    def test_record_does_not_overlap_itself(self, create, price_service, test_actor_id):
        january = create(date(2024, 1, 1), date(2024, 1, 31)).price

        result = price_service.update_price(
            january.id, test_actor_id, date_to=date(2024, 2, 10), notes="extended"
        )

        assert result.overlap.status is OverlapStatus.OK
        assert result.price.date_to == date(2024, 2, 10)
        assert result.price.notes == "extended"

    def test_moving_into_neighbour_reports_overlap(self, create, price_service, test_actor_id):
        january = create(date(2024, 1, 1), date(2024, 1, 31)).price
        march = create(date(2024, 3, 1), date(2024, 3, 31)).price

        result = price_service.update_price(march.id, test_actor_id, date_from=date(2024, 1, 25))
        assert [o.id for o in result.overlap.overlaps] == [january.id]

    def test_strict_update_leaves_record_unchanged(self, create, price_service, test_actor_id):
        create(date(2024, 1, 1), date(2024, 1, 31))
        march = create(date(2024, 3, 1), date(2024, 3, 31)).price

        with pytest.raises(PriceOverlapError):
            price_service.update_price(
                march.id, test_actor_id, strict=True, date_from=date(2024, 1, 25)
            )
        assert price_service.get_price(march.id).date_from == date(2024, 3, 1)

    def test_scope_change(self, create, price_service, test_actor_id):
        price = create(date(2024, 1, 1), date(2024, 1, 31)).price
        result = price_service.update_price(price.id, test_actor_id, counterparty_role="buyer")
        assert result.price.counterparty_role == "buyer"

    def test_unknown_basis_rejected(self, create, price_service, price_scope, test_actor_id):
        price = create(date(2024, 1, 1), date(2024, 1, 31)).price
        with pytest.raises(SupplyBaseNotFoundError):
            price_service.update_price(price.id, test_actor_id, basis_id=str(uuid4()))
        assert price_service.get_price(price.id).basis_id == price_scope.basis_id

    def test_unknown_field(self, create, price_service, test_actor_id):
        price = create(date(2024, 1, 1), date(2024, 1, 31)).price
        with pytest.raises(InvalidFieldValueError):
            price_service.update_price(price.id, test_actor_id, colour="red")

    def test_unknown_price(self, price_service, test_actor_id, db_tables):
        with pytest.raises(PriceRecordNotFoundError):
            price_service.update_price(uuid4(), test_actor_id, notes="x")


class TestDateCheckWarning:
    def test_overlapping_write_flags_both_records(self, create, price_service):
        january = create(date(2024, 1, 1), date(2024, 1, 31)).price
        straddling = create(date(2024, 1, 20), date(2024, 2, 20)).price

        assert straddling.date_check_warning == "error"
        assert price_service.get_price(january.id).date_check_warning == "error"

    def test_clean_update_clears_own_flag(self, create, price_service, test_actor_id):
        create(date(2024, 1, 1), date(2024, 1, 31))
        straddling = create(date(2024, 1, 20), date(2024, 2, 20)).price

        result = price_service.update_price(
            straddling.id, test_actor_id, date_from=date(2024, 2, 1)
        )

        assert result.overlap.status is OverlapStatus.OK
        assert result.price.date_check_warning is None
        assert price_service.get_price(straddling.id).date_check_warning is None

    def test_strict_rejection_flags_nothing(self, create, price_service):
        january = create(date(2024, 1, 1), date(2024, 1, 31)).price
        with pytest.raises(PriceOverlapError):
            create(date(2024, 1, 20), date(2024, 2, 20), strict=True)
        assert price_service.get_price(january.id).date_check_warning is None


class TestFindActive:
    def test_returns_records_valid_on_date(self, create, price_service, price_scope, test_actor_id):
        january = create(date(2024, 1, 1), date(2024, 1, 31)).price
        create(date(2024, 2, 1), date(2024, 2, 29))
        retired = create(date(2024, 1, 10), date(2024, 1, 20)).price
        price_service.deactivate_price(retired.id, test_actor_id)

        found = price_service.find_active_prices(price_scope, date(2024, 1, 15))
        assert [p.id for p in found] == [january.id]

    def test_deactivate_is_idempotent(self, create, price_service, test_actor_id):
        price = create(date(2024, 1, 1), date(2024, 1, 31)).price
        price_service.deactivate_price(price.id, test_actor_id)
        assert not price_service.deactivate_price(price.id, test_actor_id).is_active
