"""
fuel_engines.costing -- Weighted-average cost for warehouse stock positions.

Responsibility:
    Compute the next (balance, average_cost) position for one movement, the
    inverse of a previously applied movement, and the position obtained by
    replaying a full ledger from zero.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import fuel_kernel domain values and DTOs.
    Called by InventoryLedgerService (apply, reverse) and LedgerSelector
    (replay).

Invariants enforced:
    - Moving-average formula on cost-affecting inflows:
          new_cost = (B0 * C0 + incoming_value) / (B0 + delta)
      using the balance BEFORE this movement.
    - Outflows and unpriced movements leave the average cost unchanged.
    - Balance floor at zero: an outflow larger than the balance produces
      balance 0 and a positive shortfall (the caller decides whether to
      accept it).
    - A zero balance contributes nothing to the next receipt's weighting.
    - Costs are rounded half-up to ``cost_decimal_places``.

Failure modes:
    - ValueError if quantity_delta is zero (callers validate first).

Usage:
    from fuel_engines.costing import StockPosition, apply_movement

    outcome = apply_movement(
        position=StockPosition.zero(),
        kind=MovementKind.RECEIPT,
        quantity_delta=Decimal("1000"),
        unit_price=Decimal("50"),
    )
    outcome.after  # StockPosition(balance=1000, average_cost=50)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from fuel_kernel.domain.dtos import LedgerEntryRecord
from fuel_kernel.domain.values import MovementKind
from fuel_engines.tracer import traced_engine

ZERO = Decimal("0")
DEFAULT_COST_PLACES = 9


@dataclass(frozen=True)
class StockPosition:
    """Balance and weighted-average unit cost of one (warehouse, product)."""

    balance: Decimal
    average_cost: Decimal

    @classmethod
    def zero(cls) -> StockPosition:
        return cls(balance=ZERO, average_cost=ZERO)

    @property
    def value(self) -> Decimal:
        return self.balance * self.average_cost


@dataclass(frozen=True)
class MovementOutcome:
    """
    Result of applying one movement to a position.

    ``requested_delta`` is what the caller asked for; ``applied_delta`` is
    what actually changed the balance.  They differ only when an outflow was
    floored at zero, in which case ``shortfall`` is positive.
    """

    before: StockPosition
    after: StockPosition
    requested_delta: Decimal
    shortfall: Decimal
    cost_affecting: bool
    unit_price: Decimal | None
    total_sum: Decimal | None

    @property
    def applied_delta(self) -> Decimal:
        return self.after.balance - self.before.balance

    @property
    def clamped(self) -> bool:
        return self.shortfall > ZERO


@dataclass(frozen=True)
class ReplayResult:
    """Position reproduced by replaying entries, plus entries that disagree."""

    position: StockPosition
    entries_replayed: int
    mismatched_seqs: tuple[int, ...]

    @property
    def consistent(self) -> bool:
        return not self.mismatched_seqs


def _round(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(10) ** -places, rounding=ROUND_HALF_UP)


def _priced_inflow(
    kind: MovementKind,
    quantity_delta: Decimal,
    unit_price: Decimal | None,
    total_sum: Decimal | None,
    places: int,
) -> tuple[Decimal | None, Decimal | None]:
    """
    Resolve the (unit_price, incoming_value) of a cost-affecting inflow.

    total_sum wins when both are given; a missing unit price is derived
    from total_sum.  Returns (unit_price, None) for movements that do not
    re-weight the cost.
    """
    if not kind.can_affect_cost or quantity_delta <= ZERO:
        return unit_price, None
    if total_sum is not None and total_sum > ZERO:
        price = unit_price if unit_price else _round(total_sum / quantity_delta, places)
        return price, total_sum
    if unit_price is not None and unit_price > ZERO:
        return unit_price, _round(quantity_delta * unit_price, places)
    return unit_price, None


def incoming_value_of(
    entry: LedgerEntryRecord,
    cost_decimal_places: int = DEFAULT_COST_PLACES,
) -> Decimal:
    """Value a stored entry added to stock (zero when it did not re-weight cost)."""
    kind = MovementKind(entry.kind)
    _, value = _priced_inflow(
        kind, entry.quantity_delta, entry.unit_price, entry.total_sum, cost_decimal_places
    )
    return value if value is not None else ZERO


@traced_engine(
    "weighted_average_cost",
    "1.0",
    fingerprint_fields=("position", "kind", "quantity_delta", "unit_price", "total_sum"),
)
def apply_movement(
    *,
    position: StockPosition,
    kind: MovementKind,
    quantity_delta: Decimal,
    unit_price: Decimal | None = None,
    total_sum: Decimal | None = None,
    cost_decimal_places: int = DEFAULT_COST_PLACES,
) -> MovementOutcome:
    """
    Apply one movement to a position.

    Preconditions:
        quantity_delta is non-zero and signed per the movement kind.

    Postconditions:
        after.balance >= 0; shortfall == max(0, -(B0 + delta)).
        after.average_cost == before.average_cost unless cost_affecting.
    """
    if quantity_delta == ZERO:
        raise ValueError("quantity_delta must be non-zero")

    kind = MovementKind(kind)
    price, incoming_value = _priced_inflow(
        kind, quantity_delta, unit_price, total_sum, cost_decimal_places
    )
    cost_affecting = incoming_value is not None

    new_balance = position.balance + quantity_delta
    new_cost = position.average_cost
    if cost_affecting:
        # Inflow with B0 >= 0 keeps new_balance > 0
        new_cost = _round(
            (position.balance * position.average_cost + incoming_value) / new_balance,
            cost_decimal_places,
        )

    shortfall = ZERO
    if new_balance < ZERO:
        shortfall = -new_balance
        new_balance = ZERO

    return MovementOutcome(
        before=position,
        after=StockPosition(balance=new_balance, average_cost=new_cost),
        requested_delta=quantity_delta,
        shortfall=shortfall,
        cost_affecting=cost_affecting,
        unit_price=price,
        total_sum=incoming_value if cost_affecting else total_sum,
    )


@traced_engine(
    "weighted_average_cost.reverse",
    "1.0",
    fingerprint_fields=("position", "original_before", "original_after", "incoming_value"),
)
def reverse_movement(
    *,
    position: StockPosition,
    original_before: StockPosition,
    original_after: StockPosition,
    incoming_value: Decimal = ZERO,
    cost_decimal_places: int = DEFAULT_COST_PLACES,
) -> MovementOutcome:
    """
    Undo a previously applied movement.

    The inverse of the original's *applied* delta is used, so a clamped
    outflow is only restored by what it actually removed.

    Postconditions:
        - If ``position == original_after`` (nothing happened since), the
          result is exactly ``original_before``.
        - Otherwise the balance moves by the inverse delta (floored at zero)
          and, when the original added value, that value is withdrawn:
          ``new_cost = max(0, B*C - incoming_value) / new_balance``.
    """
    inverse = original_before.balance - original_after.balance
    if inverse == ZERO:
        return MovementOutcome(
            before=position,
            after=position,
            requested_delta=ZERO,
            shortfall=ZERO,
            cost_affecting=False,
            unit_price=None,
            total_sum=None,
        )

    if position == original_after:
        return MovementOutcome(
            before=position,
            after=original_before,
            requested_delta=inverse,
            shortfall=ZERO,
            cost_affecting=original_before.average_cost != original_after.average_cost,
            unit_price=None,
            total_sum=None,
        )

    new_balance = position.balance + inverse
    shortfall = ZERO
    if new_balance < ZERO:
        shortfall = -new_balance
        new_balance = ZERO

    new_cost = position.average_cost
    cost_affecting = incoming_value > ZERO
    if cost_affecting:
        remaining = max(ZERO, position.value - incoming_value)
        new_cost = (
            _round(remaining / new_balance, cost_decimal_places)
            if new_balance > ZERO
            else ZERO
        )

    return MovementOutcome(
        before=position,
        after=StockPosition(balance=new_balance, average_cost=new_cost),
        requested_delta=inverse,
        shortfall=shortfall,
        cost_affecting=cost_affecting,
        unit_price=None,
        total_sum=None,
    )


def _position_after(entry: LedgerEntryRecord) -> StockPosition:
    return StockPosition(balance=entry.balance_after, average_cost=entry.average_cost_after)


def _position_before(entry: LedgerEntryRecord) -> StockPosition:
    return StockPosition(balance=entry.balance_before, average_cost=entry.average_cost_before)


@traced_engine("weighted_average_cost.replay", "1.0")
def replay(
    entries: Sequence[LedgerEntryRecord],
    cost_decimal_places: int = DEFAULT_COST_PLACES,
) -> ReplayResult:
    """
    Rebuild a position from zero by re-applying entries in seq order.

    Reversal entries are re-derived from the entry they reverse, which must
    appear earlier in ``entries``.  An entry whose recomputed after-state
    differs from its stored after-state is reported in ``mismatched_seqs``;
    replay continues from the recomputed position.
    """
    ordered = sorted(entries, key=lambda e: e.seq)
    by_id = {e.id: e for e in ordered}
    position = StockPosition.zero()
    mismatched: list[int] = []

    for entry in ordered:
        if entry.reversal_of_id is not None:
            original = by_id.get(entry.reversal_of_id)
            if original is None:
                mismatched.append(entry.seq)
                position = _position_after(entry)
                continue
            outcome = reverse_movement(
                position=position,
                original_before=_position_before(original),
                original_after=_position_after(original),
                incoming_value=incoming_value_of(original, cost_decimal_places),
                cost_decimal_places=cost_decimal_places,
            )
        else:
            outcome = apply_movement(
                position=position,
                kind=entry.kind,
                quantity_delta=entry.quantity_delta,
                unit_price=entry.unit_price,
                total_sum=entry.total_sum,
                cost_decimal_places=cost_decimal_places,
            )

        if outcome.after != _position_after(entry):
            mismatched.append(entry.seq)
        position = outcome.after

    return ReplayResult(
        position=position,
        entries_replayed=len(ordered),
        mismatched_seqs=tuple(mismatched),
    )
