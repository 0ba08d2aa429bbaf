"""
Module: fuel_kernel.db.types
Responsibility: Annotated column type aliases and the canonical rounding and
    coercion helpers for quantities, unit costs and currency codes.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and fuel_engines.  MUST NOT import from those layers.

Invariants enforced:
    - No floats: every quantity and cost is a Decimal stored as Numeric(38, 9).
    - round_cost() is the ONLY sanctioned rounding for stored average costs.
    - Currency codes are three upper-case letters.

Failure modes:
    - InvalidQuantityError from to_decimal() on non-numeric input.
    - InvalidCurrencyError from validate_currency().
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String

from fuel_kernel.exceptions import InvalidCurrencyError, InvalidQuantityError

# Quantity in kilograms, signed for deltas
Quantity = Annotated[Decimal, Numeric(38, 9)]

# Unit cost / price per kilogram
UnitCost = Annotated[Decimal, Numeric(38, 9)]

# Three-letter currency code
Currency = Annotated[str, String(3)]

# Short identifier strings (enum values, kinds)
ShortCode = Annotated[str, String(50)]

# Long text for notes
LongText = Annotated[str, String(4000)]


COST_DECIMAL_PLACES = 9
QUANTITY_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP
DEFAULT_CURRENCY = "RUB"

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def round_cost(
    value: Decimal,
    decimal_places: int = COST_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a unit cost to the stored precision (half-up by default)."""
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=rounding)


def round_quantity(value: Decimal) -> Decimal:
    quantizer = Decimal(10) ** -QUANTITY_DECIMAL_PLACES
    return value.quantize(quantizer, rounding=DEFAULT_ROUNDING)


def to_decimal(value: object, field: str) -> Decimal:
    """
    Coerce an inbound numeric value to Decimal.

    Floats are converted through ``str`` so 0.1 stays 0.1.  Booleans,
    NaN and infinities are rejected.

    Raises:
        InvalidQuantityError: If the value is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidQuantityError(field, value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidQuantityError(field, value) from None
    if not result.is_finite():
        raise InvalidQuantityError(field, value)
    return result


def validate_currency(code: str) -> str:
    """Validate a currency code and return it unchanged."""
    if not isinstance(code, str) or not _CURRENCY_RE.match(code):
        raise InvalidCurrencyError(code)
    return code
