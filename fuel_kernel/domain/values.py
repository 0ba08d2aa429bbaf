"""
Values -- Enumerations and immutable value objects for the inventory ledger.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by services, selectors,
    fuel_engines and the HTTP layer.

Invariants enforced:
    - Movement kinds carry their sign convention (inflow / outflow / either).
    - A PriceScope is complete: every field of the scope tuple is present.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from fuel_kernel.exceptions import InvalidFieldValueError, MissingScopeFieldError


class ProductType(str, Enum):
    """Products tracked per warehouse."""

    KEROSENE = "kerosene"
    PVKJ = "pvkj"


class MovementKind(str, Enum):
    """Kind of an inventory movement recorded in the ledger."""

    RECEIPT = "receipt"
    SALE = "sale"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    CONSUMPTION = "consumption"
    ADJUSTMENT = "adjustment"

    @property
    def is_inflow(self) -> bool:
        return self in _INFLOW_KINDS

    @property
    def is_outflow(self) -> bool:
        return self in _OUTFLOW_KINDS

    @property
    def can_affect_cost(self) -> bool:
        """Receipts and transfers-in re-weight the average cost when priced."""
        return self in _INFLOW_KINDS


_INFLOW_KINDS = frozenset({MovementKind.RECEIPT, MovementKind.TRANSFER_IN})
_OUTFLOW_KINDS = frozenset(
    {MovementKind.SALE, MovementKind.TRANSFER_OUT, MovementKind.CONSUMPTION}
)


class SourceKind(str, Enum):
    """What originated a movement."""

    WHOLESALE_DEAL = "wholesale_deal"
    REFUELING_DEAL = "refueling_deal"
    REFUELING_ABROAD_DEAL = "refueling_abroad_deal"
    MOVEMENT = "movement"
    MANUAL = "manual"


class CounterpartyType(str, Enum):
    WHOLESALE = "wholesale"
    REFUELING = "refueling"
    REFUELING_ABROAD = "refueling_abroad"


class CounterpartyRole(str, Enum):
    SUPPLIER = "supplier"
    BUYER = "buyer"


class DealType(str, Enum):
    """Deal table discriminator; one value per counterparty type."""

    WHOLESALE = "wholesale"
    REFUELING = "refueling"
    REFUELING_ABROAD = "refueling_abroad"

    @classmethod
    def for_counterparty(cls, counterparty_type: CounterpartyType) -> DealType:
        return cls(CounterpartyType(counterparty_type).value)

    @property
    def source_kind(self) -> SourceKind:
        return _DEAL_SOURCE_KINDS[self]

    @property
    def movement_kind(self) -> MovementKind:
        if self is DealType.WHOLESALE:
            return MovementKind.SALE
        return MovementKind.CONSUMPTION


_DEAL_SOURCE_KINDS = {
    DealType.WHOLESALE: SourceKind.WHOLESALE_DEAL,
    DealType.REFUELING: SourceKind.REFUELING_DEAL,
    DealType.REFUELING_ABROAD: SourceKind.REFUELING_ABROAD_DEAL,
}


class NegativeBalancePolicy(str, Enum):
    """What to do when an outflow exceeds the available balance."""

    CLAMP = "clamp"
    REJECT = "reject"


class OverlapStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class SourceRef:
    """Back-reference from a ledger entry to the record that caused it."""

    kind: SourceKind
    id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", SourceKind(self.kind))
        object.__setattr__(self, "id", str(self.id))

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass(frozen=True)
class PriceScope:
    """
    The tuple that identifies which deals a price applies to.

    Two price records compete with each other only when every field of
    their scope is equal.
    """

    counterparty_id: UUID
    counterparty_type: CounterpartyType
    counterparty_role: CounterpartyRole
    product: ProductType
    basis_id: UUID

    @classmethod
    def from_values(
        cls,
        *,
        counterparty_id: object,
        counterparty_type: object,
        counterparty_role: object,
        product: object,
        basis_id: object,
    ) -> PriceScope:
        """
        Build a scope from loosely-typed input (query strings, JSON bodies).

        Raises:
            MissingScopeFieldError: If any field is missing or blank.
            InvalidFieldValueError: If an enum or UUID field is malformed.
        """
        fields = {
            "counterparty_id": counterparty_id,
            "counterparty_type": counterparty_type,
            "counterparty_role": counterparty_role,
            "product": product,
            "basis_id": basis_id,
        }
        for name, value in fields.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                raise MissingScopeFieldError(name)

        return cls(
            counterparty_id=as_uuid(counterparty_id, "counterparty_id"),
            counterparty_type=as_enum(
                CounterpartyType, counterparty_type, "counterparty_type"
            ),
            counterparty_role=as_enum(
                CounterpartyRole, counterparty_role, "counterparty_role"
            ),
            product=as_enum(ProductType, product, "product"),
            basis_id=as_uuid(basis_id, "basis_id"),
        )


def as_uuid(value: object, field: str) -> UUID:
    """Coerce to UUID or raise InvalidFieldValueError naming the field."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidFieldValueError(field, value) from None


def as_enum(enum_cls: type[Enum], value: object, field: str):
    """Coerce to a member of ``enum_cls`` or raise InvalidFieldValueError."""
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidFieldValueError(field, value) from None
