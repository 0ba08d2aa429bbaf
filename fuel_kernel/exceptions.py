"""
Typed Exception Hierarchy for the Fuel Kernel.

Every error raised by the kernel is a typed class carrying a machine-readable
``code`` class attribute and structured attributes, so that callers (the HTTP
layer, the coordinator's retry loop, tests) catch by type and read fields
instead of parsing messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FuelKernelError (base)
    |
    +-- NotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- PriceRecordNotFoundError
    |   +-- LedgerEntryNotFoundError
    |   +-- DealNotFoundError
    |   +-- SupplyBaseNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidMovementError
    |   +-- InvalidQuantityError
    |   +-- InvalidFieldValueError
    |   +-- InvalidDateRangeError
    |   +-- MissingScopeFieldError
    |   +-- UnknownProductError
    |   +-- InvalidCurrencyError
    |
    +-- PricingError
    |   +-- PriceOverlapError
    |
    +-- InventoryError
    |   +-- InsufficientBalanceError
    |
    +-- ReversalError
    |   +-- EntryAlreadyReversedError
    |   +-- ReversalOfReversalError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
NotFound        | WAREHOUSE_NOT_FOUND         | Unknown or soft-deleted warehouse
                | PRICE_RECORD_NOT_FOUND      | Unknown price record id
                | LEDGER_ENTRY_NOT_FOUND      | Unknown ledger entry id
                | DEAL_NOT_FOUND              | Unknown deal id
                | SUPPLY_BASE_NOT_FOUND       | Unknown supply base id
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_MOVEMENT            | Delta sign does not match the kind
                | INVALID_QUANTITY            | Zero or non-numeric quantity / price
                | INVALID_FIELD_VALUE         | Unknown enum value or malformed id
                | INVALID_DATE_RANGE          | date_from after date_to
                | MISSING_SCOPE_FIELD         | Price scope tuple incomplete
                | UNKNOWN_PRODUCT             | Product not configured for the ledger
                | INVALID_CURRENCY            | Not a three-letter currency code
----------------|-----------------------------|-----------------------------------------
Pricing         | PRICE_OVERLAP               | Strict mode: active overlapping price
----------------|-----------------------------|-----------------------------------------
Inventory       | INSUFFICIENT_BALANCE        | Reject policy: outflow exceeds balance
----------------|-----------------------------|-----------------------------------------
Reversal        | ENTRY_ALREADY_REVERSED      | Entry was already reversed
                | REVERSAL_OF_REVERSAL        | Reversal entries cannot be reversed
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Stock row changed under the writer
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of a ledger entry

Overlap detection in lenient mode and negative-balance clamping are NOT
exceptions: they are reported as values (``OverlapResult``) and as a
``shortfall`` recorded on the ledger entry plus a WARNING log record.
"""

from decimal import Decimal


class FuelKernelError(Exception):
    """
    Base exception for all fuel kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FUEL_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(FuelKernelError):
    """Base exception for missing referenced records."""

    code: str = "NOT_FOUND"


class WarehouseNotFoundError(NotFoundError):
    """Warehouse does not exist or has been soft-deleted."""

    code: str = "WAREHOUSE_NOT_FOUND"

    def __init__(self, warehouse_id: str):
        self.warehouse_id = str(warehouse_id)
        super().__init__(f"Warehouse not found: {warehouse_id}")


class PriceRecordNotFoundError(NotFoundError):
    code: str = "PRICE_RECORD_NOT_FOUND"

    def __init__(self, price_id: str):
        self.price_id = str(price_id)
        super().__init__(f"Price record not found: {price_id}")


class LedgerEntryNotFoundError(NotFoundError):
    code: str = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = str(entry_id)
        super().__init__(f"Ledger entry not found: {entry_id}")


class DealNotFoundError(NotFoundError):
    code: str = "DEAL_NOT_FOUND"

    def __init__(self, deal_id: str):
        self.deal_id = str(deal_id)
        super().__init__(f"Deal not found: {deal_id}")


class SupplyBaseNotFoundError(NotFoundError):
    """Referenced supply base does not exist."""

    code: str = "SUPPLY_BASE_NOT_FOUND"

    def __init__(self, base_id: str):
        self.base_id = str(base_id)
        super().__init__(f"Supply base not found: {base_id}")


# Validation exceptions


class ValidationError(FuelKernelError):
    """Base exception for malformed input. Raised before any write."""

    code: str = "VALIDATION_ERROR"


class InvalidMovementError(ValidationError):
    """Quantity delta sign is inconsistent with the movement kind."""

    code: str = "INVALID_MOVEMENT"

    def __init__(self, kind: str, quantity_delta: Decimal, reason: str):
        self.kind = kind
        self.quantity_delta = quantity_delta
        self.reason = reason
        super().__init__(
            f"Invalid {kind} movement with delta {quantity_delta}: {reason}"
        )


class InvalidQuantityError(ValidationError):
    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid value for {field}: {value!r}")


class InvalidFieldValueError(ValidationError):
    """A field holds a value outside its allowed set (enum, UUID)."""

    code: str = "INVALID_FIELD_VALUE"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid value for {field}: {value!r}")


class InvalidDateRangeError(ValidationError):
    code: str = "INVALID_DATE_RANGE"

    def __init__(self, date_from: object, date_to: object):
        self.date_from = date_from
        self.date_to = date_to
        super().__init__(
            f"Invalid date range: date_from {date_from} is after date_to {date_to}"
        )


class MissingScopeFieldError(ValidationError):
    code: str = "MISSING_SCOPE_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Price scope is missing required field: {field}")


class UnknownProductError(ValidationError):
    code: str = "UNKNOWN_PRODUCT"

    def __init__(self, product: str, configured: tuple[str, ...]):
        self.product = product
        self.configured = list(configured)
        super().__init__(
            f"Product {product!r} is not tracked; configured products: "
            f"{', '.join(configured)}"
        )


class InvalidCurrencyError(ValidationError):
    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid currency code: {currency!r}")


# Pricing exceptions


class PricingError(FuelKernelError):
    code: str = "PRICING_ERROR"


class PriceOverlapError(PricingError):
    """
    Strict mode rejected a price write because active records overlap it.

    Carries the conflicting ids and ranges so the operator can correct the
    candidate range.
    """

    code: str = "PRICE_OVERLAP"

    def __init__(self, overlaps: list):
        self.overlaps = overlaps
        self.conflicting_ids = [str(o.id) for o in overlaps]
        super().__init__(
            f"Price date range overlaps {len(overlaps)} active record(s): "
            f"{', '.join(self.conflicting_ids)}"
        )


# Inventory exceptions


class InventoryError(FuelKernelError):
    code: str = "INVENTORY_ERROR"


class InsufficientBalanceError(InventoryError):
    """Outflow exceeds the available balance under the reject policy."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        warehouse_id: str,
        product: str,
        available: Decimal,
        requested: Decimal,
    ):
        self.warehouse_id = str(warehouse_id)
        self.product = product
        self.available = available
        self.requested = requested
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient {product} balance in warehouse {warehouse_id}: "
            f"available {available}, requested {requested}, "
            f"resulting balance would be {available - requested}"
        )


# Reversal exceptions


class ReversalError(FuelKernelError):
    code: str = "REVERSAL_ERROR"


class EntryAlreadyReversedError(ReversalError):
    """Entry has already been reversed."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_id: str | None = None):
        self.entry_id = str(entry_id)
        self.reversal_id = str(reversal_id) if reversal_id else None
        super().__init__(f"Entry {entry_id} has already been reversed")


class ReversalOfReversalError(ReversalError):
    code: str = "REVERSAL_OF_REVERSAL"

    def __init__(self, entry_id: str):
        self.entry_id = str(entry_id)
        super().__init__(
            f"Entry {entry_id} is itself a reversal and cannot be reversed"
        )


# Concurrency exceptions


class ConcurrencyError(FuelKernelError):
    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability exceptions


class ImmutabilityError(FuelKernelError):
    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
