"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

Inventory history must be tamper-proof: a ledger entry, once written, is
never edited or deleted.  Corrections are new reversal entries that leave a
visible trail.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through SQLAlchemy unit-of-work flushes
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (PostgreSQL triggers)
    - Catches raw SQL and bulk statements on PostgreSQL

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule                                  | Why
----------------|---------------------------------------|------------------------------
LedgerEntry     | ALWAYS immutable (no UPDATE/DELETE)   | Sole source for replay
Warehouse       | No physical DELETE                    | Soft delete keeps history
WarehouseStock  | No physical DELETE                    | Position belongs to history
PriceRecord     | No physical DELETE                    | Deactivate instead

Core ``delete()`` statements bypass ORM events; that path is only used by
test teardown on SQLite.
"""

from sqlalchemy import event

from fuel_kernel.exceptions import ImmutabilityViolationError
from fuel_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_ledger_entry_immutability(mapper, connection, target):
    _block(
        "LedgerEntry",
        target,
        "UPDATE",
        "Ledger entries are immutable; post a reversal entry instead",
    )


def _check_ledger_entry_delete(mapper, connection, target):
    _block(
        "LedgerEntry",
        target,
        "DELETE",
        "Ledger entries cannot be deleted; post a reversal entry instead",
    )


def _check_warehouse_delete(mapper, connection, target):
    _block(
        "Warehouse",
        target,
        "DELETE",
        "Warehouses are soft-deleted; set deleted_at instead",
    )


def _check_stock_delete(mapper, connection, target):
    _block(
        "WarehouseStock",
        target,
        "DELETE",
        "Stock positions cannot be deleted while ledger history exists",
    )


def _check_price_delete(mapper, connection, target):
    _block(
        "PriceRecord",
        target,
        "DELETE",
        "Price records are deactivated, not deleted",
    )


def _listeners():
    from fuel_kernel.models.ledger_entry import LedgerEntry
    from fuel_kernel.models.price import PriceRecord
    from fuel_kernel.models.warehouse import Warehouse, WarehouseStock

    return [
        (LedgerEntry, "before_update", _check_ledger_entry_immutability),
        (LedgerEntry, "before_delete", _check_ledger_entry_delete),
        (Warehouse, "before_delete", _check_warehouse_delete),
        (WarehouseStock, "before_delete", _check_stock_delete),
        (PriceRecord, "before_delete", _check_price_delete),
    ]


def register_immutability_listeners():
    """Register all immutability enforcement event listeners (idempotent)."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate immutability
    rules to verify detection by another layer.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
