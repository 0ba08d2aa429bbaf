"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract.  Every service
    receives a SQLAlchemy ``Session`` and persists with ``session.flush()``
    -- never ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction.  The caller (LedgerCoordinator, the HTTP layer through
      the coordinator, or a test) owns commit/rollback, so a stock update
      and its ledger entry are applied together or not at all.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from fuel_kernel.db.base import Base
from fuel_kernel.exceptions import SupplyBaseNotFoundError
from fuel_kernel.models.supply_base import SupplyBase

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only query methods; those belong in
          ``fuel_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session

    def _require_supply_base(self, base_id: UUID) -> SupplyBase:
        """Referenced bases must exist before a row pointing at them is flushed."""
        base = self.session.get(SupplyBase, base_id)
        if base is None:
            raise SupplyBaseNotFoundError(str(base_id))
        return base
