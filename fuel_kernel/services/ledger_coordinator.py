"""
LedgerCoordinator -- transaction boundary for ledger operations.

Responsibility:
    Own the session and transaction for one ledger operation: bind the log
    context, serialize writers per (warehouse, product), build the services
    for the session, run the work, commit or roll back, and retry on
    optimistic-lock conflicts.

Architecture position:
    Kernel > Services -- the only place in the kernel that commits.  Called
    by the HTTP layer, operator scripts and concurrency tests.

Invariants enforced:
    - One operation == one transaction: a stock update and its ledger entry
      commit together or not at all.
    - Writers of the same position are serialized in-process by
      KeyedLockRegistry and in the database by SELECT ... FOR UPDATE plus
      the stock row's version column.  Locks are always taken in sorted
      key order, so multi-position operations cannot deadlock.
    - OptimisticLockError is retried up to policy.lock_retry_attempts
      times, each attempt in a fresh session.  Every other error is rolled
      back and re-raised unchanged.

Audit relevance:
    Logs ``ledger_operation_completed`` with duration, ``ledger_retry`` per
    retried conflict and ``ledger_operation_failed`` with the exception.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from fuel_kernel.domain.clock import Clock, SystemClock
from fuel_kernel.domain.policy import LedgerPolicy
from fuel_kernel.exceptions import FuelKernelError, OptimisticLockError
from fuel_kernel.logging_config import LogContext, get_logger
from fuel_kernel.selectors.deal_selector import DealSelector
from fuel_kernel.selectors.ledger_selector import LedgerSelector
from fuel_kernel.selectors.price_selector import PriceSelector
from fuel_kernel.services.deal_service import DealService
from fuel_kernel.services.ledger_service import InventoryLedgerService
from fuel_kernel.services.movement_posting_service import MovementPostingService
from fuel_kernel.services.price_service import PriceService
from fuel_kernel.services.volume_selection_service import VolumeSelectionService
from fuel_kernel.services.warehouse_service import WarehouseService

logger = get_logger("services.coordinator")

T = TypeVar("T")
PositionKey = tuple[UUID, str]


@dataclass(frozen=True)
class LedgerUnitOfWork:
    """Services and selectors bound to one session."""

    session: Session
    clock: Clock
    policy: LedgerPolicy
    ledger: InventoryLedgerService
    posting: MovementPostingService
    warehouses: WarehouseService
    deals: DealService
    prices: PriceService
    selection: VolumeSelectionService
    ledger_reads: LedgerSelector
    price_reads: PriceSelector
    deal_reads: DealSelector


def build_unit_of_work(
    session: Session,
    clock: Clock | None = None,
    policy: LedgerPolicy | None = None,
) -> LedgerUnitOfWork:
    clock = clock or SystemClock()
    policy = policy or LedgerPolicy()
    ledger = InventoryLedgerService(session, clock, policy)
    prices = PriceService(session, clock, policy)
    return LedgerUnitOfWork(
        session=session,
        clock=clock,
        policy=policy,
        ledger=ledger,
        posting=MovementPostingService(session, ledger),
        warehouses=WarehouseService(session, clock, policy),
        deals=DealService(session, clock, policy),
        prices=prices,
        selection=VolumeSelectionService(session, prices),
        ledger_reads=LedgerSelector(session),
        price_reads=PriceSelector(session),
        deal_reads=DealSelector(session),
    )


class KeyedLockRegistry:
    """
    One re-entrant lock per (warehouse_id, product).

    Shared by every coordinator that writes the same database from this
    process.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], threading.RLock] = {}

    def _lock_for(self, key: tuple[str, str]) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, keys: Iterable[PositionKey]) -> Iterator[None]:
        """Acquire the locks for ``keys`` in sorted order; release in reverse."""
        ordered = sorted({(str(w), p) for w, p in keys})
        acquired: list[threading.RLock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


KeySpec = Iterable[PositionKey] | Callable[[LedgerUnitOfWork], Iterable[PositionKey]]


class LedgerCoordinator:
    """
    Usage:
        coordinator = LedgerCoordinator(get_session_factory(), clock, policy)
        entry = coordinator.execute(
            "apply_movement",
            lambda uow: uow.ledger.apply_movement(...),
            keys=[(warehouse_id, "kerosene")],
            actor_id=actor_id,
        )
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        policy: LedgerPolicy | None = None,
        locks: KeyedLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._policy = policy or LedgerPolicy()
        self._locks = locks or KeyedLockRegistry()

    @property
    def policy(self) -> LedgerPolicy:
        return self._policy

    def execute(
        self,
        operation: str,
        work: Callable[[LedgerUnitOfWork], T],
        keys: KeySpec = (),
        actor_id: UUID | None = None,
        correlation_id: str | None = None,
    ) -> T:
        """
        Run ``work`` in its own transaction and commit it.

        Args:
            operation: Name used in log records.
            work: Callable receiving a LedgerUnitOfWork.
            keys: Positions the work writes, or a callable that derives
                them from a read-only unit of work.
            actor_id: Bound into the log context.
            correlation_id: Bound into the log context; generated if absent.

        Returns:
            Whatever ``work`` returns.
        """
        correlation_id = correlation_id or str(uuid4())
        with LogContext.bind(correlation_id=correlation_id, actor_id=actor_id):
            position_keys = self._resolve_keys(keys)
            attempts = self._policy.lock_retry_attempts
            for attempt in range(1, attempts + 1):
                try:
                    with self._locks.hold(position_keys):
                        return self._run_once(operation, work)
                except OptimisticLockError as exc:
                    if attempt >= attempts:
                        logger.error(
                            "ledger_operation_failed",
                            extra={"operation": operation, "attempts": attempt},
                            exc_info=exc,
                        )
                        raise
                    logger.warning(
                        "ledger_retry",
                        extra={
                            "operation": operation,
                            "attempt": attempt,
                            "entity_id": exc.entity_id,
                        },
                    )
        raise AssertionError("unreachable")

    def read(self, work: Callable[[LedgerUnitOfWork], T]) -> T:
        """Run ``work`` in a session that is rolled back, never committed."""
        session = self._session_factory()
        try:
            return work(build_unit_of_work(session, self._clock, self._policy))
        finally:
            session.rollback()
            session.close()

    def _resolve_keys(self, keys: KeySpec) -> list[PositionKey]:
        if callable(keys):
            return list(self.read(keys))
        return list(keys)

    def _run_once(self, operation: str, work: Callable[[LedgerUnitOfWork], T]) -> T:
        started = time.monotonic()
        session = self._session_factory()
        try:
            result = work(build_unit_of_work(session, self._clock, self._policy))
            session.commit()
        except OptimisticLockError:
            session.rollback()
            raise
        except FuelKernelError as exc:
            session.rollback()
            logger.warning(
                "ledger_operation_rejected",
                extra={"operation": operation, "error_code": exc.code},
            )
            raise
        except Exception:
            session.rollback()
            logger.exception("ledger_operation_failed", extra={"operation": operation})
            raise
        finally:
            session.close()

        logger.info(
            "ledger_operation_completed",
            extra={
                "operation": operation,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return result
