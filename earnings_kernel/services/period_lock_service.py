"""
PeriodLockService -- lifecycle locks, closure state and closure audit.

Responsibility:
    Persisted coordination for period lifecycle operations:
    - lock rows acquired with a single conditional UPDATE,
    - the closure row advanced by compare-and-swap on (state, version),
    - append-only audit entries for every lifecycle step.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.  The lifecycle
    manager commits after each call so that other sessions observe locks
    and states while the long archive phase runs.

Invariants enforced:
    - Lock exclusivity: ``acquire`` issues
      ``UPDATE period_locks SET status='held' ... WHERE status != 'held'
      OR acquired_at < cutoff``; exactly one concurrent caller sees
      rowcount == 1.  Staleness is compared in SQL against the injected
      clock so a crashed holder is taken over after the timeout.
    - State monotonicity: ``transition`` updates the closure row only if it
      is still in one of the expected states at the expected version.
    - Row existence: ``ensure_rows`` creates closure and lock rows in a
      savepoint and tolerates a concurrent creator (IntegrityError).

Failure modes:
    - LockHeldError with the holder's id and acquisition time.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.periods import Period
from earnings_kernel.exceptions import LockHeldError
from earnings_kernel.logging_config import get_logger
from earnings_kernel.models.period_closure import (
    ClosureAuditEntry,
    ClosureState,
    LockOperation,
    LockStatus,
    PeriodClosure,
    PeriodLock,
)
from earnings_kernel.services.base import BaseService

logger = get_logger("services.period_lock")

DEFAULT_LOCK_STALENESS_SECONDS = 1800


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; every stored time is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class LockInfo:
    """Snapshot of a lock row for status reporting."""

    operation: str
    status: str
    acquired_by: UUID | None
    acquired_at: datetime | None
    batch_id: UUID | None
    stale: bool
    total_models: int = 0
    processed_models: int = 0
    failed_models: int = 0

    @property
    def in_progress(self) -> bool:
        return self.status == LockStatus.HELD.value and not self.stale


class PeriodLockService(BaseService[PeriodLock]):
    """
    Lock rows, closure CAS and audit log for the period lifecycle.

    Non-goals:
        - Does NOT decide which transitions are allowed; the lifecycle
          manager checks preconditions and passes the expected states.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        staleness_seconds: int = DEFAULT_LOCK_STALENESS_SECONDS,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._staleness_seconds = staleness_seconds

    # ------------------------------------------------------------------
    # Row existence
    # ------------------------------------------------------------------

    def ensure_closure(self, period: Period, actor_id: UUID) -> None:
        """Create the OPEN closure row for ``period`` if it does not exist."""
        if self.get_closure(period) is not None:
            return
        try:
            with self.session.begin_nested():
                self.session.add(
                    PeriodClosure(
                        period_date=period.start,
                        period_type=period.period_type.value,
                        state=ClosureState.OPEN.value,
                        version=1,
                        created_by_id=actor_id,
                    )
                )
        except IntegrityError:
            logger.debug("closure_row_created_concurrently", extra={"period_code": period.code})

    def ensure_rows(self, period: Period, actor_id: UUID) -> None:
        """Closure row plus one lock row per operation."""
        self.ensure_closure(period, actor_id)
        for operation in LockOperation:
            if self._get_lock(period, operation) is not None:
                continue
            try:
                with self.session.begin_nested():
                    self.session.add(
                        PeriodLock(
                            period_date=period.start,
                            period_type=period.period_type.value,
                            operation=operation.value,
                            status=LockStatus.RELEASED.value,
                            created_by_id=actor_id,
                        )
                    )
            except IntegrityError:
                logger.debug(
                    "lock_row_created_concurrently",
                    extra={"period_code": period.code, "operation": operation.value},
                )

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    def _get_lock(self, period: Period, operation: LockOperation) -> PeriodLock | None:
        return self.session.execute(
            select(PeriodLock)
            .where(
                PeriodLock.period_date == period.start,
                PeriodLock.period_type == period.period_type.value,
                PeriodLock.operation == operation.value,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def acquire(
        self,
        period: Period,
        operation: LockOperation,
        actor_id: UUID,
        batch_id: UUID,
    ) -> None:
        """
        Take the lock with one conditional UPDATE.

        Preconditions: ``ensure_rows`` has committed the lock row.

        Raises:
            LockHeldError: another session holds a non-stale lock.
        """
        now = self._clock.now()
        cutoff = self._clock.seconds_ago(self._staleness_seconds)
        result = self.session.execute(
            update(PeriodLock)
            .where(
                PeriodLock.period_date == period.start,
                PeriodLock.period_type == period.period_type.value,
                PeriodLock.operation == operation.value,
                or_(
                    PeriodLock.status != LockStatus.HELD.value,
                    PeriodLock.acquired_at.is_(None),
                    PeriodLock.acquired_at < cutoff,
                ),
            )
            .values(
                status=LockStatus.HELD.value,
                acquired_by_id=actor_id,
                acquired_at=now,
                batch_id=batch_id,
                released_at=None,
                released_by_id=None,
                total_models=0,
                processed_models=0,
                failed_model_count=0,
                error_message=None,
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            holder = self._get_lock(period, operation)
            locked_by = holder.acquired_by_id if holder is not None else None
            locked_at = _as_utc(holder.acquired_at) if holder is not None else None
            logger.info(
                "period_lock_held",
                extra={
                    "period_code": period.code,
                    "operation": operation.value,
                    "locked_by": locked_by,
                    "locked_at": locked_at,
                },
            )
            raise LockHeldError(
                period.code,
                operation.value,
                str(locked_by) if locked_by else None,
                locked_at,
            )

        logger.info(
            "period_lock_acquired",
            extra={"period_code": period.code, "operation": operation.value},
        )

    def release(
        self,
        period: Period,
        operation: LockOperation,
        actor_id: UUID,
        batch_id: UUID,
        failed: bool = False,
        error: str | None = None,
    ) -> bool:
        """Release the lock held by ``batch_id``; returns False if not held by it."""
        status = LockStatus.FAILED if failed else LockStatus.RELEASED
        result = self.session.execute(
            update(PeriodLock)
            .where(
                PeriodLock.period_date == period.start,
                PeriodLock.period_type == period.period_type.value,
                PeriodLock.operation == operation.value,
                PeriodLock.status == LockStatus.HELD.value,
                PeriodLock.batch_id == batch_id,
            )
            .values(
                status=status.value,
                released_at=self._clock.now(),
                released_by_id=actor_id,
                error_message=error[:4000] if error else None,
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        released = result.rowcount == 1
        logger.info(
            "period_lock_released",
            extra={
                "period_code": period.code,
                "operation": operation.value,
                "status": status.value,
                "released": released,
            },
        )
        return released

    def record_progress(
        self,
        period: Period,
        operation: LockOperation,
        batch_id: UUID,
        total: int,
        processed: int,
        failed: int,
    ) -> None:
        self.session.execute(
            update(PeriodLock)
            .where(
                PeriodLock.period_date == period.start,
                PeriodLock.period_type == period.period_type.value,
                PeriodLock.operation == operation.value,
                PeriodLock.batch_id == batch_id,
            )
            .values(
                total_models=total,
                processed_models=processed,
                failed_model_count=failed,
            )
            .execution_options(synchronize_session=False)
        )

    def lock_info(self, period: Period, operation: LockOperation) -> LockInfo | None:
        lock = self._get_lock(period, operation)
        if lock is None:
            return None
        acquired_at = _as_utc(lock.acquired_at)
        stale = (
            lock.status == LockStatus.HELD.value
            and acquired_at is not None
            and acquired_at < self._clock.seconds_ago(self._staleness_seconds)
        )
        return LockInfo(
            operation=lock.operation,
            status=lock.status,
            acquired_by=lock.acquired_by_id,
            acquired_at=acquired_at,
            batch_id=lock.batch_id,
            stale=stale,
            total_models=lock.total_models,
            processed_models=lock.processed_models,
            failed_models=lock.failed_model_count,
        )

    # ------------------------------------------------------------------
    # Closure state
    # ------------------------------------------------------------------

    def get_closure(self, period: Period) -> PeriodClosure | None:
        """Closure row as currently committed; never served from the identity map."""
        return self.session.execute(
            select(PeriodClosure)
            .where(PeriodClosure.period_date == period.start)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def transition(
        self,
        period: Period,
        from_states: Iterable[ClosureState],
        to_state: ClosureState,
        expected_version: int,
        actor_id: UUID,
        **fields: Any,
    ) -> bool:
        """
        Compare-and-swap the closure state.

        Returns:
            True if this call moved the period to ``to_state``.
        """
        allowed = [s.value for s in from_states]
        result = self.session.execute(
            update(PeriodClosure)
            .where(
                PeriodClosure.period_date == period.start,
                PeriodClosure.state.in_(allowed),
                PeriodClosure.version == expected_version,
            )
            .values(
                state=to_state.value,
                version=PeriodClosure.version + 1,
                updated_by_id=actor_id,
                **fields,
            )
            .execution_options(synchronize_session=False)
        )
        moved = result.rowcount == 1
        if moved:
            logger.info(
                "period_state_changed",
                extra={
                    "period_code": period.code,
                    "from_states": allowed,
                    "to_state": to_state.value,
                },
            )
        else:
            logger.warning(
                "period_state_change_lost",
                extra={
                    "period_code": period.code,
                    "from_states": allowed,
                    "to_state": to_state.value,
                    "expected_version": expected_version,
                },
            )
        return moved

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def audit(
        self,
        period: Period,
        operation: str,
        event: str,
        status: str,
        actor_id: UUID,
        batch_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> ClosureAuditEntry:
        entry = ClosureAuditEntry(
            period_date=period.start,
            period_type=period.period_type.value,
            operation=operation,
            event=event,
            status=status,
            actor_id=actor_id,
            batch_id=batch_id,
            occurred_at=self._clock.now(),
            details=details,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def audit_trail(self, period: Period) -> list[ClosureAuditEntry]:
        return list(
            self.session.execute(
                select(ClosureAuditEntry)
                .where(ClosureAuditEntry.period_date == period.start)
                .order_by(ClosureAuditEntry.occurred_at, ClosureAuditEntry.event)
            ).scalars()
        )
