"""
earnings_services.period_lifecycle -- Archive, cleanup and reopen of periods.

Responsibility:
    Drive a half-month period through
    ``OPEN -> ARCHIVING -> ARCHIVED -> CLEANING -> CLOSED`` (and open the
    next period), plus the two out-of-band operations: emergency restore of
    a closed period and rate correction of an archived one.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Unlike every other service this manager owns its transaction
    boundaries: it receives a ``sessionmaker`` and runs each phase in its
    own short transaction, so that the lock and the intermediate state are
    visible to other admin sessions while the long phase runs.

Invariants enforced:
    - One archive / one cleanup per period at a time: PeriodLock rows taken
      by conditional UPDATE, with a staleness timeout for crashed holders.
    - cleanup never precedes a successful archive: closure state is checked
      and advanced by compare-and-swap.
    - The archive is self-consistent before the period leaves ARCHIVING:
      archived platform rows sum to each archived model total.
    - Each model is archived in its own savepoint; transient database
      errors are retried with exponential backoff, calculation errors are
      not.
    - cleanup phase 2 (delete, zero, unfreeze, close, open next, release)
      is one atomic unit; on failure the period returns to ARCHIVED.
    - Rate correction rewrites derived archive values of one period only;
      raw amounts and live data are untouched.

Failure modes:
    - LockHeldError / PrecedenceError (informational; re-poll ``status``).
    - PartialArchiveError: a first archive stored nothing usable or the
      snapshot is inconsistent; the period stays ARCHIVING and archive may
      be retried.  A failed resume of a partial archive leaves the period
      ARCHIVED.
    - ValidationError: cleanup pre-checks or restore preconditions failed.
    - RestoreNotConfirmedError, MissingRateError, InvalidExchangeRateError.

Usage:
    manager = PeriodLifecycleManager.from_config(
        get_session_factory(), get_active_config(), rate_provider=provider,
    )
    manager.archive(date(2025, 10, 1), admin_id)
    manager.cleanup(date(2025, 10, 1), admin_id)
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Callable, Generator, Iterable
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from earnings_config.schema import EarningsConfig
from earnings_engines.aggregation import GlobalSummary, VisibilityScope
from earnings_engines.calculator import EarningsCalculator
from earnings_engines.platform_rules import PlatformRuleSet
from earnings_kernel.db.types import ZERO
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.freeze import FreezePolicy
from earnings_kernel.domain.periods import Period, PeriodType
from earnings_kernel.domain.values import ExchangeRateSet, PlatformEarnings, PlatformSpec
from earnings_kernel.exceptions import (
    CalculationError,
    MissingRateError,
    PartialArchiveError,
    PrecedenceError,
    RestoreNotConfirmedError,
    ValidationError,
)
from earnings_kernel.logging_config import LogContext, get_logger
from earnings_kernel.models.period_closure import (
    ArchiveStatus,
    ClosureState,
    LockOperation,
)
from earnings_kernel.services.archive_store import ArchiveStoreService
from earnings_kernel.services.live_store import LiveStoreService
from earnings_kernel.services.period_lock_service import PeriodLockService
from earnings_kernel.services.rate_service import RateProvider, RateService
from earnings_services._lifecycle_types import (
    ArchiveResult,
    CleanupResult,
    CleanupStats,
    CleanupValidation,
    PeriodStatusInfo,
    RateCorrectionResult,
    RestoreResult,
)
from earnings_services.earnings_service import EarningsService

logger = get_logger("services.period_lifecycle")

_ARCHIVE_ENTRY_STATES = (ClosureState.OPEN, ClosureState.ARCHIVING)
_CORRECTABLE_STATES = (ClosureState.ARCHIVED, ClosureState.CLEANING, ClosureState.CLOSED)


def _values(states: Iterable[ClosureState]) -> tuple[str, ...]:
    return tuple(s.value for s in states)


def _error_code(exc: Exception) -> str:
    return getattr(exc, "code", type(exc).__name__)


class PeriodLifecycleManager:
    """
    Period lifecycle state machine over persisted lock and closure rows.

    Contract:
        Every public method takes the period's start date and the acting
        admin's id.  Each method opens, commits and closes its own
        sessions; callers never pass a session in.

    Non-goals:
        - Does NOT authenticate ``actor_id``; it is recorded only.
        - Does NOT schedule anything; it is invoked by admin sessions.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        calculator: EarningsCalculator,
        rate_provider: RateProvider | None = None,
        clock: Clock | None = None,
        *,
        lock_staleness_seconds: int = 1800,
        archive_max_retries: int = 3,
        archive_retry_backoff_seconds: float = 1.0,
        default_percentage: Decimal = Decimal("80"),
        default_min_quota: Decimal = Decimal("470"),
        default_currency: str = "USD",
        freeze_policy: FreezePolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._calculator = calculator
        self._rate_provider = rate_provider
        self._clock = clock or SystemClock()
        self._staleness = lock_staleness_seconds
        self._max_retries = max(1, archive_max_retries)
        self._backoff = archive_retry_backoff_seconds
        self._default_percentage = default_percentage
        self._default_min_quota = default_min_quota
        self._default_currency = default_currency
        self._freeze_policy = freeze_policy
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        session_factory: sessionmaker[Session],
        config: EarningsConfig,
        rate_provider: RateProvider | None = None,
        clock: Clock | None = None,
        freeze_policy: FreezePolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> PeriodLifecycleManager:
        settings = config.settings
        calculator = EarningsCalculator(
            PlatformRuleSet(config.platform_rules),
            advance_ratio=settings.advance_ratio,
        )
        return cls(
            session_factory,
            calculator,
            rate_provider=rate_provider,
            clock=clock,
            lock_staleness_seconds=settings.lifecycle.lock_staleness_seconds,
            archive_max_retries=settings.lifecycle.archive_max_retries,
            archive_retry_backoff_seconds=settings.lifecycle.archive_retry_backoff_seconds,
            default_percentage=settings.default_percentage,
            default_min_quota=settings.default_min_quota,
            default_currency=settings.default_currency,
            freeze_policy=freeze_policy,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _locks(self, session: Session) -> PeriodLockService:
        return PeriodLockService(session, self._clock, self._staleness)

    def earnings_service(self, session: Session) -> EarningsService:
        """An EarningsService on ``session`` sharing this manager's settings."""
        return EarningsService(
            session,
            self._calculator,
            default_percentage=self._default_percentage,
            default_min_quota=self._default_min_quota,
            default_currency=self._default_currency,
            clock=self._clock,
            freeze_policy=self._freeze_policy,
        )

    def _ensure_rows(self, period: Period, actor_id: UUID) -> None:
        with self._transaction() as session:
            self._locks(session).ensure_rows(period, actor_id)

    def _fail_lock(
        self,
        period: Period,
        operation: LockOperation,
        actor_id: UUID,
        batch_id: UUID,
        event: str,
        exc: Exception,
        details: dict[str, Any] | None = None,
        revert_to: ClosureState | None = None,
        revert_from: ClosureState = ClosureState.CLEANING,
    ) -> None:
        """
        Release a lock as failed after the work transaction rolled back.

        With ``revert_to``, a period still in ``revert_from`` is moved back
        to the state it held before the operation began.
        """
        try:
            with self._transaction() as session:
                locks = self._locks(session)
                if revert_to is not None:
                    closure = locks.get_closure(period)
                    if closure is not None and closure.closure_state is revert_from:
                        locks.transition(
                            period,
                            [revert_from],
                            revert_to,
                            closure.version,
                            actor_id,
                        )
                locks.release(
                    period, operation, actor_id, batch_id, failed=True, error=str(exc)
                )
                locks.audit(
                    period,
                    operation.value,
                    event,
                    "failed",
                    actor_id,
                    batch_id,
                    details={"error": str(exc), "error_code": _error_code(exc), **(details or {})},
                )
        except SQLAlchemyError:
            # The lock then expires through the staleness timeout.
            logger.exception(
                "period_lock_release_failed",
                extra={"period_code": period.code, "operation": operation.value},
            )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self, period_date: date) -> PeriodStatusInfo:
        period = Period.from_start(period_date)
        with self._transaction() as session:
            locks = self._locks(session)
            closure = locks.get_closure(period)
            lock_infos = tuple(
                info
                for info in (locks.lock_info(period, op) for op in LockOperation)
                if info is not None
            )
            if closure is None:
                state, version, archive_status, failed = ClosureState.OPEN, 0, None, {}
            else:
                state = closure.closure_state
                version = closure.version
                archive_status = closure.archive_status
                failed = dict(closure.failed_models or {})

        return PeriodStatusInfo(
            period_code=period.code,
            state=state.value,
            archived=state in _CORRECTABLE_STATES,
            in_progress=any(info.in_progress for info in lock_infos),
            version=version,
            archive_status=archive_status,
            failed_models=failed,
            locks=lock_infos,
        )

    def _validate_cleanup(self, session: Session, period: Period) -> CleanupValidation:
        closure = self._locks(session).get_closure(period)
        live = LiveStoreService(session, self._clock)
        archive = ArchiveStoreService(session, self._clock)

        errors: list[str] = []
        state = closure.closure_state if closure is not None else ClosureState.OPEN
        if state is not ClosureState.ARCHIVED:
            errors.append(f"period is {state.value}; cleanup requires archived")
        elif closure.is_partial:
            failed = ", ".join(sorted(closure.failed_models or {}))
            errors.append(f"archive is partial (failed models: {failed})")

        if archive.get_rate_set(period) is None:
            errors.append("archived exchange rate set is missing")

        archived_ids = archive.archived_model_ids(period)
        live_ids = live.models_with_values(period)
        missing = [m for m in live_ids if m not in archived_ids]
        if missing:
            errors.append(f"{len(missing)} model(s) with live values are not archived")

        archived_records = archive.count_values(period)
        live_records = live.count_values(period)
        if archived_records < live_records:
            errors.append(
                f"archive holds {archived_records} record(s) but "
                f"{live_records} live value(s) exist"
            )

        live_totals = live.get_totals(period)
        archived_totals = archive.archived_total_rows(period)

        return CleanupValidation(
            can_cleanup=not errors,
            validation_errors=tuple(errors),
            stats=CleanupStats(
                models_in_archive=len(archived_ids),
                models_with_values=len(live_ids),
                archived_records=archived_records,
                live_records=live_records,
                live_totals=len(live_totals),
                live_model_usd=sum((t.total_model_usd for t in live_totals), ZERO),
                archived_model_usd=sum((t.total_model_usd for t in archived_totals), ZERO),
            ),
        )

    def cleanup_validation(
        self, period_date: date, actor_id: UUID | None = None
    ) -> CleanupValidation:
        """Pre-checks of ``cleanup``; read-only."""
        period = Period.from_start(period_date)
        with self._transaction() as session:
            validation = self._validate_cleanup(session, period)
        logger.info(
            "cleanup_validation_checked",
            extra={
                "period_code": period.code,
                "actor_id": actor_id,
                "can_cleanup": validation.can_cleanup,
                "errors": list(validation.validation_errors),
            },
        )
        return validation

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    def archive(self, period_date: date, actor_id: UUID) -> ArchiveResult:
        """
        Snapshot every model of the period into the archive.

        Phase 1 (own transaction): take the archive lock, check the state,
        pin the rates, move to ARCHIVING.  Phase 2 (own transaction):
        archive model by model, verify, move to ARCHIVED, release.
        """
        period = Period.from_start(period_date)
        batch_id = uuid4()
        with LogContext.bind(period_code=period.code, actor_id=actor_id, batch_id=batch_id):
            logger.info("period_archive_started")
            self._ensure_rows(period, actor_id)
            resuming = self._begin_archive(period, actor_id, batch_id)
            try:
                with self._transaction() as session:
                    result = self._archive_models(session, period, actor_id, batch_id)
            except PartialArchiveError as exc:
                self._fail_lock(
                    period,
                    LockOperation.ARCHIVE,
                    actor_id,
                    batch_id,
                    "archive_error",
                    exc,
                    details={"failed_models": exc.failed_models},
                )
                raise
            except Exception as exc:
                # A rolled-back resume leaves the earlier partial archive intact.
                self._fail_lock(
                    period,
                    LockOperation.ARCHIVE,
                    actor_id,
                    batch_id,
                    "archive_error",
                    exc,
                    revert_to=ClosureState.ARCHIVED if resuming else None,
                    revert_from=ClosureState.ARCHIVING,
                )
                raise

            logger.info(
                "period_archive_completed",
                extra={
                    "archive_status": result.archive_status,
                    "models_archived": result.models_archived,
                    "records_archived": result.records_archived,
                    "failed_models": result.failed_models,
                },
            )
            return result

    def _begin_archive(self, period: Period, actor_id: UUID, batch_id: UUID) -> bool:
        """Move the period to ARCHIVING.  Returns True when resuming a partial archive."""
        # Any error rolls back the lock acquisition as well.
        with self._transaction() as session:
            locks = self._locks(session)
            locks.acquire(period, LockOperation.ARCHIVE, actor_id, batch_id)

            closure = locks.get_closure(period)
            state = closure.closure_state
            resuming = state is ClosureState.ARCHIVED and closure.is_partial
            if state not in _ARCHIVE_ENTRY_STATES and not resuming:
                logger.info("period_archive_rejected", extra={"state": state.value})
                raise PrecedenceError(
                    period.code, "archive", state.value, _values(_ARCHIVE_ENTRY_STATES)
                )

            # Rates are pinned before the period stops accepting values
            if ArchiveStoreService(session, self._clock).get_rate_set(period) is None:
                RateService(session, self._clock).rates_for_period(
                    period, self._rate_provider, actor_id
                )

            if state is not ClosureState.ARCHIVING and not locks.transition(
                period, [state], ClosureState.ARCHIVING, closure.version, actor_id
            ):
                current = locks.get_closure(period).state
                raise PrecedenceError(
                    period.code, "archive", current, _values(_ARCHIVE_ENTRY_STATES)
                )

            locks.audit(
                period,
                LockOperation.ARCHIVE.value,
                "archive_start",
                "started",
                actor_id,
                batch_id,
                details={"from_state": state.value},
            )
            return resuming

    def _archive_models(
        self,
        session: Session,
        period: Period,
        actor_id: UUID,
        batch_id: UUID,
    ) -> ArchiveResult:
        locks = self._locks(session)
        live = LiveStoreService(session, self._clock)
        archive = ArchiveStoreService(session, self._clock)
        earnings = self.earnings_service(session)

        rates = archive.get_rate_set(period) or RateService(
            session, self._clock
        ).get_pinned_rates(period)
        if rates is None:
            raise MissingRateError(period.code)
        archive.write_rate_set(period, rates, batch_id, actor_id)

        already = archive.archived_model_ids(period)
        pending = [m for m in live.models_with_values(period) if m not in already]

        failed: dict[str, str] = {}
        models_archived = 0
        records_archived = 0
        for index, model_id in enumerate(pending, start=1):
            with LogContext.bind(model_id=model_id):
                try:
                    records_archived += self._archive_model(
                        session, earnings, archive, period, model_id, rates, batch_id, actor_id
                    )
                    models_archived += 1
                except (CalculationError, SQLAlchemyError) as exc:
                    failed[str(model_id)] = str(exc)
                    logger.warning(
                        "model_archive_failed",
                        extra={"error_code": _error_code(exc), "error": str(exc)},
                    )
            locks.record_progress(
                period,
                LockOperation.ARCHIVE,
                batch_id,
                total=len(pending),
                processed=index,
                failed=len(failed),
            )

        # A resume that archives nothing new keeps the earlier partial snapshot.
        inconsistent = archive.consistency_errors(period)
        if inconsistent or (pending and models_archived == 0 and not already):
            failed.update(inconsistent)
            logger.error(
                "period_archive_aborted",
                extra={"failed_models": failed, "inconsistent": sorted(inconsistent)},
            )
            raise PartialArchiveError(period.code, failed)

        archive_status = ArchiveStatus.PARTIAL if failed else ArchiveStatus.COMPLETE
        total_models = len(archive.archived_model_ids(period))
        total_records = archive.count_values(period)
        closure = locks.get_closure(period)
        if not locks.transition(
            period,
            [ClosureState.ARCHIVING],
            ClosureState.ARCHIVED,
            closure.version,
            actor_id,
            archive_status=archive_status.value,
            archive_batch_id=batch_id,
            archived_at=self._clock.now(),
            archived_by_id=actor_id,
            failed_models=failed or None,
            models_archived=total_models,
            records_archived=total_records,
        ):
            raise PrecedenceError(
                period.code, "archive", closure.state, (ClosureState.ARCHIVING.value,)
            )
        locks.release(period, LockOperation.ARCHIVE, actor_id, batch_id)
        locks.audit(
            period,
            LockOperation.ARCHIVE.value,
            "archive_complete",
            archive_status.value,
            actor_id,
            batch_id,
            details={
                "models_archived": models_archived,
                "records_archived": records_archived,
                "failed_models": failed,
            },
        )
        return ArchiveResult(
            period_code=period.code,
            batch_id=batch_id,
            archive_status=archive_status.value,
            models_archived=total_models,
            records_archived=total_records,
            failed_models=failed,
        )

    def _archive_model(
        self,
        session: Session,
        earnings: EarningsService,
        archive: ArchiveStoreService,
        period: Period,
        model_id: UUID,
        rates: ExchangeRateSet,
        batch_id: UUID,
        actor_id: UUID,
    ) -> int:
        attempt = 0
        while True:
            attempt += 1
            try:
                with session.begin_nested():
                    inputs = earnings.model_inputs(model_id, period)
                    model_earnings = self._calculator.compute_model_earnings(
                        model_id=model_id,
                        raw_values=inputs.raw_values,
                        platforms=inputs.platforms,
                        rates=rates,
                        min_quota=inputs.min_quota,
                    )
                    return archive.write_model_snapshot(
                        period,
                        model_earnings,
                        inputs.raw_values,
                        inputs.platforms,
                        inputs.group_id,
                        batch_id,
                        actor_id,
                    )
            except SQLAlchemyError as exc:
                if attempt >= self._max_retries:
                    raise
                delay = self._backoff * (2 ** (attempt - 1))
                logger.warning(
                    "model_archive_retry",
                    extra={"attempt": attempt, "delay_seconds": delay, "error": str(exc)},
                )
                self._sleep(delay)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def cleanup(self, period_date: date, actor_id: UUID) -> CleanupResult:
        """
        Clear the live side of an archived period and open the next one.

        Phase 1 commits ARCHIVED -> CLEANING under the cleanup lock; from
        then on writes to the period are rejected.  Phase 2 is atomic.
        """
        period = Period.from_start(period_date)
        batch_id = uuid4()
        with LogContext.bind(period_code=period.code, actor_id=actor_id, batch_id=batch_id):
            logger.info("period_cleanup_started")
            self._ensure_rows(period, actor_id)
            self._begin_cleanup(period, actor_id, batch_id)
            try:
                with self._transaction() as session:
                    result = self._clear_period(session, period, actor_id, batch_id)
            except Exception as exc:
                self._fail_lock(
                    period,
                    LockOperation.CLEANUP,
                    actor_id,
                    batch_id,
                    "cleanup_error",
                    exc,
                    revert_to=ClosureState.ARCHIVED,
                )
                raise

            logger.info(
                "period_cleanup_completed",
                extra={
                    "values_deleted": result.values_deleted,
                    "next_period_code": result.next_period_code,
                },
            )
            return result

    def _begin_cleanup(self, period: Period, actor_id: UUID, batch_id: UUID) -> None:
        with self._transaction() as session:
            locks = self._locks(session)
            closure = locks.get_closure(period)
            state = closure.closure_state
            if state is not ClosureState.ARCHIVED:
                logger.info("period_cleanup_rejected", extra={"state": state.value})
                raise PrecedenceError(
                    period.code, "cleanup", state.value, (ClosureState.ARCHIVED.value,)
                )

            validation = self._validate_cleanup(session, period)
            if not validation.can_cleanup:
                logger.warning(
                    "period_cleanup_validation_failed",
                    extra={"errors": list(validation.validation_errors)},
                )
                raise ValidationError(period.code, list(validation.validation_errors))

            locks.acquire(period, LockOperation.CLEANUP, actor_id, batch_id)
            if not locks.transition(
                period, [ClosureState.ARCHIVED], ClosureState.CLEANING, closure.version, actor_id
            ):
                current = locks.get_closure(period).state
                raise PrecedenceError(
                    period.code, "cleanup", current, (ClosureState.ARCHIVED.value,)
                )
            locks.audit(
                period,
                LockOperation.CLEANUP.value,
                "cleanup_start",
                "started",
                actor_id,
                batch_id,
                details={
                    "models_in_archive": validation.stats.models_in_archive,
                    "live_records": validation.stats.live_records,
                },
            )

    def _clear_period(
        self,
        session: Session,
        period: Period,
        actor_id: UUID,
        batch_id: UUID,
    ) -> CleanupResult:
        locks = self._locks(session)
        live = LiveStoreService(session, self._clock)

        values_deleted = live.delete_period_values(period)
        totals_zeroed = live.zero_period_totals(period, actor_id)
        platforms_unfrozen = live.unfreeze_period(period)

        now = self._clock.now()
        closure = locks.get_closure(period)
        if not locks.transition(
            period,
            [ClosureState.CLEANING],
            ClosureState.CLOSED,
            closure.version,
            actor_id,
            cleaned_at=now,
            cleaned_by_id=actor_id,
        ):
            raise PrecedenceError(
                period.code, "cleanup", closure.state, (ClosureState.CLEANING.value,)
            )

        next_period = period.next()
        locks.ensure_closure(next_period, actor_id)
        locks.release(period, LockOperation.CLEANUP, actor_id, batch_id)
        locks.audit(
            period,
            LockOperation.CLEANUP.value,
            "cleanup_complete",
            "completed",
            actor_id,
            batch_id,
            details={
                "values_deleted": values_deleted,
                "totals_zeroed": totals_zeroed,
                "platforms_unfrozen": platforms_unfrozen,
                "next_period": next_period.code,
            },
        )
        return CleanupResult(
            period_code=period.code,
            batch_id=batch_id,
            values_deleted=values_deleted,
            totals_zeroed=totals_zeroed,
            platforms_unfrozen=platforms_unfrozen,
            next_period_code=next_period.code,
            cleaned_at=now,
        )

    # ------------------------------------------------------------------
    # Out-of-band operations
    # ------------------------------------------------------------------

    def restore(
        self,
        period_date: date,
        actor_id: UUID,
        confirm_irreversible: bool = False,
    ) -> RestoreResult:
        """
        Emergency: put a closed period's archived values back live.

        Refused while the next period already has live values, since the
        restored period would then shadow newer work.  Not idempotent.
        """
        period = Period.from_start(period_date)
        if not confirm_irreversible:
            raise RestoreNotConfirmedError(period.code)

        with LogContext.bind(period_code=period.code, actor_id=actor_id):
            with self._transaction() as session:
                locks = self._locks(session)
                closure = locks.get_closure(period)
                state = closure.closure_state if closure is not None else ClosureState.OPEN
                if state is not ClosureState.CLOSED:
                    raise PrecedenceError(
                        period.code, "restore", state.value, (ClosureState.CLOSED.value,)
                    )

                live = LiveStoreService(session, self._clock)
                next_period = period.next()
                if live.count_values(next_period) > 0:
                    raise ValidationError(
                        period.code,
                        [f"next period {next_period.code} already has live values"],
                    )

                archive = ArchiveStoreService(session, self._clock)
                restored = live.restore_values(
                    period, archive.archived_raw_values(period), actor_id
                )
                historical = archive.get_model_earnings(period)
                for model_earnings in historical:
                    live.save_totals(period, model_earnings, actor_id)

                if not locks.transition(
                    period,
                    [ClosureState.CLOSED],
                    ClosureState.ARCHIVED,
                    closure.version,
                    actor_id,
                ):
                    raise PrecedenceError(
                        period.code, "restore", closure.state, (ClosureState.CLOSED.value,)
                    )
                locks.audit(
                    period,
                    "restore",
                    "restore_complete",
                    "completed",
                    actor_id,
                    details={"values_restored": restored, "models_restored": len(historical)},
                )

            logger.warning(
                "period_restored",
                extra={"values_restored": restored, "models_restored": len(historical)},
            )
            return RestoreResult(
                period_code=period.code,
                values_restored=restored,
                models_restored=len(historical),
            )

    def recompute_archived_period(
        self,
        period_date: date,
        period_type: PeriodType | str,
        new_rates: ExchangeRateSet,
        admin_id: UUID,
    ) -> RateCorrectionResult:
        """
        Replace an archived period's rates and recompute its archive.

        Only counted archive rows are recomputed, each with the percentage
        and rule it was archived with.  One transaction.
        """
        period = Period.from_parts(period_date, period_type)
        new_rates.validate()

        with LogContext.bind(period_code=period.code, actor_id=admin_id):
            with self._transaction() as session:
                locks = self._locks(session)
                closure = locks.get_closure(period)
                state = closure.closure_state if closure is not None else ClosureState.OPEN
                if state not in _CORRECTABLE_STATES:
                    logger.info("rate_correction_rejected", extra={"state": state.value})
                    raise PrecedenceError(
                        period.code,
                        "recompute rates for",
                        state.value,
                        _values(_CORRECTABLE_STATES),
                    )

                archive = ArchiveStoreService(session, self._clock)
                if archive.get_rate_row_for_update(period) is None:
                    raise MissingRateError(period.code)
                before = archive.get_rate_set(period)

                per_platform: dict[tuple[UUID, str], PlatformEarnings] = {}
                by_model: dict[UUID, list[PlatformEarnings]] = defaultdict(list)
                for row in archive.archived_value_rows(period):
                    if not row.counted:
                        continue
                    spec = PlatformSpec(
                        platform_id=row.platform_code,
                        currency=row.currency,
                        percentage=row.platform_percentage,
                        rule_id=row.rule_id,
                    )
                    entry = self._calculator.compute_platform_earnings(
                        spec, row.raw_amount, new_rates
                    )
                    per_platform[(row.model_id, row.platform_code)] = entry
                    by_model[row.model_id].append(entry)

                totals = {
                    row.model_id: self._calculator.totals(
                        row.model_id, by_model.get(row.model_id, ()), new_rates
                    )
                    for row in archive.archived_total_rows(period)
                }
                revision = archive.apply_rate_correction(
                    period, new_rates, per_platform, totals, admin_id
                )
                locks.audit(
                    period,
                    "rate_correction",
                    "rate_correction_applied",
                    "completed",
                    admin_id,
                    details={
                        "revision": revision,
                        "before": before.as_dict(),
                        "after": new_rates.as_dict(),
                    },
                )

            logger.info(
                "archived_period_recomputed",
                extra={
                    "revision": revision,
                    "models_recomputed": len(totals),
                    "records_recomputed": len(per_platform),
                },
            )
            return RateCorrectionResult(
                period_code=period.code,
                revision=revision,
                models_recomputed=len(totals),
                records_recomputed=len(per_platform),
                before=before.as_dict(),
                after=new_rates.as_dict(),
            )

    # ------------------------------------------------------------------
    # Freezes and reporting
    # ------------------------------------------------------------------

    def freeze_platforms(
        self,
        period_date: date,
        model_id: UUID,
        platform_ids: Iterable[str],
        actor_id: UUID,
    ) -> frozenset[str]:
        """Close platforms' connection windows for a model; returns the newly frozen."""
        period = Period.from_start(period_date)
        with self._transaction() as session:
            live = LiveStoreService(session, self._clock)
            return live.freeze_platforms(period, model_id, platform_ids, actor_id)

    def period_summary(
        self,
        period_date: date,
        scope: VisibilityScope | None = None,
    ) -> GlobalSummary:
        period = Period.from_start(period_date)
        with self._transaction() as session:
            return self.earnings_service(session).period_summary(period, scope)
