"""
LiveStoreService -- raw values, live totals and freezes of open periods.

Responsibility:
    Owns every write to the live side of a period: the models' raw platform
    values, the stored per-model totals, and the frozen-platform set.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.
    Called by EarningsService for model writes and by the lifecycle manager
    for cleanup / restore.

Invariants enforced:
    - One raw value per (model, platform, period); writes upsert.
    - Raw amounts are never negative.
    - Writes are accepted only while the period's closure state is OPEN
      (a period without a closure row is OPEN).  The state is read inside
      the writer's transaction, so once CLEANING is committed every later
      write is rejected.
    - A frozen platform's raw value is read-only.

Failure modes:
    - NegativeAmountError, PeriodNotOpenError, FrozenPlatformError.
    - IntegrityError on a lost insert race for the same raw value; the
      caller's transaction rolls back and may retry.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from earnings_kernel.db.types import ZERO, to_decimal
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.freeze import FreezePolicy, NeverFreeze
from earnings_kernel.domain.periods import Period
from earnings_kernel.domain.values import ModelEarnings, RawValue
from earnings_kernel.exceptions import (
    FrozenPlatformError,
    NegativeAmountError,
    PeriodNotOpenError,
)
from earnings_kernel.logging_config import get_logger
from earnings_kernel.models.frozen_platform import FrozenPlatform
from earnings_kernel.models.model_value import ModelPeriodTotal, ModelValue
from earnings_kernel.models.period_closure import ClosureState, PeriodClosure
from earnings_kernel.selectors.earnings_selector import EarningsSelector, LiveTotals
from earnings_kernel.services.base import BaseService

logger = get_logger("services.live_store")


class LiveStoreService(BaseService[ModelValue]):
    """
    Writes to the live side of a period.

    Guarantees:
        - ``record_value`` consults the freeze policy and records the freeze
          the first time it answers True for a (model, platform, period).
        - ``delete_period_values`` / ``zero_period_totals`` /
          ``unfreeze_period`` touch the given period only.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        freeze_policy: FreezePolicy | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._freeze_policy = freeze_policy or NeverFreeze()
        self._selector = EarningsSelector(session)

    # ------------------------------------------------------------------
    # Raw values
    # ------------------------------------------------------------------

    def period_state(self, period: Period) -> ClosureState:
        state = self.session.execute(
            select(PeriodClosure.state).where(PeriodClosure.period_date == period.start)
        ).scalar_one_or_none()
        return ClosureState(state) if state is not None else ClosureState.OPEN

    def record_value(
        self,
        model_id: UUID,
        platform_id: str,
        period: Period,
        amount: Decimal | int | str,
        actor_id: UUID,
    ) -> RawValue:
        """
        Insert or update a model's raw value.

        Raises:
            NegativeAmountError: amount < 0.
            PeriodNotOpenError: the period is archiving, archived or closed.
            FrozenPlatformError: the platform is frozen for this model.
        """
        amount = to_decimal(amount)
        if amount < 0:
            raise NegativeAmountError(platform_id, amount)

        state = self.period_state(period)
        if state is not ClosureState.OPEN:
            logger.warning(
                "model_value_rejected_period_not_open",
                extra={"period_code": period.code, "state": state.value},
            )
            raise PeriodNotOpenError(period.code, state.value)

        if platform_id in self.frozen_platforms(period, model_id):
            raise FrozenPlatformError(str(model_id), platform_id, period.code)
        if self._freeze_policy.is_frozen(platform_id, self._clock.now()):
            self.freeze_platforms(period, model_id, [platform_id], actor_id, reason="policy")
            raise FrozenPlatformError(str(model_id), platform_id, period.code)

        row = self.session.execute(
            select(ModelValue).where(
                ModelValue.model_id == model_id,
                ModelValue.platform_code == platform_id,
                ModelValue.period_date == period.start,
            )
        ).scalar_one_or_none()
        if row is None:
            row = ModelValue(
                model_id=model_id,
                platform_code=platform_id,
                period_date=period.start,
                period_type=period.period_type.value,
                amount=amount,
                created_by_id=actor_id,
            )
            self.session.add(row)
        else:
            row.amount = amount
            row.touch(actor_id)
        self.session.flush()

        logger.info(
            "model_value_recorded",
            extra={
                "period_code": period.code,
                "model_id": str(model_id),
                "platform_id": platform_id,
                "amount": amount,
            },
        )
        return RawValue(model_id=model_id, platform_id=platform_id, amount=amount)

    def get_values(self, period: Period, model_id: UUID | None = None) -> list[RawValue]:
        return self._selector.raw_values(period, model_id)

    def models_with_values(self, period: Period) -> list[UUID]:
        return self._selector.models_with_values(period)

    def count_values(self, period: Period) -> int:
        return self._selector.count_values(period)

    def get_totals(self, period: Period) -> list[LiveTotals]:
        return self._selector.live_totals(period)

    def delete_period_values(self, period: Period) -> int:
        result = self.session.execute(
            delete(ModelValue).where(ModelValue.period_date == period.start)
        )
        self.session.flush()
        return result.rowcount

    def restore_values(
        self,
        period: Period,
        values: Iterable[RawValue],
        actor_id: UUID,
    ) -> int:
        """Re-insert archived raw values; bypasses the OPEN/freeze checks."""
        count = 0
        for value in values:
            self.session.add(
                ModelValue(
                    model_id=value.model_id,
                    platform_code=value.platform_id,
                    period_date=period.start,
                    period_type=period.period_type.value,
                    amount=value.amount,
                    created_by_id=actor_id,
                )
            )
            count += 1
        self.session.flush()
        return count

    # ------------------------------------------------------------------
    # Live totals
    # ------------------------------------------------------------------

    def save_totals(
        self,
        period: Period,
        earnings: ModelEarnings,
        actor_id: UUID,
    ) -> ModelPeriodTotal:
        row = self.session.execute(
            select(ModelPeriodTotal).where(
                ModelPeriodTotal.model_id == earnings.model_id,
                ModelPeriodTotal.period_date == period.start,
            )
        ).scalar_one_or_none()
        if row is None:
            row = ModelPeriodTotal(
                model_id=earnings.model_id,
                period_date=period.start,
                period_type=period.period_type.value,
                created_by_id=actor_id,
            )
            self.session.add(row)
        else:
            row.touch(actor_id)
        row.total_gross_usd = earnings.total_gross_usd
        row.total_model_usd = earnings.total_model_usd
        row.total_cop_model = earnings.total_cop_model
        self.session.flush()
        return row

    def zero_period_totals(self, period: Period, actor_id: UUID) -> int:
        result = self.session.execute(
            update(ModelPeriodTotal)
            .where(ModelPeriodTotal.period_date == period.start)
            .values(
                total_gross_usd=ZERO,
                total_model_usd=ZERO,
                total_cop_model=ZERO,
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.flush()
        return result.rowcount

    # ------------------------------------------------------------------
    # Freezes
    # ------------------------------------------------------------------

    def frozen_platforms(self, period: Period, model_id: UUID) -> frozenset[str]:
        rows = self.session.execute(
            select(FrozenPlatform.platform_code).where(
                FrozenPlatform.period_date == period.start,
                FrozenPlatform.model_id == model_id,
            )
        ).scalars()
        return frozenset(rows)

    def freeze_platforms(
        self,
        period: Period,
        model_id: UUID,
        platform_ids: Iterable[str],
        actor_id: UUID,
        reason: str = "manual",
    ) -> frozenset[str]:
        """Freeze platforms for a model; returns the ones newly frozen."""
        already = self.frozen_platforms(period, model_id)
        now = self._clock.now()
        added = set()
        for platform_id in sorted(set(platform_ids) - already):
            self.session.add(
                FrozenPlatform(
                    model_id=model_id,
                    platform_code=platform_id,
                    period_date=period.start,
                    period_type=period.period_type.value,
                    frozen_at=now,
                    reason=reason,
                    created_by_id=actor_id,
                )
            )
            added.add(platform_id)
        self.session.flush()
        if added:
            logger.info(
                "platforms_frozen",
                extra={
                    "period_code": period.code,
                    "model_id": str(model_id),
                    "platform_ids": sorted(added),
                    "reason": reason,
                },
            )
        return frozenset(added)

    def unfreeze_period(self, period: Period) -> int:
        result = self.session.execute(
            delete(FrozenPlatform).where(FrozenPlatform.period_date == period.start)
        )
        self.session.flush()
        return result.rowcount
