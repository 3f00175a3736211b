"""
earnings_services.earnings_service -- Live earnings of models and periods.

Responsibility:
    Wire the pure calculator and aggregator to the database: load a model's
    raw values and platform catalog, resolve the percentage and quota
    override chains, compute ModelEarnings, keep the stored live totals in
    step with every raw-value write, and summarize a period up the sede
    hierarchy.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  Flush-only:
    the caller owns the session and commits.

Invariants enforced:
    - Percentage chain: platform override -> group override -> default.
    - Minimum quota chain: group override -> highest enabled platform
      threshold -> default.
    - Live totals are recomputed from raw values, never incremented.
    - Archived, cleaning and closed periods are summarized from the archive
      so that a cleaned period still reports its historical totals.

Failure modes:
    - MissingRateError when a period with values has no pinned rates.
    - Everything LiveStoreService.record_value raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from earnings_engines.aggregation import GlobalSummary, PeriodAggregator, VisibilityScope
from earnings_engines.calculator import EarningsCalculator, resolve_percentage
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.freeze import FreezePolicy
from earnings_kernel.domain.periods import Period
from earnings_kernel.domain.values import (
    ExchangeRateSet,
    ModelEarnings,
    PlatformSpec,
    RawValue,
)
from earnings_kernel.exceptions import MissingRateError
from earnings_kernel.logging_config import get_logger
from earnings_kernel.models.period_closure import ClosureState
from earnings_kernel.selectors.earnings_selector import EarningsSelector, GroupOverrides
from earnings_kernel.services.archive_store import ArchiveStoreService
from earnings_kernel.services.live_store import LiveStoreService
from earnings_kernel.services.rate_service import RateService

logger = get_logger("services.earnings")

_ARCHIVE_BACKED_STATES = frozenset(
    {ClosureState.ARCHIVED, ClosureState.CLEANING, ClosureState.CLOSED}
)


@dataclass(frozen=True)
class ModelInputs:
    """Everything the calculator needs for one model and period."""

    model_id: UUID
    group_id: UUID | None
    raw_values: tuple[RawValue, ...]
    platforms: dict[str, PlatformSpec]
    min_quota: Decimal


class EarningsService:
    """
    Live earnings over the database.

    Contract:
        Receives the calculator (built from configuration) and the session;
        constructs its kernel collaborators on that same session.
    """

    def __init__(
        self,
        session: Session,
        calculator: EarningsCalculator,
        aggregator: PeriodAggregator | None = None,
        default_percentage: Decimal = Decimal("80"),
        default_min_quota: Decimal = Decimal("470"),
        default_currency: str = "USD",
        clock: Clock | None = None,
        freeze_policy: FreezePolicy | None = None,
    ):
        self._session = session
        self._calculator = calculator
        self._aggregator = aggregator or PeriodAggregator()
        self._default_percentage = default_percentage
        self._default_min_quota = default_min_quota
        self._default_currency = default_currency
        clock = clock or SystemClock()
        self._selector = EarningsSelector(session)
        self._live = LiveStoreService(session, clock, freeze_policy)
        self._rates = RateService(session, clock)
        self._archive = ArchiveStoreService(session, clock)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def platform_specs_for_group(self, group_id: UUID | None) -> dict[str, PlatformSpec]:
        """The platform catalog with percentages resolved for one group."""
        overrides = self._selector.group_overrides(group_id)
        return {
            entry.platform_code: PlatformSpec(
                platform_id=entry.platform_code,
                currency=entry.currency,
                percentage=resolve_percentage(
                    entry.percentage_override,
                    overrides.percentage_override,
                    self._default_percentage,
                ),
                min_quota=entry.min_quota,
                enabled=entry.enabled,
                rule_id=entry.rule_id,
            )
            for entry in self._selector.platform_catalog(self._default_currency)
        }

    def _min_quota(
        self,
        platforms: dict[str, PlatformSpec],
        overrides: GroupOverrides,
    ) -> Decimal:
        if overrides.min_quota_override is not None:
            return overrides.min_quota_override
        thresholds = [
            spec.min_quota
            for spec in platforms.values()
            if spec.enabled and spec.min_quota is not None
        ]
        return max(thresholds) if thresholds else self._default_min_quota

    def model_inputs(self, model_id: UUID, period: Period) -> ModelInputs:
        group_id = self._selector.model_group(model_id)
        platforms = self.platform_specs_for_group(group_id)
        return ModelInputs(
            model_id=model_id,
            group_id=group_id,
            raw_values=tuple(self._live.get_values(period, model_id)),
            platforms=platforms,
            min_quota=self._min_quota(platforms, self._selector.group_overrides(group_id)),
        )

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    def compute(
        self,
        model_id: UUID,
        period: Period,
        rates: ExchangeRateSet | None = None,
    ) -> ModelEarnings:
        """
        Earnings of one model from its live values.

        ``rates`` defaults to the rates pinned to the period.
        """
        if rates is None:
            rates = self._rates.get_pinned_rates(period)
            if rates is None:
                raise MissingRateError(period.code)
        inputs = self.model_inputs(model_id, period)
        return self._calculator.compute_model_earnings(
            model_id=model_id,
            raw_values=inputs.raw_values,
            platforms=inputs.platforms,
            rates=rates,
            min_quota=inputs.min_quota,
        )

    def record_value(
        self,
        model_id: UUID,
        platform_id: str,
        period: Period,
        amount: Decimal | int | str,
        actor_id: UUID,
    ) -> RawValue:
        """
        Write a raw value and refresh the model's stored totals.

        Totals are refreshed only once rates are pinned; before that the
        value is stored and the totals catch up on the next refresh.
        """
        value = self._live.record_value(model_id, platform_id, period, amount, actor_id)
        if self._rates.get_pinned_rates(period) is not None:
            self.refresh_totals(model_id, period, actor_id)
        return value

    def refresh_totals(
        self,
        model_id: UUID,
        period: Period,
        actor_id: UUID,
    ) -> ModelEarnings:
        earnings = self.compute(model_id, period)
        self._live.save_totals(period, earnings, actor_id)
        logger.debug(
            "model_totals_refreshed",
            extra={
                "period_code": period.code,
                "model_id": str(model_id),
                "total_model_usd": earnings.total_model_usd,
            },
        )
        return earnings

    def live_earnings(self, period: Period) -> list[ModelEarnings]:
        models = self._live.models_with_values(period)
        if not models:
            return []
        rates = self._rates.get_pinned_rates(period)
        if rates is None:
            raise MissingRateError(period.code)
        return [self.compute(model_id, period, rates) for model_id in models]

    # ------------------------------------------------------------------
    # Period rollup
    # ------------------------------------------------------------------

    def period_summary(
        self,
        period: Period,
        scope: VisibilityScope | None = None,
    ) -> GlobalSummary:
        """
        Group -> Sede -> Global totals of a period.

        Open periods are computed from live values; archived and closed
        periods from the archive, with each model in the group it belonged
        to when archived.
        """
        state = self._live.period_state(period)
        if state in _ARCHIVE_BACKED_STATES:
            earnings = self._archive.get_model_earnings(period)
            model_to_group = self._archive.archived_groups(period)
        else:
            earnings = self.live_earnings(period)
            model_to_group = self._selector.model_to_group()

        sedes = self._aggregator.aggregate(
            model_earnings=earnings,
            model_to_group=model_to_group,
            group_to_sede=self._selector.group_to_sede(),
            scope=scope,
        )
        summary = self._aggregator.global_summary(sedes)
        logger.info(
            "period_summary_computed",
            extra={
                "period_code": period.code,
                "state": state.value,
                "model_count": summary.model_count,
                "total_gross_usd": summary.total_gross_usd,
            },
        )
        return summary
