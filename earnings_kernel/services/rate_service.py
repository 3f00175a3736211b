"""
RateService -- exchange rates pinned to a live period.

Responsibility:
    Pin the EUR->USD, GBP->USD and USD->COP rates a period is computed
    with, and read them back.  Rates come from an external ``RateProvider``;
    this service never discovers rates itself.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - At most one pinned rate set per period (uq_period_rate_set).
    - Pinning is idempotent: once pinned, the provider is not consulted
      again for that period unless ``replace=True``.
    - Archived periods are corrected through the lifecycle manager's rate
      correction, never here.

Failure modes:
    - MissingRateError: nothing pinned and the provider has no rates.
    - InvalidExchangeRateError: a rate is not positive.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.periods import Period
from earnings_kernel.domain.values import ExchangeRateSet
from earnings_kernel.exceptions import MissingRateError
from earnings_kernel.logging_config import get_logger
from earnings_kernel.models.exchange_rate import PeriodRateSet
from earnings_kernel.services.base import BaseService

logger = get_logger("services.rates")


class RateProvider(Protocol):
    """Read-only source of the currently active rates."""

    def get_active_rates(self) -> ExchangeRateSet | None: ...


class StaticRateProvider:
    """Provider that always answers the same rate set (or none)."""

    def __init__(self, rates: ExchangeRateSet | None):
        self._rates = rates

    def get_active_rates(self) -> ExchangeRateSet | None:
        return self._rates


def _to_rate_set(row: PeriodRateSet) -> ExchangeRateSet:
    return ExchangeRateSet(
        eur_usd=row.eur_usd,
        gbp_usd=row.gbp_usd,
        usd_cop=row.usd_cop,
        scope=row.source,
    )


class RateService(BaseService[PeriodRateSet]):
    """Pins and reads per-period exchange rates."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _get_row(self, period: Period) -> PeriodRateSet | None:
        return self.session.execute(
            select(PeriodRateSet).where(PeriodRateSet.period_date == period.start)
        ).scalar_one_or_none()

    def get_pinned_rates(self, period: Period) -> ExchangeRateSet | None:
        row = self._get_row(period)
        return _to_rate_set(row) if row is not None else None

    def pin_rates(
        self,
        period: Period,
        rates: ExchangeRateSet,
        actor_id: UUID,
        source: str = "manual",
        replace: bool = False,
    ) -> ExchangeRateSet:
        """
        Pin ``rates`` to ``period``.

        Returns the rates in force afterwards: the existing set when one is
        already pinned and ``replace`` is False.
        """
        rates.validate()
        row = self._get_row(period)
        if row is not None and not replace:
            return _to_rate_set(row)

        now = self._clock.now()
        if row is None:
            row = PeriodRateSet(
                period_date=period.start,
                period_type=period.period_type.value,
                eur_usd=rates.eur_usd,
                gbp_usd=rates.gbp_usd,
                usd_cop=rates.usd_cop,
                source=source,
                pinned_at=now,
                created_by_id=actor_id,
            )
            self.session.add(row)
        else:
            row.eur_usd = rates.eur_usd
            row.gbp_usd = rates.gbp_usd
            row.usd_cop = rates.usd_cop
            row.source = source
            row.pinned_at = now
            row.touch(actor_id)
        self.session.flush()

        logger.info(
            "period_rates_pinned",
            extra={
                "period_code": period.code,
                "source": source,
                "replaced": replace,
                **rates.as_dict(),
            },
        )
        return ExchangeRateSet(
            eur_usd=rates.eur_usd,
            gbp_usd=rates.gbp_usd,
            usd_cop=rates.usd_cop,
            scope=source,
        )

    def rates_for_period(
        self,
        period: Period,
        provider: RateProvider | None,
        actor_id: UUID,
    ) -> ExchangeRateSet:
        """
        Pinned rates, pinning the provider's active rates on first use.

        Raises:
            MissingRateError: nothing pinned and no provider rates.
        """
        pinned = self.get_pinned_rates(period)
        if pinned is not None:
            return pinned
        active = provider.get_active_rates() if provider is not None else None
        if active is None:
            logger.warning("period_rates_missing", extra={"period_code": period.code})
            raise MissingRateError(period.code)
        return self.pin_rates(period, active, actor_id, source="provider")
