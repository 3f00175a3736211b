"""
earnings_engines.calculator -- Per-model earnings for one period.

Responsibility:
    Turn a model's raw platform values into per-platform and total earnings:
    gross USD, the model's USD share, the share in COP, the minimum-quota
    alert and the maximum advance the model may request.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by EarningsService (live totals), ArchiveStoreService (archive
    snapshot) and the lifecycle manager (rate correction).

Invariants enforced:
    - sum(per-platform model_usd) == total_model_usd exactly (Decimal sums,
      no intermediate rounding).
    - total_agency_usd is the residual gross - model.
    - Full-share platforms bypass the percentage split.

Failure modes:
    - MissingRateError when no rate set is supplied.
    - InvalidExchangeRateError when a rate is zero or negative.
    - UnknownPlatformError when a raw value names a platform absent from
      the catalog handed in.
    - UnsupportedCurrencyError from the rule set.

Usage:
    calculator = EarningsCalculator(PlatformRuleSet(config.platform_rules))
    earnings = calculator.compute_model_earnings(
        model_id=model_id,
        raw_values=[RawValue(model_id, "big7", Decimal("100"))],
        platforms={"big7": PlatformSpec("big7", "EUR", Decimal("80"))},
        rates=ExchangeRateSet(Decimal("1.01"), Decimal("1.20"), Decimal("3900")),
    )
    earnings.total_model_usd  # 67.872
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from uuid import UUID

from earnings_engines.platform_rules import PlatformRuleSet
from earnings_engines.tracer import traced_engine
from earnings_kernel.db.types import HUNDRED, ZERO
from earnings_kernel.domain.values import (
    ExchangeRateSet,
    ModelEarnings,
    PlatformEarnings,
    PlatformSpec,
    QuotaAlert,
    RawValue,
)
from earnings_kernel.exceptions import MissingRateError, UnknownPlatformError
from earnings_kernel.logging_config import get_logger

logger = get_logger("engines.calculator")

DEFAULT_ADVANCE_RATIO = Decimal("0.90")


def resolve_percentage(
    platform_override: Decimal | None,
    group_override: Decimal | None,
    default: Decimal,
) -> Decimal:
    """First set value of platform override -> group override -> default."""
    if platform_override is not None:
        return platform_override
    if group_override is not None:
        return group_override
    return default


def quota_alert(total_gross_usd: Decimal, min_quota: Decimal) -> QuotaAlert:
    """
    Compare gross USD with the minimum quota.

    percent_to_reach = (quota - gross) / quota x 100, clamped at zero.
    """
    if min_quota <= 0:
        return QuotaAlert(
            min_quota=min_quota,
            below=False,
            percent_to_reach=ZERO,
            surplus_usd=total_gross_usd,
        )
    if total_gross_usd < min_quota:
        shortfall = min_quota - total_gross_usd
        return QuotaAlert(
            min_quota=min_quota,
            below=True,
            percent_to_reach=max(ZERO, shortfall / min_quota * HUNDRED),
            shortfall_usd=shortfall,
        )
    return QuotaAlert(
        min_quota=min_quota,
        below=False,
        percent_to_reach=ZERO,
        surplus_usd=total_gross_usd - min_quota,
    )


class EarningsCalculator:
    """
    Pure per-model earnings calculator.

    Contract:
        ``compute_model_earnings`` receives every input explicitly (raw
        values, platform catalog with resolved percentages, rates) and
        returns a frozen ``ModelEarnings``.  It never reads the database
        or the clock.

    Guarantees:
        - Disabled platforms and amounts <= 0 are excluded from
          ``per_platform`` and contribute zero.
        - Platforms are reported in platform id order.
        - max_advance_cop = total_cop_model x advance_ratio.
    """

    def __init__(
        self,
        rules: PlatformRuleSet,
        advance_ratio: Decimal = DEFAULT_ADVANCE_RATIO,
    ):
        self._rules = rules
        self._advance_ratio = advance_ratio

    @property
    def rules(self) -> PlatformRuleSet:
        return self._rules

    def compute_platform_earnings(
        self,
        spec: PlatformSpec,
        amount: Decimal,
        rates: ExchangeRateSet,
    ) -> PlatformEarnings:
        """Earnings of a single platform; used directly by rate correction."""
        conversion = self._rules.convert(spec.rule_key, spec.currency, amount, rates)
        if conversion.full_share:
            model_usd = conversion.gross_usd
        else:
            model_usd = conversion.gross_usd * spec.percentage / HUNDRED
        return PlatformEarnings(
            platform_id=spec.platform_id,
            currency=spec.currency,
            raw_amount=amount,
            gross_usd=conversion.gross_usd,
            model_usd=model_usd,
            cop_model=model_usd * rates.usd_cop,
            percentage=spec.percentage,
            full_share=conversion.full_share,
        )

    @traced_engine(
        "earnings",
        "1.0",
        fingerprint_fields=("model_id", "raw_values", "rates", "min_quota"),
    )
    def compute_model_earnings(
        self,
        model_id: UUID,
        raw_values: Iterable[RawValue],
        platforms: Mapping[str, PlatformSpec],
        rates: ExchangeRateSet | None,
        min_quota: Decimal | None = None,
    ) -> ModelEarnings:
        """
        Compute one model's earnings for a period.

        Preconditions:
            - ``platforms`` maps platform id -> PlatformSpec with the
              percentage already resolved.
            - ``rates`` is the rate set pinned to the period.

        Raises:
            MissingRateError: rates is None.
            InvalidExchangeRateError: a rate is not positive.
            UnknownPlatformError: a raw value names an unknown platform.
        """
        if rates is None:
            raise MissingRateError()
        rates.validate()

        entries: list[PlatformEarnings] = []
        for raw in sorted(raw_values, key=lambda rv: rv.platform_id):
            spec = platforms.get(raw.platform_id)
            if spec is None:
                raise UnknownPlatformError(raw.platform_id)
            if not spec.enabled:
                continue
            if raw.amount <= 0:
                if raw.amount < 0:
                    logger.warning(
                        "negative_amount_clamped",
                        extra={
                            "model_id": str(model_id),
                            "platform_id": raw.platform_id,
                            "amount": raw.amount,
                        },
                    )
                continue
            entries.append(self.compute_platform_earnings(spec, raw.amount, rates))

        return self.totals(
            model_id=model_id,
            per_platform=entries,
            rates=rates,
            min_quota=self._resolve_min_quota(platforms, min_quota),
        )

    def totals(
        self,
        model_id: UUID,
        per_platform: Iterable[PlatformEarnings],
        rates: ExchangeRateSet,
        min_quota: Decimal | None = None,
    ) -> ModelEarnings:
        """Sum per-platform earnings into a ModelEarnings."""
        entries = tuple(per_platform)
        total_gross = sum((e.gross_usd for e in entries), ZERO)
        total_model = sum((e.model_usd for e in entries), ZERO)
        total_cop = total_model * rates.usd_cop

        return ModelEarnings(
            model_id=model_id,
            per_platform=entries,
            total_gross_usd=total_gross,
            total_model_usd=total_model,
            total_cop_model=total_cop,
            quota_alert=(
                quota_alert(total_gross, min_quota) if min_quota is not None else None
            ),
            max_advance_cop=total_cop * self._advance_ratio,
            rates=rates,
        )

    @staticmethod
    def _resolve_min_quota(
        platforms: Mapping[str, PlatformSpec],
        explicit: Decimal | None,
    ) -> Decimal | None:
        if explicit is not None:
            return explicit
        thresholds = [
            spec.min_quota
            for spec in platforms.values()
            if spec.enabled and spec.min_quota is not None
        ]
        return max(thresholds) if thresholds else None
