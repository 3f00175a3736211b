"""
Per-model earnings calculator.

Verifies:
- Revenue share applied to gross USD (already net of the platform
  deduction); full-share platforms skip it
- Totals are exact sums of the platform entries
- Quota alert arithmetic and the minimum-quota resolution
- Advance limit = 90% of COP earnings
- Missing / invalid rates and unknown platforms are rejected
- Every call emits an EARNINGS_ENGINE_TRACE
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from earnings_engines.calculator import (
    EarningsCalculator,
    quota_alert,
    resolve_percentage,
)
from earnings_engines.platform_rules import PlatformRuleSet
from earnings_kernel.domain.values import ExchangeRateSet, PlatformSpec, RawValue
from earnings_kernel.exceptions import (
    InvalidExchangeRateError,
    MissingRateError,
    UnknownPlatformError,
)

RATES = ExchangeRateSet(
    eur_usd=Decimal("1.01"),
    gbp_usd=Decimal("1.20"),
    usd_cop=Decimal("3900"),
)

EIGHTY = Decimal("80")


def _spec(platform_id: str, currency: str, percentage=EIGHTY, **kwargs) -> PlatformSpec:
    return PlatformSpec(platform_id, currency, percentage, **kwargs)


CATALOG = {
    "big7": _spec("big7", "EUR"),
    "mondo": _spec("mondo", "EUR"),
    "superfoon": _spec("superfoon", "EUR"),
    "aw": _spec("aw", "GBP"),
    "chaturbate": _spec("chaturbate", "USD"),
    "dxlive": _spec("dxlive", "USD", Decimal("60")),
    "retired": _spec("retired", "USD", enabled=False),
}


def _compute(calculator, values: dict[str, str], platforms=CATALOG, rates=RATES, min_quota=None):
    model_id = uuid4()
    return calculator.compute_model_earnings(
        model_id=model_id,
        raw_values=[RawValue(model_id, pid, Decimal(amount)) for pid, amount in values.items()],
        platforms=platforms,
        rates=rates,
        min_quota=min_quota,
    )


class TestRevenueShare:

    def test_big7(self, calculator):
        earnings = _compute(calculator, {"big7": "100"})
        entry = earnings.platform("big7")
        assert entry.gross_usd == Decimal("84.84")
        assert entry.model_usd == Decimal("67.872")
        # the platform deduction is not agency margin
        assert entry.agency_usd == Decimal("16.968")
        assert entry.cop_model == Decimal("67.872") * Decimal("3900")

    def test_chaturbate_tokens(self, calculator):
        entry = _compute(calculator, {"chaturbate": "1000"}).platform("chaturbate")
        assert entry.gross_usd == Decimal("50")
        assert entry.model_usd == Decimal("40")
        assert entry.agency_usd == Decimal("10")

    def test_superfoon_ignores_percentage(self, calculator):
        platforms = dict(CATALOG, superfoon=_spec("superfoon", "EUR", Decimal("10")))
        entry = _compute(calculator, {"superfoon": "50"}, platforms=platforms).platform("superfoon")
        assert entry.model_usd == Decimal("50.50")
        assert entry.full_share is True

    def test_platform_percentage_used(self, calculator):
        entry = _compute(calculator, {"dxlive": "100"}).platform("dxlive")
        # 100 x 0.60 deduction x 60%
        assert entry.model_usd == Decimal("36")


class TestTotals:

    def test_totals_are_sums(self, calculator):
        earnings = _compute(
            calculator,
            {"big7": "100", "mondo": "100", "aw": "100", "chaturbate": "1000"},
        )
        assert earnings.total_gross_usd == sum(e.gross_usd for e in earnings.per_platform)
        assert earnings.total_model_usd == sum(e.model_usd for e in earnings.per_platform)
        assert earnings.total_cop_model == earnings.total_model_usd * RATES.usd_cop
        assert earnings.total_agency_usd == earnings.total_gross_usd - earnings.total_model_usd

    def test_platforms_sorted(self, calculator):
        earnings = _compute(calculator, {"mondo": "1", "aw": "1", "big7": "1"})
        assert [e.platform_id for e in earnings.per_platform] == ["aw", "big7", "mondo"]

    def test_disabled_and_zero_skipped(self, calculator):
        earnings = _compute(calculator, {"retired": "500", "big7": "0", "mondo": "-3"})
        assert earnings.per_platform == ()
        assert earnings.total_gross_usd == 0

    def test_max_advance(self, calculator):
        earnings = _compute(calculator, {"chaturbate": "1000"})
        assert earnings.max_advance_cop == Decimal("40") * Decimal("3900") * Decimal("0.90")

    def test_custom_advance_ratio(self, config):
        calculator = EarningsCalculator(
            PlatformRuleSet(config.platform_rules), advance_ratio=Decimal("0.5")
        )
        earnings = _compute(calculator, {"chaturbate": "1000"})
        assert earnings.max_advance_cop == Decimal("78000")

    def test_rates_carried(self, calculator):
        assert _compute(calculator, {"big7": "1"}).rates == RATES


class TestQuota:

    def test_below_quota(self):
        alert = quota_alert(Decimal("300"), Decimal("470"))
        assert alert.below is True
        assert alert.shortfall_usd == Decimal("170")
        assert abs(alert.percent_to_reach - Decimal("36.17")) < Decimal("0.01")

    def test_at_quota(self):
        alert = quota_alert(Decimal("470"), Decimal("470"))
        assert alert.below is False
        assert alert.percent_to_reach == 0
        assert alert.surplus_usd == 0

    def test_above_quota(self):
        alert = quota_alert(Decimal("500"), Decimal("470"))
        assert alert.below is False
        assert alert.surplus_usd == Decimal("30")

    def test_zero_quota(self):
        assert quota_alert(Decimal("0"), Decimal("0")).below is False

    def test_explicit_quota(self, calculator):
        earnings = _compute(calculator, {"chaturbate": "1000"}, min_quota=Decimal("470"))
        assert earnings.quota_alert.below is True

    def test_deduction_counts_against_quota(self, calculator):
        # 500 EUR x 1.01 x 0.84 = 424.2 gross, short of 470
        earnings = _compute(calculator, {"big7": "500"}, min_quota=Decimal("470"))
        assert earnings.total_gross_usd == Decimal("424.2")
        assert earnings.quota_alert.below is True
        assert earnings.quota_alert.shortfall_usd == Decimal("45.8")

    def test_highest_enabled_platform_threshold(self, calculator):
        platforms = dict(
            CATALOG,
            big7=_spec("big7", "EUR", min_quota=Decimal("100")),
            mondo=_spec("mondo", "EUR", min_quota=Decimal("40")),
            retired=_spec("retired", "USD", enabled=False, min_quota=Decimal("9999")),
        )
        earnings = _compute(calculator, {"chaturbate": "1000"}, platforms=platforms)
        assert earnings.quota_alert.min_quota == Decimal("100")
        assert earnings.quota_alert.below is True

    def test_no_quota_no_alert(self, calculator):
        assert _compute(calculator, {"chaturbate": "1000"}).quota_alert is None


class TestRejections:

    def test_missing_rates(self, calculator):
        with pytest.raises(MissingRateError) as exc_info:
            _compute(calculator, {"big7": "1"}, rates=None)
        assert exc_info.value.code == "MISSING_RATES"

    def test_invalid_rate(self, calculator):
        bad = ExchangeRateSet(Decimal("0"), Decimal("1.2"), Decimal("3900"))
        with pytest.raises(InvalidExchangeRateError):
            _compute(calculator, {"big7": "1"}, rates=bad)

    def test_unknown_platform(self, calculator):
        with pytest.raises(UnknownPlatformError) as exc_info:
            _compute(calculator, {"ghost": "1"})
        assert exc_info.value.platform_id == "ghost"


class TestResolvePercentage:

    def test_platform_override_wins(self):
        assert resolve_percentage(Decimal("90"), Decimal("70"), EIGHTY) == Decimal("90")

    def test_group_override(self):
        assert resolve_percentage(None, Decimal("70"), EIGHTY) == Decimal("70")

    def test_default(self):
        assert resolve_percentage(None, None, EIGHTY) == EIGHTY

    def test_zero_override_is_an_override(self):
        assert resolve_percentage(Decimal("0"), Decimal("70"), EIGHTY) == Decimal("0")


class TestTracing:

    def test_trace_emitted(self, calculator, captured_logs):
        _compute(calculator, {"big7": "100"})
        traces = [r for r in captured_logs() if r["message"] == "EARNINGS_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "earnings"
        assert len(traces[0]["input_fingerprint"]) == 16

    def test_fingerprint_stable_for_same_inputs(self, calculator, captured_logs):
        model_id = uuid4()
        for _ in range(2):
            calculator.compute_model_earnings(
                model_id=model_id,
                raw_values=[RawValue(model_id, "big7", Decimal("100"))],
                platforms=CATALOG,
                rates=RATES,
            )
        traces = [r for r in captured_logs() if r["message"] == "EARNINGS_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]
