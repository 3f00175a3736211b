"""
Platform conversion table and its evaluator.

Verifies the per-platform formulas with the production rule table:
- Gross USD already carries the platform deduction (big7 100 EUR -> 84.84)
- EUR: x eur_usd, deduction factor or pass-through, superfoon full-share
- GBP: x gbp_usd, aw deduction
- USD: deduction factors and token conversion
- Unknown platforms pass through in their declared currency
- Amounts <= 0 contribute zero; negatives are logged
"""

from decimal import Decimal

import pytest

from earnings_engines.platform_rules import PlatformRuleSet
from earnings_kernel.domain.values import ExchangeRateSet, PlatformRule
from earnings_kernel.exceptions import UnsupportedCurrencyError

RATES = ExchangeRateSet(
    eur_usd=Decimal("1.01"),
    gbp_usd=Decimal("1.20"),
    usd_cop=Decimal("3900"),
)


@pytest.fixture
def rules(config) -> PlatformRuleSet:
    return PlatformRuleSet(config.platform_rules)


class TestEuroPlatforms:

    def test_big7_deduction_reduces_gross(self, rules):
        result = rules.convert("big7", "EUR", Decimal("100"), RATES)
        assert result.gross_usd == Decimal("84.84")
        assert result.full_share is False

    def test_mondo_deduction(self, rules):
        result = rules.convert("mondo", "EUR", Decimal("100"), RATES)
        assert result.gross_usd == Decimal("78.78")

    def test_superfoon_full_share(self, rules):
        result = rules.convert("superfoon", "EUR", Decimal("50"), RATES)
        assert result.gross_usd == Decimal("50.50")
        assert result.full_share is True

    @pytest.mark.parametrize("platform", ["modelka", "xmodels", "777", "vx", "livecreator", "mow"])
    def test_pass_through(self, rules, platform):
        result = rules.convert(platform, "EUR", Decimal("10"), RATES)
        assert result.gross_usd == Decimal("10.10")


class TestPoundPlatforms:

    def test_aw_deduction_reduces_gross(self, rules):
        result = rules.convert("aw", "GBP", Decimal("100"), RATES)
        assert result.gross_usd == Decimal("81.24")


class TestDollarPlatforms:

    @pytest.mark.parametrize(
        "platform,expected",
        [
            ("cmd", Decimal("75")),
            ("camlust", Decimal("75")),
            ("skypvt", Decimal("75")),
            ("dxlive", Decimal("60")),
            ("secretfriends", Decimal("50")),
            ("livejasmin", Decimal("100")),
        ],
    )
    def test_deductions(self, rules, platform, expected):
        result = rules.convert(platform, "USD", Decimal("100"), RATES)
        assert result.gross_usd == expected

    @pytest.mark.parametrize("platform", ["chaturbate", "myfreecams", "stripchat"])
    def test_tokens(self, rules, platform):
        result = rules.convert(platform, "USD", Decimal("1000"), RATES)
        assert result.gross_usd == Decimal("50")


class TestUnknownPlatforms:

    def test_usd_pass_through(self, rules):
        result = rules.convert("newcam", "USD", Decimal("100"), RATES)
        assert result.gross_usd == Decimal("100")
        assert result.full_share is False

    def test_declared_currency_applied(self, rules):
        result = rules.convert("euronew", "EUR", Decimal("100"), RATES)
        assert result.gross_usd == Decimal("101.00")

    def test_rule_with_other_currency_ignored(self, rules, captured_logs):
        result = rules.convert("big7", "USD", Decimal("100"), RATES)
        assert result.gross_usd == Decimal("100")
        assert any(r["message"] == "platform_rule_currency_mismatch" for r in captured_logs())

    def test_currency_is_case_insensitive(self, rules):
        assert rules.convert("big7", "eur", Decimal("100"), RATES).gross_usd == Decimal("84.84")


class TestEdgeAmounts:

    def test_zero_contributes_nothing(self, rules):
        result = rules.convert("big7", "EUR", Decimal("0"), RATES)
        assert result.gross_usd == 0

    def test_negative_clamped_and_logged(self, rules, captured_logs):
        result = rules.convert("big7", "EUR", Decimal("-5"), RATES)
        assert result.gross_usd == 0
        records = [r for r in captured_logs() if r["message"] == "negative_amount_clamped"]
        assert len(records) == 1
        assert records[0]["level"] == "WARNING"
        assert records[0]["platform_id"] == "big7"

    def test_unsupported_currency(self, rules):
        with pytest.raises(UnsupportedCurrencyError) as exc_info:
            rules.convert("tokyocam", "JPY", Decimal("100"), RATES)
        assert exc_info.value.code == "UNSUPPORTED_CURRENCY"


class TestRuleTable:

    def test_production_table_loaded(self, rules):
        assert "big7" in rules
        assert "newcam" not in rules
        assert rules.get("chaturbate").conversion_factor == Decimal("0.05")

    def test_duplicate_rule_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            PlatformRuleSet([PlatformRule("x", "USD"), PlatformRule("x", "USD")])

    def test_rule_currency_must_be_supported(self):
        with pytest.raises(UnsupportedCurrencyError):
            PlatformRuleSet([PlatformRule("x", "JPY")])

    def test_custom_table(self):
        rules = PlatformRuleSet(
            [PlatformRule("half", "USD", deduction_factor=Decimal("0.5"))]
        )
        assert len(rules) == 1
        result = rules.convert("half", "USD", Decimal("10"), RATES)
        assert result.gross_usd == Decimal("5.0")
