"""
earnings_engines.platform_rules -- Per-platform currency conversion rules.

Responsibility:
    Convert a raw platform amount into gross USD: the platform's revenue in
    USD after its own deductions, before the model's percentage split.  The
    per-platform behaviour is data: a table of ``PlatformRule`` rows
    evaluated by one generic function.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports only earnings_kernel.domain, db.types, exceptions and logging.

Invariants enforced:
    - Purity: identical inputs always produce identical outputs.
    - Decimal-only arithmetic; nothing is rounded here.
    - A rule applies only when the platform reports in the rule's currency;
      otherwise, and for platforms without a rule, the amount is passed
      through in its declared currency.

Failure modes:
    - UnsupportedCurrencyError for a currency other than USD / EUR / GBP.

Usage:
    rules = PlatformRuleSet(config.platform_rules)
    result = rules.convert("big7", "EUR", Decimal("100"), rates)
    result.gross_usd   # 84.84 at eur_usd 1.01 (100 x 1.01 x 0.84)
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from earnings_kernel.db.types import SUPPORTED_CURRENCIES, ZERO
from earnings_kernel.domain.values import (
    ConversionResult,
    ExchangeRateSet,
    PlatformRule,
)
from earnings_kernel.exceptions import UnsupportedCurrencyError
from earnings_kernel.logging_config import get_logger

logger = get_logger("engines.platform_rules")

_ONE = Decimal("1")


class PlatformRuleSet:
    """
    Rule table plus the single evaluator that applies it.

    Contract:
        ``convert(platform_id, currency, raw_amount, rates)`` returns a
        ``ConversionResult`` with
        gross = amount x currency rate x conversion_factor x deduction_factor.

    Guarantees:
        - Amounts <= 0 contribute zero.  Negative amounts are logged.
        - The table is immutable after construction.

    Non-goals:
        - Does NOT apply the revenue-share percentage; that is the
          calculator's job.
    """

    def __init__(self, rules: Iterable[PlatformRule]):
        table: dict[str, PlatformRule] = {}
        for rule in rules:
            if rule.currency not in SUPPORTED_CURRENCIES:
                raise UnsupportedCurrencyError(rule.rule_id, rule.currency)
            if rule.rule_id in table:
                raise ValueError(f"Duplicate platform rule: {rule.rule_id}")
            table[rule.rule_id] = rule
        self._rules = table

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def get(self, rule_id: str) -> PlatformRule | None:
        return self._rules.get(rule_id)

    def rule_for(self, platform_id: str, currency: str) -> PlatformRule | None:
        """The rule that applies to ``platform_id`` reporting in ``currency``."""
        rule = self._rules.get(platform_id)
        if rule is None:
            return None
        if rule.currency != currency:
            logger.warning(
                "platform_rule_currency_mismatch",
                extra={
                    "platform_id": platform_id,
                    "rule_currency": rule.currency,
                    "declared_currency": currency,
                },
            )
            return None
        return rule

    def convert(
        self,
        platform_id: str,
        currency: str,
        raw_amount: Decimal,
        rates: ExchangeRateSet,
    ) -> ConversionResult:
        """
        Convert one raw amount.

        Raises:
            UnsupportedCurrencyError: currency is not USD, EUR or GBP.
        """
        currency = currency.upper()
        if currency not in SUPPORTED_CURRENCIES:
            raise UnsupportedCurrencyError(platform_id, currency)

        rule = self.rule_for(platform_id, currency)
        full_share = rule.full_share if rule is not None else False

        if raw_amount <= 0:
            if raw_amount < 0:
                logger.warning(
                    "negative_amount_clamped",
                    extra={"platform_id": platform_id, "amount": raw_amount},
                )
            return ConversionResult(ZERO, full_share)

        conversion_factor = rule.conversion_factor if rule is not None else _ONE
        deduction_factor = rule.deduction_factor if rule is not None else _ONE

        gross = (
            raw_amount
            * rates.usd_rate_for(currency, platform_id)
            * conversion_factor
            * deduction_factor
        )
        return ConversionResult(gross_usd=gross, full_share=full_share)
