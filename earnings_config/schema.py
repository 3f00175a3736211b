"""
Configuration schema (``earnings_config.schema``).

Frozen dataclasses produced by the loader.  ``PlatformRule`` itself lives
in ``earnings_kernel.domain.values`` so that engines can consume the rule
table without importing this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from earnings_kernel.domain.values import PlatformRule


@dataclass(frozen=True)
class LifecycleSettings:
    """Knobs of the period lifecycle manager."""

    lock_staleness_seconds: int = 1800
    archive_max_retries: int = 3
    archive_retry_backoff_seconds: float = 1.0


@dataclass(frozen=True)
class EarningsSettings:
    """
    Calculation defaults.

    ``default_percentage`` closes the percentage override chain;
    ``default_min_quota`` closes the minimum-quota chain;
    ``default_currency`` is used for catalog platforms that declare none.
    """

    default_percentage: Decimal = Decimal("80")
    default_min_quota: Decimal = Decimal("470")
    advance_ratio: Decimal = Decimal("0.90")
    default_currency: str = "USD"
    lifecycle: LifecycleSettings = field(default_factory=LifecycleSettings)


@dataclass(frozen=True)
class EarningsConfig:
    """The loaded configuration set: rule table, settings and identity."""

    config_id: str
    version: int
    platform_rules: tuple[PlatformRule, ...]
    settings: EarningsSettings
    checksum: str = ""

    def rule(self, rule_id: str) -> PlatformRule | None:
        for rule in self.platform_rules:
            if rule.rule_id == rule_id:
                return rule
        return None
