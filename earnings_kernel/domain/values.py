"""
Earnings value objects.

Responsibility:
    Immutable DTOs that flow between the calculation engines, the services
    and the archive: exchange rate sets, raw values, platform specs and the
    derived per-model earnings.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by earnings_engines and by
    kernel services; MUST NOT import from models/ or services/.

Invariants enforced:
    - All amounts are Decimal.  Values are kept at full precision; only
      ``presentation()`` rounds.
    - total_agency_usd is always the residual gross - model, never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from earnings_kernel.db.types import ZERO, round_cop, round_usd
from earnings_kernel.exceptions import (
    InvalidExchangeRateError,
    UnsupportedCurrencyError,
)


@dataclass(frozen=True)
class ExchangeRateSet:
    """
    The three rates a period is computed with.

    ``eur_usd`` and ``gbp_usd`` convert platform currency into USD;
    ``usd_cop`` converts the model's USD share into Colombian pesos.
    """

    eur_usd: Decimal
    gbp_usd: Decimal
    usd_cop: Decimal
    scope: str = "period"

    def validate(self) -> ExchangeRateSet:
        """
        Raises:
            InvalidExchangeRateError: A rate is missing, zero or negative.
        """
        for name in ("eur_usd", "gbp_usd", "usd_cop"):
            value = getattr(self, name)
            if not isinstance(value, Decimal) or not value.is_finite() or value <= 0:
                raise InvalidExchangeRateError(name, value)
        return self

    def usd_rate_for(self, currency: str, platform_id: str = "") -> Decimal:
        """Multiplier that converts ``currency`` into USD."""
        if currency == "USD":
            return Decimal("1")
        if currency == "EUR":
            return self.eur_usd
        if currency == "GBP":
            return self.gbp_usd
        raise UnsupportedCurrencyError(platform_id, currency)

    def as_dict(self) -> dict[str, str]:
        return {
            "eur_usd": str(self.eur_usd),
            "gbp_usd": str(self.gbp_usd),
            "usd_cop": str(self.usd_cop),
        }


@dataclass(frozen=True)
class RawValue:
    """One model's reported earnings on one platform for one period."""

    model_id: UUID
    platform_id: str
    amount: Decimal


@dataclass(frozen=True)
class PlatformSpec:
    """
    A platform as the calculator sees it.

    ``percentage`` is already resolved through the override chain
    (platform -> group -> default).  ``rule_id`` names the conversion rule;
    when unset the platform id is used.
    """

    platform_id: str
    currency: str
    percentage: Decimal
    min_quota: Decimal | None = None
    enabled: bool = True
    rule_id: str | None = None

    @property
    def rule_key(self) -> str:
        return self.rule_id or self.platform_id


@dataclass(frozen=True)
class PlatformRule:
    """
    One row of the platform conversion table.

    gross USD = amount x currency rate x ``conversion_factor`` x
    ``deduction_factor``.  The platform's own cut is gone before the
    model's percentage is applied, so it never shows up as agency margin.
    ``full_share`` platforms skip the percentage split.  The rule applies
    only when the platform reports in ``currency``.
    """

    rule_id: str
    currency: str
    conversion_factor: Decimal = Decimal("1")
    deduction_factor: Decimal = Decimal("1")
    full_share: bool = False


@dataclass(frozen=True)
class ConversionResult:
    """Output of a platform rule: gross USD, before the percentage split."""

    gross_usd: Decimal
    full_share: bool = False


@dataclass(frozen=True)
class PlatformEarnings:
    """Derived earnings for one platform of one model."""

    platform_id: str
    currency: str
    raw_amount: Decimal
    gross_usd: Decimal
    model_usd: Decimal
    cop_model: Decimal
    percentage: Decimal
    full_share: bool = False

    @property
    def agency_usd(self) -> Decimal:
        return self.gross_usd - self.model_usd


@dataclass(frozen=True)
class QuotaAlert:
    """
    Whether the model reached the minimum quota.

    ``percent_to_reach`` is clamped at zero; when the quota is met
    ``surplus_usd`` holds how far above it the model landed.
    """

    min_quota: Decimal
    below: bool
    percent_to_reach: Decimal
    shortfall_usd: Decimal = ZERO
    surplus_usd: Decimal = ZERO


@dataclass(frozen=True)
class ModelEarnings:
    """Full-precision earnings of one model for one period."""

    model_id: UUID
    per_platform: tuple[PlatformEarnings, ...]
    total_gross_usd: Decimal
    total_model_usd: Decimal
    total_cop_model: Decimal
    quota_alert: QuotaAlert | None = None
    max_advance_cop: Decimal = ZERO
    rates: ExchangeRateSet | None = field(default=None, compare=False)

    @property
    def total_agency_usd(self) -> Decimal:
        return self.total_gross_usd - self.total_model_usd

    def platform(self, platform_id: str) -> PlatformEarnings | None:
        for entry in self.per_platform:
            if entry.platform_id == platform_id:
                return entry
        return None

    def presentation(self) -> dict[str, Any]:
        """Rounded view: 2 places for USD, whole pesos for COP."""
        alert = None
        if self.quota_alert is not None:
            alert = {
                "min_quota": round_usd(self.quota_alert.min_quota),
                "below": self.quota_alert.below,
                "percent_to_reach": round_usd(self.quota_alert.percent_to_reach),
                "shortfall_usd": round_usd(self.quota_alert.shortfall_usd),
                "surplus_usd": round_usd(self.quota_alert.surplus_usd),
            }
        return {
            "model_id": str(self.model_id),
            "platforms": [
                {
                    "platform_id": p.platform_id,
                    "currency": p.currency,
                    "raw_amount": p.raw_amount,
                    "gross_usd": round_usd(p.gross_usd),
                    "model_usd": round_usd(p.model_usd),
                    "cop_model": round_cop(p.cop_model),
                }
                for p in self.per_platform
            ],
            "total_gross_usd": round_usd(self.total_gross_usd),
            "total_model_usd": round_usd(self.total_model_usd),
            "total_agency_usd": round_usd(self.total_agency_usd),
            "total_cop_model": round_cop(self.total_cop_model),
            "max_advance_cop": round_cop(self.max_advance_cop),
            "quota_alert": alert,
        }
