"""Domain layer - pure value objects and the clock."""

from earnings_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from earnings_kernel.domain.freeze import (
    FreezePolicy,
    NeverFreeze,
    PlatformCutoffFreezePolicy,
)
from earnings_kernel.domain.periods import Period, PeriodType
from earnings_kernel.domain.values import (
    ConversionResult,
    ExchangeRateSet,
    ModelEarnings,
    PlatformEarnings,
    PlatformRule,
    PlatformSpec,
    QuotaAlert,
    RawValue,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "FreezePolicy",
    "NeverFreeze",
    "PlatformCutoffFreezePolicy",
    "Period",
    "PeriodType",
    "ExchangeRateSet",
    "RawValue",
    "PlatformSpec",
    "ConversionResult",
    "PlatformEarnings",
    "PlatformRule",
    "ModelEarnings",
    "QuotaAlert",
]
