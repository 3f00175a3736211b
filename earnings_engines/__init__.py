"""
Module: earnings_engines
Responsibility:
    Pure calculation layer: platform conversion rules, per-model earnings
    and the sede hierarchy rollup.

Architecture position:
    Engines -- zero I/O.  May only import earnings_kernel.domain,
    earnings_kernel.db.types, exceptions and logging.  MUST NOT import
    kernel services, models or earnings_config.

Invariants enforced:
    - Engines never read the clock or the database.
    - Decimal-only arithmetic; rounding happens at presentation only.
    - Every engine entrypoint is traced via ``@traced_engine``.
"""

from earnings_engines.aggregation import (
    UNASSIGNED,
    GlobalSummary,
    GroupSummary,
    PeriodAggregator,
    SedeSummary,
    VisibilityScope,
)
from earnings_engines.calculator import (
    EarningsCalculator,
    quota_alert,
    resolve_percentage,
)
from earnings_engines.platform_rules import PlatformRuleSet
from earnings_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "PlatformRuleSet",
    "EarningsCalculator",
    "resolve_percentage",
    "quota_alert",
    "PeriodAggregator",
    "VisibilityScope",
    "GroupSummary",
    "SedeSummary",
    "GlobalSummary",
    "UNASSIGNED",
    "traced_engine",
    "compute_input_fingerprint",
]
