"""
earnings_services -- Package init and public API.

Responsibility:
    Orchestration services that compose the pure engines
    (earnings_engines/) with database sessions and the kernel's flush-only
    services.  The lifecycle manager is the only component that commits.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        earnings_services/ -> earnings_engines/  (allowed)
        earnings_services/ -> earnings_kernel/   (allowed)
        earnings_services/ -> earnings_config/   (allowed)
        earnings_engines/  -> earnings_services/ (FORBIDDEN)
        earnings_kernel/   -> earnings_services/ (FORBIDDEN)
"""

from earnings_services._lifecycle_types import (
    ArchiveResult,
    CleanupResult,
    CleanupStats,
    CleanupValidation,
    PeriodStatusInfo,
    RateCorrectionResult,
    RestoreResult,
)
from earnings_services.earnings_service import EarningsService, ModelInputs
from earnings_services.period_lifecycle import PeriodLifecycleManager

__all__ = [
    "ArchiveResult",
    "CleanupResult",
    "CleanupStats",
    "CleanupValidation",
    "EarningsService",
    "ModelInputs",
    "PeriodLifecycleManager",
    "PeriodStatusInfo",
    "RateCorrectionResult",
    "RestoreResult",
]
