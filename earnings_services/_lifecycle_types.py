"""
earnings_services._lifecycle_types -- DTOs for the period lifecycle manager.

Responsibility:
    Frozen result types returned by PeriodLifecycleManager: period status,
    cleanup pre-check, and the outcome of archive, cleanup, restore and
    rate correction.

Architecture position:
    Services -- these types live beside the manager that produces them.
    They depend on kernel domain types only.

Invariants enforced:
    - All DTOs are frozen dataclasses (immutable once returned).
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from earnings_kernel.services.period_lock_service import LockInfo


@dataclass(frozen=True)
class PeriodStatusInfo:
    """What an operator sees when polling a period."""

    period_code: str
    state: str
    archived: bool
    in_progress: bool
    version: int
    archive_status: str | None = None
    failed_models: dict[str, str] = field(default_factory=dict)
    locks: tuple[LockInfo, ...] = ()

    @property
    def lock(self) -> LockInfo | None:
        """The lock currently in progress, if any."""
        for info in self.locks:
            if info.in_progress:
                return info
        return None


@dataclass(frozen=True)
class CleanupStats:
    """Counts behind the cleanup pre-check.  ``live_totals`` are the rows cleanup zeroes."""

    models_in_archive: int
    models_with_values: int
    archived_records: int
    live_records: int
    live_totals: int
    live_model_usd: Decimal
    archived_model_usd: Decimal


@dataclass(frozen=True)
class CleanupValidation:
    can_cleanup: bool
    validation_errors: tuple[str, ...]
    stats: CleanupStats


@dataclass(frozen=True)
class ArchiveResult:
    period_code: str
    batch_id: UUID
    archive_status: str
    models_archived: int
    records_archived: int
    failed_models: dict[str, str] = field(default_factory=dict)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_models)


@dataclass(frozen=True)
class CleanupResult:
    period_code: str
    batch_id: UUID
    values_deleted: int
    totals_zeroed: int
    platforms_unfrozen: int
    next_period_code: str
    cleaned_at: datetime


@dataclass(frozen=True)
class RestoreResult:
    period_code: str
    values_restored: int
    models_restored: int


@dataclass(frozen=True)
class RateCorrectionResult:
    period_code: str
    revision: int
    models_recomputed: int
    records_recomputed: int
    before: dict[str, str]
    after: dict[str, str]
