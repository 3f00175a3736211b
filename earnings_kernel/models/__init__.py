"""ORM models for the earnings kernel."""

from earnings_kernel.models.archive import (
    ArchivedModelTotal,
    ArchivedRateSet,
    ArchivedValue,
)
from earnings_kernel.models.exchange_rate import PeriodRateSet
from earnings_kernel.models.frozen_platform import FrozenPlatform
from earnings_kernel.models.model_value import ModelPeriodTotal, ModelValue
from earnings_kernel.models.organization import ModelGroup, ModelProfile, Sede
from earnings_kernel.models.period_closure import (
    ArchiveStatus,
    ClosureAuditEntry,
    ClosureState,
    LockOperation,
    LockStatus,
    PeriodClosure,
    PeriodLock,
)
from earnings_kernel.models.platform import Platform

__all__ = [
    "Sede",
    "ModelGroup",
    "ModelProfile",
    "Platform",
    "ModelValue",
    "ModelPeriodTotal",
    "FrozenPlatform",
    "PeriodRateSet",
    "PeriodClosure",
    "PeriodLock",
    "ClosureAuditEntry",
    "ClosureState",
    "ArchiveStatus",
    "LockOperation",
    "LockStatus",
    "ArchivedValue",
    "ArchivedModelTotal",
    "ArchivedRateSet",
]
