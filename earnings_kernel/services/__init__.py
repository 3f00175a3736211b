"""Services for the earnings kernel (write side)."""

from earnings_kernel.services.archive_store import ArchiveStoreService
from earnings_kernel.services.live_store import LiveStoreService
from earnings_kernel.services.period_lock_service import LockInfo, PeriodLockService
from earnings_kernel.services.rate_service import (
    RateProvider,
    RateService,
    StaticRateProvider,
)

__all__ = [
    "ArchiveStoreService",
    "LiveStoreService",
    "LockInfo",
    "PeriodLockService",
    "RateProvider",
    "RateService",
    "StaticRateProvider",
]
