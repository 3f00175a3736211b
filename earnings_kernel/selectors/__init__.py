"""Selectors for the earnings kernel (read side)."""

from earnings_kernel.selectors.earnings_selector import (
    EarningsSelector,
    GroupOverrides,
    LiveTotals,
    PlatformCatalogEntry,
)

__all__ = [
    "EarningsSelector",
    "GroupOverrides",
    "LiveTotals",
    "PlatformCatalogEntry",
]
