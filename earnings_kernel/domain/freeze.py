"""
Freeze predicates.

Responsibility:
    Decide whether a platform's connection window has closed.  The live
    store consults the predicate on every write and records the freeze the
    first time it answers True; from then on the row in frozen_platforms is
    authoritative.

Architecture position:
    Kernel > Domain -- pure.  The cutoff schedule is supplied by the
    caller; nothing here knows about time zones or calendars.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol


class FreezePolicy(Protocol):
    def is_frozen(self, platform_id: str, now: datetime) -> bool: ...


class NeverFreeze:
    """Default policy: platforms are only frozen explicitly."""

    def is_frozen(self, platform_id: str, now: datetime) -> bool:
        return False


class PlatformCutoffFreezePolicy:
    """
    Freeze a fixed set of platforms once ``cutoff`` has passed.

    Used for platforms whose period closes before the studio's own
    boundary (e.g. European platforms closing at Central European midnight).
    """

    def __init__(self, platform_ids: Iterable[str], cutoff: datetime):
        self._platform_ids = frozenset(platform_ids)
        self._cutoff = cutoff

    def is_frozen(self, platform_id: str, now: datetime) -> bool:
        return platform_id in self._platform_ids and now >= self._cutoff
