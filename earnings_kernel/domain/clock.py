"""
earnings_kernel.domain.clock -- Injected time for locks, freezes and audit rows.

Services read the current instant from a Clock handed in at construction:
the lock service to stamp and age period locks, the live store to test
freeze cutoffs, the archive and rate services for the times they record.
Nothing in the kernel calls ``datetime.now()`` itself.

Tests drive a DeterministicClock, so a stale lock is one ``advance()`` away.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

# Inside the second half of October 2025 (period 2025-10-P2).
_TEST_EPOCH = datetime(2025, 10, 16, 12, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC instants."""

    @abstractmethod
    def now(self) -> datetime: ...

    def seconds_ago(self, seconds: float) -> datetime:
        """The instant ``seconds`` before ``now()``; lock staleness is measured from it."""
        return self.now() - timedelta(seconds=seconds)


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    A clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance()`` is
    called.  Seconds are the unit lock staleness is configured in.
    """

    def __init__(self, start: datetime | None = None):
        start = start or _TEST_EPOCH
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start")
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward and return the new instant."""
        self._now += timedelta(seconds=seconds)
        return self._now
