"""
Injected clocks.

Verifies:
- DeterministicClock stands still until advanced, in the 2025-10-P2 period
- seconds_ago() is the staleness cutoff the lock service compares against
- SystemClock returns aware UTC instants
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from earnings_kernel.domain.clock import DeterministicClock, SystemClock
from earnings_kernel.domain.periods import Period


class TestDeterministicClock:

    def test_stands_still(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()

    def test_default_start_is_second_half_of_october(self):
        now = DeterministicClock().now()
        assert Period.containing(now.date()).code == "2025-10-P2"

    def test_advance(self):
        clock = DeterministicClock()
        start = clock.now()
        assert clock.advance(1800) == start + timedelta(seconds=1800)
        assert clock.now() == start + timedelta(seconds=1800)

    def test_seconds_ago(self):
        clock = DeterministicClock(datetime(2025, 11, 1, tzinfo=timezone.utc))
        assert clock.seconds_ago(60) == datetime(2025, 10, 31, 23, 59, tzinfo=timezone.utc)

    def test_naive_start_rejected(self):
        with pytest.raises(ValueError):
            DeterministicClock(datetime(2025, 11, 1))


class TestSystemClock:

    def test_aware_utc(self):
        now = SystemClock().now()
        assert now.tzinfo is not None
        assert now.utcoffset() == timedelta(0)
        assert now.date() >= date(2025, 1, 1)
