"""
Half-month billing periods.

Responsibility:
    Value object for the fixed cadence the studio bills on: P1 covers days
    1-15, P2 covers day 16 to the end of the month.  A period is identified
    by its start date; the start day is always 1 or 16.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - Start day is 1 or 16 (InvalidPeriodError otherwise).
    - ``next()`` follows the half-month cadence: P1 -> P2 of the same month,
      P2 -> P1 of the following month.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from enum import Enum

from earnings_kernel.exceptions import InvalidPeriodError


class PeriodType(str, Enum):
    """Which half of the month a period covers."""

    P1 = "1-15"
    P2 = "16-31"


_START_DAYS = {1: PeriodType.P1, 16: PeriodType.P2}


@dataclass(frozen=True, order=True)
class Period:
    """A half-month billing period, keyed by its first day."""

    start: date

    def __post_init__(self) -> None:
        if self.start.day not in _START_DAYS:
            raise InvalidPeriodError(
                self.start, "period must start on day 1 or day 16"
            )

    @classmethod
    def from_start(cls, period_date: date) -> Period:
        return cls(period_date)

    @classmethod
    def containing(cls, day: date) -> Period:
        """The period whose range covers ``day``."""
        start_day = 1 if day.day <= 15 else 16
        return cls(day.replace(day=start_day))

    @classmethod
    def from_parts(
        cls, period_date: date, period_type: PeriodType | str
    ) -> Period:
        """
        Build a period from a start date and an explicit type.

        Raises:
            InvalidPeriodError: Unknown type, or type does not match the
                start day (e.g. 2025-10-16 with "1-15").
        """
        try:
            expected = PeriodType(period_type)
        except ValueError as exc:
            raise InvalidPeriodError(
                period_date, f"unknown period type {period_type!r}"
            ) from exc
        period = cls(period_date)
        if period.period_type is not expected:
            raise InvalidPeriodError(
                period_date,
                f"period type {expected.value} does not match start day "
                f"{period_date.day}",
            )
        return period

    @property
    def period_type(self) -> PeriodType:
        return _START_DAYS[self.start.day]

    @property
    def end_date(self) -> date:
        if self.period_type is PeriodType.P1:
            return self.start.replace(day=15)
        last_day = calendar.monthrange(self.start.year, self.start.month)[1]
        return self.start.replace(day=last_day)

    @property
    def code(self) -> str:
        """Human-readable key, e.g. ``2025-10-P2``."""
        return f"{self.start:%Y-%m}-{self.period_type.name}"

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end_date

    def next(self) -> Period:
        if self.period_type is PeriodType.P1:
            return Period(self.start.replace(day=16))
        if self.start.month == 12:
            return Period(date(self.start.year + 1, 1, 1))
        return Period(date(self.start.year, self.start.month + 1, 1))

    def previous(self) -> Period:
        if self.period_type is PeriodType.P2:
            return Period(self.start.replace(day=1))
        if self.start.month == 1:
            return Period(date(self.start.year - 1, 12, 16))
        return Period(date(self.start.year, self.start.month - 1, 16))

    def __str__(self) -> str:
        return self.code
