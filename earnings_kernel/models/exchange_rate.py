"""
Module: earnings_kernel.models.exchange_rate
Responsibility: ORM persistence for the exchange rates pinned to a live
    period.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - One pinned rate set per period: uq_period_rate_set.
    - Rates are positive Decimals with 18 decimal places.

Audit relevance:
    The archive copies the pinned set into ArchivedRateSet at closure.
    After that only rate correction may change the rates of the period.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from earnings_kernel.db.base import TrackedBase


class PeriodRateSet(TrackedBase):
    """The EUR->USD, GBP->USD and USD->COP rates a period is computed with."""

    __tablename__ = "period_rate_sets"

    __table_args__ = (
        UniqueConstraint("period_date", name="uq_period_rate_set"),
    )

    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    eur_usd: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)

    gbp_usd: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)

    usd_cop: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)

    # Where the rates came from (provider name, "manual", ...)
    source: Mapped[str] = mapped_column(String(50), nullable=False)

    pinned_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<PeriodRateSet {self.period_date}>"
