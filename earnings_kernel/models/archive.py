"""
Module: earnings_kernel.models.archive
Responsibility: ORM persistence for the immutable archive of a closed
    period: every raw value with its derived earnings, every model total,
    and the rate set the period was computed with.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one archived row per (period, model, platform), per
      (period, model) total and per period rate set.  A second archive of
      the same period fails on these constraints even if the lifecycle
      state check is bypassed.
    - Archived raw amounts never change.  Derived columns change only
      through rate correction, which bumps ``revision``.

Audit relevance:
    The archive is the historical record that billing summaries and
    restore read from.  ``batch_id`` ties every row to the archive run that
    wrote it.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from earnings_kernel.db.base import TrackedBase, UUIDString


class ArchivedValue(TrackedBase):
    """One raw value of a closed period with its derived earnings."""

    __tablename__ = "archived_values"

    __table_args__ = (
        UniqueConstraint(
            "period_date", "model_id", "platform_code", name="uq_archived_value"
        ),
        Index("idx_archived_value_period", "period_date"),
    )

    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    model_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    platform_code: Mapped[str] = mapped_column(String(50), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    raw_amount: Mapped[Decimal] = mapped_column(nullable=False)

    gross_usd: Mapped[Decimal] = mapped_column(nullable=False)

    model_usd: Mapped[Decimal] = mapped_column(nullable=False)

    cop_model: Mapped[Decimal] = mapped_column(nullable=False)

    # Percentage in force at archive time; rate correction reuses it
    platform_percentage: Mapped[Decimal] = mapped_column(nullable=False)

    full_share: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # False for zero amounts and disabled platforms: kept for restore only
    counted: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Conversion rule key in force at archive time
    rule_id: Mapped[str] = mapped_column(String(50), nullable=False)

    batch_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    archived_at: Mapped[datetime] = mapped_column(nullable=False)

    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ArchivedValue {self.period_date} {self.model_id} "
            f"{self.platform_code}>"
        )


class ArchivedModelTotal(TrackedBase):
    """Totals of one model for a closed period."""

    __tablename__ = "archived_model_totals"

    __table_args__ = (
        UniqueConstraint("period_date", "model_id", name="uq_archived_model_total"),
    )

    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    model_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Group at archive time, so historical summaries survive reassignment
    group_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    total_gross_usd: Mapped[Decimal] = mapped_column(nullable=False)

    total_model_usd: Mapped[Decimal] = mapped_column(nullable=False)

    total_cop_model: Mapped[Decimal] = mapped_column(nullable=False)

    max_advance_cop: Mapped[Decimal] = mapped_column(nullable=False)

    batch_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def __repr__(self) -> str:
        return f"<ArchivedModelTotal {self.period_date} {self.model_id}>"


class ArchivedRateSet(TrackedBase):
    """
    Rates a closed period was computed with.

    Guarantees:
        - ``revision`` starts at 1 and increases by one per rate correction.
        - corrected_at / corrected_by_id identify the latest correction.
    """

    __tablename__ = "archived_rate_sets"

    __table_args__ = (
        UniqueConstraint("period_date", name="uq_archived_rate_set"),
    )

    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    eur_usd: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)

    gbp_usd: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)

    usd_cop: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)

    batch_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    corrected_at: Mapped[datetime | None] = mapped_column(nullable=True)

    corrected_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<ArchivedRateSet {self.period_date} r{self.revision}>"
