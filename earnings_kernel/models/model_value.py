"""
Module: earnings_kernel.models.model_value
Responsibility: ORM persistence for live raw values and the live per-model
    totals of the open period.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Exactly one raw value per (model, platform, period): uq_model_value.
    - Exactly one live total per (model, period): uq_model_period_total.
    - Agency margin is never stored; it is always gross - model.

Failure modes:
    - IntegrityError on a duplicate (model, platform, period) insert.  The
      live store upserts, so this only fires on a lost race and the caller
      retries.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from earnings_kernel.db.base import TrackedBase, UUIDString


class ModelValue(TrackedBase):
    """A model's reported amount on one platform, in the platform's currency."""

    __tablename__ = "model_values"

    __table_args__ = (
        UniqueConstraint(
            "model_id", "platform_code", "period_date", name="uq_model_value"
        ),
        Index("idx_model_value_period", "period_date"),
    )

    model_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("model_profiles.id"),
        nullable=False,
    )

    # No FK: raw values may reference platforms since removed from the catalog
    platform_code: Mapped[str] = mapped_column(String(50), nullable=False)

    # First day of the period (1 or 16)
    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ModelValue {self.model_id} {self.platform_code} "
            f"{self.period_date}: {self.amount}>"
        )


class ModelPeriodTotal(TrackedBase):
    """
    Live totals of one model for the open period.

    Refreshed after every raw value write and zeroed by cleanup.
    """

    __tablename__ = "model_period_totals"

    __table_args__ = (
        UniqueConstraint("model_id", "period_date", name="uq_model_period_total"),
    )

    model_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("model_profiles.id"),
        nullable=False,
    )

    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    total_gross_usd: Mapped[Decimal] = mapped_column(nullable=False)

    total_model_usd: Mapped[Decimal] = mapped_column(nullable=False)

    total_cop_model: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<ModelPeriodTotal {self.model_id} {self.period_date}>"
