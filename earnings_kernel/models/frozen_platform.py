"""
Module: earnings_kernel.models.frozen_platform
Responsibility: ORM persistence for per-(period, model) frozen platforms.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (model, platform, period): uq_frozen_platform.  A frozen
      platform's raw value is read-only for the model until cleanup
      unfreezes the period.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from earnings_kernel.db.base import TrackedBase, UUIDString


class FrozenPlatform(TrackedBase):
    """One platform whose connection window closed for a model and period."""

    __tablename__ = "frozen_platforms"

    __table_args__ = (
        UniqueConstraint(
            "model_id", "platform_code", "period_date", name="uq_frozen_platform"
        ),
        Index("idx_frozen_platform_period", "period_date"),
    )

    model_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    platform_code: Mapped[str] = mapped_column(String(50), nullable=False)

    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    frozen_at: Mapped[datetime] = mapped_column(nullable=False)

    # "policy" when the freeze predicate triggered, "manual" otherwise
    reason: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return f"<FrozenPlatform {self.platform_code} {self.period_date}>"
