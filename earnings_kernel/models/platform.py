"""
Module: earnings_kernel.models.platform
Responsibility: ORM persistence for the platform catalog.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - platform_code is unique.
    - currency is one of USD / EUR / GBP (checked by EarningsSelector when
      building PlatformSpec DTOs; the calculator rejects anything else).
"""

from decimal import Decimal

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from earnings_kernel.db.base import TrackedBase


class Platform(TrackedBase):
    """
    A revenue platform a model can report earnings on.

    Contract:
        ``conversion_rule_id`` selects the row of the platform rule table;
        when unset the platform code itself is the rule key.  Platforms
        without a matching rule are passed through in their currency.

    Non-goals:
        - Conversion factors are NOT stored here; they live in the YAML rule
          table loaded by earnings_config.
    """

    __tablename__ = "platforms"

    __table_args__ = (
        UniqueConstraint("platform_code", name="uq_platform_code"),
    )

    # Stable identifier used by raw values and the rule table (e.g. "big7")
    platform_code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    conversion_rule_id: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    # Revenue share in percent; highest priority in the override chain
    percentage_override: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Minimum gross USD a model should reach on this platform per period
    min_quota: Mapped[Decimal | None] = mapped_column(nullable=True)

    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Platform {self.platform_code} ({self.currency})>"
