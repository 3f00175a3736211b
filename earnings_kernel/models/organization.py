"""
Module: earnings_kernel.models.organization
Responsibility: ORM persistence for the studio hierarchy: Sede -> ModelGroup
    -> ModelProfile.  Groups carry the percentage and minimum-quota overrides
    used by the override chain.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Sede and group names are unique.
    - A model belongs to at most one group; a group to at most one sede.
      Unmapped models and groups are aggregated under an "unassigned" bucket.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from earnings_kernel.db.base import TrackedBase, UUIDString


class Sede(TrackedBase):
    """A physical studio location."""

    __tablename__ = "sedes"

    __table_args__ = (UniqueConstraint("name", name="uq_sede_name"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Sede {self.name}>"


class ModelGroup(TrackedBase):
    """
    A group of models managed together inside a sede.

    Guarantees:
        - percentage_override, when set, replaces the default revenue share
          for platforms that do not carry their own override.
        - min_quota_override, when set, replaces the platform thresholds
          when resolving a model's minimum quota.
    """

    __tablename__ = "model_groups"

    __table_args__ = (
        UniqueConstraint("name", name="uq_model_group_name"),
        Index("idx_model_group_sede", "sede_id"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    sede_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("sedes.id"),
        nullable=True,
    )

    # Revenue share in percent (e.g. 80 means the model keeps 80%)
    percentage_override: Mapped[Decimal | None] = mapped_column(nullable=True)

    min_quota_override: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<ModelGroup {self.name}>"


class ModelProfile(TrackedBase):
    """A participant ("modelo") whose platform earnings are tracked."""

    __tablename__ = "model_profiles"

    __table_args__ = (Index("idx_model_profile_group", "group_id"),)

    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    group_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("model_groups.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<ModelProfile {self.display_name}>"
