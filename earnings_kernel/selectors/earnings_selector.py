"""
Module: earnings_kernel.selectors.earnings_selector
Responsibility: Read-only access to everything the calculator and the
    aggregator need: the platform catalog with its overrides, the studio
    hierarchy and live raw values.
Architecture position: Kernel > Selectors.  Returns frozen DTOs; percentage
    resolution itself happens in the services layer with the calculator's
    ``resolve_percentage``.

Invariants enforced:
    - Read-only: no add/delete/flush/commit.
    - Results are ordered deterministically (platform code, model id).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from earnings_kernel.domain.periods import Period
from earnings_kernel.domain.values import RawValue
from earnings_kernel.models.model_value import ModelPeriodTotal, ModelValue
from earnings_kernel.models.organization import ModelGroup, ModelProfile
from earnings_kernel.models.platform import Platform
from earnings_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PlatformCatalogEntry:
    """A catalog platform with its own (platform-level) overrides."""

    platform_code: str
    currency: str
    rule_id: str | None
    percentage_override: Decimal | None
    min_quota: Decimal | None
    enabled: bool


@dataclass(frozen=True)
class GroupOverrides:
    group_id: UUID | None
    percentage_override: Decimal | None = None
    min_quota_override: Decimal | None = None


@dataclass(frozen=True)
class LiveTotals:
    model_id: UUID
    total_gross_usd: Decimal
    total_model_usd: Decimal
    total_cop_model: Decimal

    @property
    def total_agency_usd(self) -> Decimal:
        return self.total_gross_usd - self.total_model_usd


class EarningsSelector(BaseSelector[ModelValue]):
    """
    Read model for earnings inputs.

    Contract:
        Every method is a pure read inside the caller's transaction.
    """

    def platform_catalog(self, default_currency: str = "USD") -> list[PlatformCatalogEntry]:
        rows = self.session.execute(
            select(Platform).order_by(Platform.platform_code)
        ).scalars()
        return [
            PlatformCatalogEntry(
                platform_code=p.platform_code,
                currency=(p.currency or default_currency).upper(),
                rule_id=p.conversion_rule_id,
                percentage_override=p.percentage_override,
                min_quota=p.min_quota,
                enabled=p.enabled,
            )
            for p in rows
        ]

    def model_group(self, model_id: UUID) -> UUID | None:
        return self.session.execute(
            select(ModelProfile.group_id).where(ModelProfile.id == model_id)
        ).scalar_one_or_none()

    def group_overrides(self, group_id: UUID | None) -> GroupOverrides:
        if group_id is None:
            return GroupOverrides(group_id=None)
        group = self.session.get(ModelGroup, group_id)
        if group is None:
            return GroupOverrides(group_id=group_id)
        return GroupOverrides(
            group_id=group_id,
            percentage_override=group.percentage_override,
            min_quota_override=group.min_quota_override,
        )

    def model_to_group(self) -> dict[UUID, UUID | None]:
        rows = self.session.execute(select(ModelProfile.id, ModelProfile.group_id))
        return {model_id: group_id for model_id, group_id in rows}

    def group_to_sede(self) -> dict[UUID, UUID | None]:
        rows = self.session.execute(select(ModelGroup.id, ModelGroup.sede_id))
        return {group_id: sede_id for group_id, sede_id in rows}

    def raw_values(self, period: Period, model_id: UUID | None = None) -> list[RawValue]:
        stmt = select(ModelValue).where(ModelValue.period_date == period.start)
        if model_id is not None:
            stmt = stmt.where(ModelValue.model_id == model_id)
        stmt = stmt.order_by(ModelValue.model_id, ModelValue.platform_code)
        return [
            RawValue(
                model_id=row.model_id,
                platform_id=row.platform_code,
                amount=row.amount,
            )
            for row in self.session.execute(stmt).scalars()
        ]

    def models_with_values(self, period: Period) -> list[UUID]:
        rows = self.session.execute(
            select(ModelValue.model_id)
            .where(ModelValue.period_date == period.start)
            .distinct()
        ).scalars()
        return sorted(rows, key=str)

    def count_values(self, period: Period) -> int:
        return self.session.execute(
            select(func.count(ModelValue.id)).where(
                ModelValue.period_date == period.start
            )
        ).scalar_one()

    def live_totals(self, period: Period) -> list[LiveTotals]:
        rows = self.session.execute(
            select(ModelPeriodTotal)
            .where(ModelPeriodTotal.period_date == period.start)
            .order_by(ModelPeriodTotal.model_id)
        ).scalars()
        return [
            LiveTotals(
                model_id=t.model_id,
                total_gross_usd=t.total_gross_usd,
                total_model_usd=t.total_model_usd,
                total_cop_model=t.total_cop_model,
            )
            for t in rows
        ]
