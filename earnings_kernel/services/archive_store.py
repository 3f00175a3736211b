"""
ArchiveStoreService -- append-only snapshot of closed periods.

Responsibility:
    Write the archive of a period (raw values with derived earnings, model
    totals, rate set) and read it back as historical ``ModelEarnings``.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.
    Written by the lifecycle manager's archive phase; rewritten only by
    its rate correction.

Invariants enforced:
    - Append-only: snapshot writers insert, never update.  The unique
      constraints on archived rows make a second snapshot of the same
      (period, model) fail instead of duplicating.
    - Raw amounts in the archive never change; ``apply_rate_correction``
      rewrites derived columns only and bumps ``revision``.
    - ``consistency_errors`` checks that each model's archived platform
      rows sum to its archived total.

Failure modes:
    - IntegrityError on a duplicate snapshot row.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from earnings_kernel.db.types import ZERO
from earnings_kernel.domain.clock import Clock, SystemClock
from earnings_kernel.domain.periods import Period
from earnings_kernel.domain.values import (
    ExchangeRateSet,
    ModelEarnings,
    PlatformEarnings,
    PlatformSpec,
    RawValue,
)
from earnings_kernel.logging_config import get_logger
from earnings_kernel.models.archive import (
    ArchivedModelTotal,
    ArchivedRateSet,
    ArchivedValue,
)
from earnings_kernel.services.base import BaseService

logger = get_logger("services.archive_store")

# Rows are stored with 9 decimal places; sums are compared within this bound.
CONSISTENCY_TOLERANCE = Decimal("0.000001")


class ArchiveStoreService(BaseService[ArchivedValue]):
    """Writer and reader of archived periods."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def write_rate_set(
        self,
        period: Period,
        rates: ExchangeRateSet,
        batch_id: UUID,
        actor_id: UUID,
    ) -> ArchivedRateSet:
        """Archive the period's rates; an existing set is kept as is."""
        row = self._rate_row(period)
        if row is not None:
            return row
        row = ArchivedRateSet(
            period_date=period.start,
            period_type=period.period_type.value,
            eur_usd=rates.eur_usd,
            gbp_usd=rates.gbp_usd,
            usd_cop=rates.usd_cop,
            batch_id=batch_id,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def write_model_snapshot(
        self,
        period: Period,
        earnings: ModelEarnings,
        raw_values: Iterable[RawValue],
        platforms: Mapping[str, PlatformSpec],
        group_id: UUID | None,
        batch_id: UUID,
        actor_id: UUID,
    ) -> int:
        """
        Archive one model: one row per raw value plus the model total.

        Raw values that did not contribute (zero amount, disabled platform)
        are archived with zero derived values and ``counted=False`` so that
        restore can put them back.

        Returns:
            Number of archived value rows written.
        """
        now = self._clock.now()
        written = 0
        for raw in raw_values:
            spec = platforms[raw.platform_id]
            entry = earnings.platform(raw.platform_id)
            self.session.add(
                ArchivedValue(
                    period_date=period.start,
                    period_type=period.period_type.value,
                    model_id=earnings.model_id,
                    platform_code=raw.platform_id,
                    currency=spec.currency,
                    raw_amount=raw.amount,
                    gross_usd=entry.gross_usd if entry else ZERO,
                    model_usd=entry.model_usd if entry else ZERO,
                    cop_model=entry.cop_model if entry else ZERO,
                    platform_percentage=spec.percentage,
                    full_share=entry.full_share if entry else False,
                    counted=entry is not None,
                    rule_id=spec.rule_key,
                    batch_id=batch_id,
                    archived_at=now,
                    created_by_id=actor_id,
                )
            )
            written += 1

        self.session.add(
            ArchivedModelTotal(
                period_date=period.start,
                period_type=period.period_type.value,
                model_id=earnings.model_id,
                group_id=group_id,
                total_gross_usd=earnings.total_gross_usd,
                total_model_usd=earnings.total_model_usd,
                total_cop_model=earnings.total_cop_model,
                max_advance_cop=earnings.max_advance_cop,
                batch_id=batch_id,
                created_by_id=actor_id,
            )
        )
        self.session.flush()

        logger.debug(
            "model_archived",
            extra={
                "period_code": period.code,
                "model_id": str(earnings.model_id),
                "records": written,
            },
        )
        return written

    def apply_rate_correction(
        self,
        period: Period,
        rates: ExchangeRateSet,
        per_platform: Mapping[tuple[UUID, str], PlatformEarnings],
        totals: Mapping[UUID, ModelEarnings],
        actor_id: UUID,
    ) -> int:
        """
        Rewrite derived columns after a rate correction.

        ``per_platform`` holds the recomputed earnings of every counted row,
        keyed by (model_id, platform_code); ``totals`` the recomputed model
        totals.  Raw amounts are left untouched.

        Returns:
            The new revision of the archived rate set.
        """
        now = self._clock.now()
        rate_row = self.get_rate_row_for_update(period)
        rate_row.eur_usd = rates.eur_usd
        rate_row.gbp_usd = rates.gbp_usd
        rate_row.usd_cop = rates.usd_cop
        rate_row.revision += 1
        rate_row.corrected_at = now
        rate_row.corrected_by_id = actor_id
        rate_row.touch(actor_id)

        for row in self.archived_value_rows(period):
            entry = per_platform.get((row.model_id, row.platform_code))
            if entry is None:
                continue
            row.gross_usd = entry.gross_usd
            row.model_usd = entry.model_usd
            row.cop_model = entry.cop_model
            row.revision += 1
            row.touch(actor_id)

        for row in self.archived_total_rows(period):
            earnings = totals.get(row.model_id)
            if earnings is None:
                continue
            row.total_gross_usd = earnings.total_gross_usd
            row.total_model_usd = earnings.total_model_usd
            row.total_cop_model = earnings.total_cop_model
            row.max_advance_cop = earnings.max_advance_cop
            row.revision += 1
            row.touch(actor_id)

        self.session.flush()
        return rate_row.revision

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def _rate_row(self, period: Period) -> ArchivedRateSet | None:
        return self.session.execute(
            select(ArchivedRateSet).where(ArchivedRateSet.period_date == period.start)
        ).scalar_one_or_none()

    def get_rate_row_for_update(self, period: Period) -> ArchivedRateSet | None:
        """Archived rate set with a row lock (serializes rate corrections)."""
        return self.session.execute(
            select(ArchivedRateSet)
            .where(ArchivedRateSet.period_date == period.start)
            .with_for_update()
        ).scalar_one_or_none()

    def get_rate_set(self, period: Period) -> ExchangeRateSet | None:
        row = self._rate_row(period)
        if row is None:
            return None
        return ExchangeRateSet(
            eur_usd=row.eur_usd,
            gbp_usd=row.gbp_usd,
            usd_cop=row.usd_cop,
            scope=f"archive:r{row.revision}",
        )

    def rate_revision(self, period: Period) -> int | None:
        row = self._rate_row(period)
        return row.revision if row is not None else None

    def archived_value_rows(
        self, period: Period, model_id: UUID | None = None
    ) -> list[ArchivedValue]:
        stmt = select(ArchivedValue).where(ArchivedValue.period_date == period.start)
        if model_id is not None:
            stmt = stmt.where(ArchivedValue.model_id == model_id)
        stmt = stmt.order_by(ArchivedValue.model_id, ArchivedValue.platform_code)
        return list(self.session.execute(stmt).scalars())

    def archived_total_rows(self, period: Period) -> list[ArchivedModelTotal]:
        return list(
            self.session.execute(
                select(ArchivedModelTotal)
                .where(ArchivedModelTotal.period_date == period.start)
                .order_by(ArchivedModelTotal.model_id)
            ).scalars()
        )

    def archived_raw_values(self, period: Period) -> list[RawValue]:
        return [
            RawValue(model_id=r.model_id, platform_id=r.platform_code, amount=r.raw_amount)
            for r in self.archived_value_rows(period)
        ]

    def archived_model_ids(self, period: Period) -> set[UUID]:
        rows = self.session.execute(
            select(ArchivedModelTotal.model_id).where(
                ArchivedModelTotal.period_date == period.start
            )
        ).scalars()
        return set(rows)

    def count_values(self, period: Period) -> int:
        return self.session.execute(
            select(func.count(ArchivedValue.id)).where(
                ArchivedValue.period_date == period.start
            )
        ).scalar_one()

    def get_model_earnings(self, period: Period) -> list[ModelEarnings]:
        """Historical ModelEarnings rebuilt from the archive (quota not kept)."""
        rates = self.get_rate_set(period)
        entries: dict[UUID, list[PlatformEarnings]] = defaultdict(list)
        for row in self.archived_value_rows(period):
            if not row.counted:
                continue
            entries[row.model_id].append(
                PlatformEarnings(
                    platform_id=row.platform_code,
                    currency=row.currency,
                    raw_amount=row.raw_amount,
                    gross_usd=row.gross_usd,
                    model_usd=row.model_usd,
                    cop_model=row.cop_model,
                    percentage=row.platform_percentage,
                    full_share=row.full_share,
                )
            )
        return [
            ModelEarnings(
                model_id=total.model_id,
                per_platform=tuple(entries.get(total.model_id, ())),
                total_gross_usd=total.total_gross_usd,
                total_model_usd=total.total_model_usd,
                total_cop_model=total.total_cop_model,
                max_advance_cop=total.max_advance_cop,
                rates=rates,
            )
            for total in self.archived_total_rows(period)
        ]

    def archived_groups(self, period: Period) -> dict[UUID, UUID | None]:
        """model_id -> group_id as recorded at archive time."""
        return {t.model_id: t.group_id for t in self.archived_total_rows(period)}

    def consistency_errors(self, period: Period) -> dict[str, str]:
        """
        Models whose archived platform rows do not sum to the archived total.

        Returns:
            model_id (str) -> description; empty when consistent.
        """
        sums: dict[UUID, tuple[Decimal, Decimal]] = defaultdict(lambda: (ZERO, ZERO))
        for row in self.archived_value_rows(period):
            gross, model = sums[row.model_id]
            sums[row.model_id] = (gross + row.gross_usd, model + row.model_usd)

        errors: dict[str, str] = {}
        for total in self.archived_total_rows(period):
            gross, model = sums.get(total.model_id, (ZERO, ZERO))
            if abs(model - total.total_model_usd) > CONSISTENCY_TOLERANCE:
                errors[str(total.model_id)] = (
                    f"archived model USD {model} != archived total "
                    f"{total.total_model_usd}"
                )
            elif abs(gross - total.total_gross_usd) > CONSISTENCY_TOLERANCE:
                errors[str(total.model_id)] = (
                    f"archived gross USD {gross} != archived total "
                    f"{total.total_gross_usd}"
                )
        return errors

