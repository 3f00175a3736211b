"""
earnings_engines.aggregation -- Group -> Sede -> Global earnings rollup.

Responsibility:
    Sum per-model earnings up the studio hierarchy and filter the result to
    what the requesting admin may see.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Recomputed from
    ModelEarnings on every call; nothing is cached.

Invariants enforced:
    - Every level's totals are plain sums of the level below.
    - total_agency_usd is a property (gross - model) at every level, never
      a stored field.
    - Models without a group, and groups without a sede, land in the
      UNASSIGNED bucket so global totals cover every model.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from earnings_engines.tracer import traced_engine
from earnings_kernel.db.types import ZERO
from earnings_kernel.domain.values import ModelEarnings

UNASSIGNED = "unassigned"

NodeId = UUID | str


@dataclass(frozen=True)
class VisibilityScope:
    """Which groups an admin may see.  A super-admin sees the full tree."""

    super_admin: bool = False
    group_ids: frozenset[NodeId] = frozenset()

    @classmethod
    def everything(cls) -> VisibilityScope:
        return cls(super_admin=True)

    @classmethod
    def for_groups(cls, group_ids: Iterable[NodeId]) -> VisibilityScope:
        return cls(super_admin=False, group_ids=frozenset(group_ids))

    def allows(self, group_id: NodeId) -> bool:
        return self.super_admin or group_id in self.group_ids


@dataclass(frozen=True)
class GroupSummary:
    group_id: NodeId
    sede_id: NodeId
    models: tuple[ModelEarnings, ...]
    total_gross_usd: Decimal
    total_model_usd: Decimal
    total_cop_model: Decimal

    @property
    def total_agency_usd(self) -> Decimal:
        return self.total_gross_usd - self.total_model_usd

    @property
    def model_count(self) -> int:
        return len(self.models)


@dataclass(frozen=True)
class SedeSummary:
    sede_id: NodeId
    groups: tuple[GroupSummary, ...]
    total_gross_usd: Decimal
    total_model_usd: Decimal
    total_cop_model: Decimal

    @property
    def total_agency_usd(self) -> Decimal:
        return self.total_gross_usd - self.total_model_usd

    @property
    def model_count(self) -> int:
        return sum(g.model_count for g in self.groups)


@dataclass(frozen=True)
class GlobalSummary:
    sedes: tuple[SedeSummary, ...]
    total_gross_usd: Decimal
    total_model_usd: Decimal
    total_cop_model: Decimal

    @property
    def total_agency_usd(self) -> Decimal:
        return self.total_gross_usd - self.total_model_usd

    @property
    def model_count(self) -> int:
        return sum(s.model_count for s in self.sedes)


def _sort_key(node_id: NodeId) -> tuple[int, str]:
    # Real ids first, the unassigned bucket last
    return (1 if node_id == UNASSIGNED else 0, str(node_id))


class PeriodAggregator:
    """
    Stateless rollup of ModelEarnings into the sede hierarchy.

    Contract:
        ``aggregate`` returns one SedeSummary per visible sede, each with
        one GroupSummary per visible group.  ``global_summary`` sums sedes.

    Non-goals:
        - Does not load anything; the caller passes the mappings.
    """

    @traced_engine("aggregation", "1.0", fingerprint_fields=("model_earnings",))
    def aggregate(
        self,
        model_earnings: Iterable[ModelEarnings],
        model_to_group: Mapping[UUID, NodeId | None],
        group_to_sede: Mapping[NodeId, NodeId | None],
        scope: VisibilityScope | None = None,
    ) -> list[SedeSummary]:
        scope = scope or VisibilityScope.everything()

        by_group: dict[NodeId, list[ModelEarnings]] = defaultdict(list)
        for earnings in model_earnings:
            group_id = model_to_group.get(earnings.model_id) or UNASSIGNED
            if not scope.allows(group_id):
                continue
            by_group[group_id].append(earnings)

        by_sede: dict[NodeId, list[GroupSummary]] = defaultdict(list)
        for group_id in sorted(by_group, key=_sort_key):
            models = tuple(by_group[group_id])
            sede_id = (
                group_to_sede.get(group_id) if group_id != UNASSIGNED else None
            ) or UNASSIGNED
            by_sede[sede_id].append(
                GroupSummary(
                    group_id=group_id,
                    sede_id=sede_id,
                    models=models,
                    total_gross_usd=sum((m.total_gross_usd for m in models), ZERO),
                    total_model_usd=sum((m.total_model_usd for m in models), ZERO),
                    total_cop_model=sum((m.total_cop_model for m in models), ZERO),
                )
            )

        sedes: list[SedeSummary] = []
        for sede_id in sorted(by_sede, key=_sort_key):
            groups = tuple(by_sede[sede_id])
            sedes.append(
                SedeSummary(
                    sede_id=sede_id,
                    groups=groups,
                    total_gross_usd=sum((g.total_gross_usd for g in groups), ZERO),
                    total_model_usd=sum((g.total_model_usd for g in groups), ZERO),
                    total_cop_model=sum((g.total_cop_model for g in groups), ZERO),
                )
            )
        return sedes

    def global_summary(self, sedes: Iterable[SedeSummary]) -> GlobalSummary:
        sedes = tuple(sedes)
        return GlobalSummary(
            sedes=sedes,
            total_gross_usd=sum((s.total_gross_usd for s in sedes), ZERO),
            total_model_usd=sum((s.total_model_usd for s in sedes), ZERO),
            total_cop_model=sum((s.total_cop_model for s in sedes), ZERO),
        )
