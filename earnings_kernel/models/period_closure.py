"""
Module: earnings_kernel.models.period_closure
Responsibility: ORM persistence for the period closure state machine, the
    lifecycle locks that serialize archive and cleanup, and the closure
    audit log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One closure row per period (uq_period_closure).  State transitions are
      compare-and-swap on (state, version) so two sessions can never both
      advance the same period.
    - One lock row per (period, operation) (uq_period_lock).  Acquisition is
      a single conditional UPDATE: only the session whose UPDATE matched a
      row holds the lock.
    - Audit entries are append-only.

Failure modes:
    - IntegrityError when two sessions race to create the same closure or
      lock row; the loser re-reads the winner's row.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from earnings_kernel.db.base import Base, TrackedBase, UUIDString


class ClosureState(str, Enum):
    """
    Lifecycle state of a period.

    Contract: OPEN -> ARCHIVING -> ARCHIVED -> CLEANING -> CLOSED.
    restore() moves CLOSED back to ARCHIVED; a failed cleanup moves CLEANING
    back to ARCHIVED.
    """

    OPEN = "open"
    ARCHIVING = "archiving"
    ARCHIVED = "archived"
    CLEANING = "cleaning"
    CLOSED = "closed"


class ArchiveStatus(str, Enum):
    """Completeness of the archive snapshot."""

    COMPLETE = "complete"
    PARTIAL = "partial"


class LockOperation(str, Enum):
    ARCHIVE = "archive"
    CLEANUP = "cleanup"


class LockStatus(str, Enum):
    HELD = "held"
    RELEASED = "released"
    FAILED = "failed"


class PeriodClosure(TrackedBase):
    """
    State machine row for one half-month period.

    Guarantees:
        - ``version`` increases by one on every state transition.
        - archived_* fields are set when the archive completes; cleaned_*
          fields when cleanup completes.
        - ``failed_models`` maps model id -> last error for a partial archive.
    """

    __tablename__ = "period_closures"

    __table_args__ = (
        UniqueConstraint("period_date", name="uq_period_closure"),
        Index("idx_period_closure_state", "state"),
    )

    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    state: Mapped[str] = mapped_column(
        String(20),
        default=ClosureState.OPEN.value,
        nullable=False,
    )

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    archive_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    archive_batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    archived_at: Mapped[datetime | None] = mapped_column(nullable=True)

    archived_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    cleaned_at: Mapped[datetime | None] = mapped_column(nullable=True)

    cleaned_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    models_archived: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    records_archived: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    failed_models: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<PeriodClosure {self.period_date}: {self.state}>"

    @property
    def closure_state(self) -> ClosureState:
        return ClosureState(self.state)

    @property
    def is_partial(self) -> bool:
        return self.archive_status == ArchiveStatus.PARTIAL.value


class PeriodLock(TrackedBase):
    """
    Lock row serializing one lifecycle operation on one period.

    Contract:
        A lock is held while ``status == "held"`` and ``acquired_at`` is
        newer than the staleness cutoff.  A stale held lock may be taken
        over by another session.

    Guarantees:
        - acquired_by_id / acquired_at identify the current holder and are
          reported by LockHeldError.
        - total_models / processed_models / failed_model_count expose
          progress of a running archive to status polls.
    """

    __tablename__ = "period_locks"

    __table_args__ = (
        UniqueConstraint(
            "period_date", "period_type", "operation", name="uq_period_lock"
        ),
    )

    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    operation: Mapped[str] = mapped_column(String(20), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=LockStatus.RELEASED.value,
        nullable=False,
    )

    acquired_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    acquired_at: Mapped[datetime | None] = mapped_column(nullable=True)

    batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    released_at: Mapped[datetime | None] = mapped_column(nullable=True)

    released_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    total_models: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    processed_models: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    failed_model_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    error_message: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return f"<PeriodLock {self.period_date} {self.operation}: {self.status}>"


class ClosureAuditEntry(Base):
    """
    Append-only record of a lifecycle step.

    ``event`` is one of archive_start / archive_complete / archive_error,
    cleanup_start / cleanup_complete / cleanup_error, restore_complete,
    rate_correction_applied.
    """

    __tablename__ = "closure_audit_log"

    __table_args__ = (
        Index("idx_closure_audit_period", "period_date", "operation"),
    )

    period_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_type: Mapped[str] = mapped_column(String(10), nullable=False)

    operation: Mapped[str] = mapped_column(String(20), nullable=False)

    event: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<ClosureAuditEntry {self.period_date} {self.event}>"
