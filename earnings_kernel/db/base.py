"""
earnings_kernel.db.base -- Declarative base for the studio earnings tables.

Every table is keyed by a uuid4 held as 36-character text, so one schema
serves SQLite and PostgreSQL.  Raw platform amounts and USD/COP figures are
Decimal and map to Numeric(38, 9); exchange rate columns widen that to
Numeric(38, 18) where they are declared.  Never float.

Rows an admin writes carry ``created_by_id`` from the insert and
``updated_by_id`` from the latest write: a value upsert, a rate pin, a
closure transition, a lock takeover, a rate correction.  Row times come
from the database.

Imports nothing from the rest of the kernel.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in a String(36) column."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract base for rows written on behalf of an admin.

    ORM writes call ``touch``; bulk UPDATE statements (locks, closure
    transitions, totals resets) put ``updated_by_id`` in their ``values()``.
    """

    __abstract__ = True

    created_by_id: Mapped[UUID] = mapped_column()
    updated_by_id: Mapped[UUID | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )

    def touch(self, actor_id: UUID) -> None:
        """Record ``actor_id`` as the row's latest writer."""
        self.updated_by_id = actor_id
