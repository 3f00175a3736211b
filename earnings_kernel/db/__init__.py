"""Database layer - engine, base classes and column types."""

from earnings_kernel.db.base import Base, TrackedBase, UUIDString
from earnings_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)
from earnings_kernel.db.types import round_cop, round_usd

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "round_usd",
    "round_cop",
]
