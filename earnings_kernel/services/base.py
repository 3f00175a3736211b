"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every kernel
    service.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()``, never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries belong to the caller (``session_scope()`` or
      the lifecycle manager's per-phase transactions).  Services flush and
      never commit or roll back.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from earnings_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-model queries; those live in selectors/.
    """

    def __init__(self, session: Session):
        self.session = session
