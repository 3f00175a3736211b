"""
Fixtures for lifecycle tests.

``populated`` records the standard period used across these tests
(rates EUR 1.25, GBP 1.5, COP 4000):

    alice  (Group A, 80%)  big7 100 EUR, chaturbate 1000 tokens
                           gross 105 + 50 = 155, model 124
    carla  (Group B, 70%)  aw 100 GBP
                           gross 150 x 0.677 = 101.55, model 71.085 (70%)
    loner  (no group, 80%) newcam 10 USD
                           gross 10, model 8
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from earnings_kernel.services.period_lock_service import PeriodLockService

POPULATED_GROSS = Decimal("266.55")
POPULATED_MODEL = Decimal("203.085")
ALICE_MODEL = Decimal("124")


@pytest.fixture
def populated(studio, record_values):
    record_values(studio.alice, {"big7": "100", "chaturbate": "1000"})
    record_values(studio.carla, {"aw": "100"})
    record_values(studio.loner, {"newcam": "10"})
    return studio


@pytest.fixture
def counts(session_factory):
    """Row counts read in a fresh session: ``counts(Model, period)``."""

    def _count(model, period) -> int:
        with session_factory() as session:
            return session.execute(
                select(func.count(model.id)).where(model.period_date == period.start)
            ).scalar_one()

    return _count


@pytest.fixture
def audit_events(session_factory):
    """Audit trail events of a period, in order."""

    def _events(period) -> list[str]:
        with session_factory() as session:
            return [e.event for e in PeriodLockService(session).audit_trail(period)]

    return _events

