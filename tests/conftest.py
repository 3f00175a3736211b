"""
Pytest fixtures for the earnings kernel test suite.

Provides:
- A fresh database per test (SQLite file under tmp_path, or DATABASE_URL)
- Structured log capture
- Configuration, calculator and lifecycle manager wired like production
- A seeded studio: one sede, two groups, models, the platform catalog

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  the per-test SQLite file.  Tables are dropped and recreated per test.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import UUID

import pytest

from earnings_config import get_active_config
from earnings_engines.calculator import EarningsCalculator
from earnings_engines.platform_rules import PlatformRuleSet
from earnings_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from earnings_kernel.domain.clock import DeterministicClock
from earnings_kernel.domain.periods import Period
from earnings_kernel.domain.values import ExchangeRateSet
from earnings_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from earnings_kernel.models.organization import ModelGroup, ModelProfile, Sede
from earnings_kernel.models.platform import Platform
from earnings_kernel.services.rate_service import StaticRateProvider
from earnings_services.period_lifecycle import PeriodLifecycleManager

# Test actor ID for all test operations
TEST_ACTOR_ID = UUID("00000000-0000-4000-8000-0000000000a1")

# Period under test and rates that SQLite's float-backed Numeric stores exactly
PERIOD = Period(date(2025, 10, 1))
TEST_RATES = ExchangeRateSet(
    eur_usd=Decimal("1.25"),
    gbp_usd=Decimal("1.5"),
    usd_cop=Decimal("4000"),
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "concurrency: mark test as racing threads against one database"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture earnings_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, lifecycle):
            lifecycle.archive(PERIOD.start, TEST_ACTOR_ID)
            logs = captured_logs()
            assert any(r["message"] == "period_archive_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("earnings_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


def get_database_url(tmp_path) -> str:
    """DATABASE_URL from the environment, else a SQLite file for this test."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'earnings.db'}"


@pytest.fixture
def engine(tmp_path):
    engine = init_engine_from_url(get_database_url(tmp_path))
    drop_tables()
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """
    A single session for service-level tests.

    Do not combine with the lifecycle manager in the same test unless the
    session is committed first: SQLite serializes writers.
    """
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Configuration and engines
# =============================================================================


@pytest.fixture(scope="session")
def config():
    return get_active_config()


@pytest.fixture
def calculator(config):
    return EarningsCalculator(
        PlatformRuleSet(config.platform_rules),
        advance_ratio=config.settings.advance_ratio,
    )


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def lifecycle(session_factory, config, deterministic_clock):
    """Lifecycle manager with static test rates and no retry sleeps."""
    return PeriodLifecycleManager.from_config(
        session_factory,
        config,
        rate_provider=StaticRateProvider(TEST_RATES),
        clock=deterministic_clock,
        sleep=lambda _seconds: None,
    )


# =============================================================================
# Studio seed
# =============================================================================


@dataclass(frozen=True)
class Studio:
    sede_id: UUID
    group_a: UUID
    group_b: UUID
    alice: UUID
    bianca: UUID
    carla: UUID
    loner: UUID

    @property
    def grouped_models(self) -> tuple[UUID, ...]:
        return (self.alice, self.bianca, self.carla)


def seed_studio(session, config) -> Studio:
    """
    One sede with two groups.  Group B keeps 70% and has a 300 USD quota;
    ``loner`` belongs to no group.  Every configured rule gets a catalog
    platform, plus ``newcam`` (USD, no rule) and ``retired`` (disabled).
    """
    sede = Sede(name="Medellin", created_by_id=TEST_ACTOR_ID)
    session.add(sede)
    session.flush()

    group_a = ModelGroup(name="Group A", sede_id=sede.id, created_by_id=TEST_ACTOR_ID)
    group_b = ModelGroup(
        name="Group B",
        sede_id=sede.id,
        percentage_override=Decimal("70"),
        min_quota_override=Decimal("300"),
        created_by_id=TEST_ACTOR_ID,
    )
    session.add_all([group_a, group_b])
    session.flush()

    def profile(name: str, group_id: UUID | None) -> UUID:
        model = ModelProfile(display_name=name, group_id=group_id, created_by_id=TEST_ACTOR_ID)
        session.add(model)
        session.flush()
        return model.id

    alice = profile("Alice", group_a.id)
    bianca = profile("Bianca", group_a.id)
    carla = profile("Carla", group_b.id)
    loner = profile("Loner", None)

    for rule in config.platform_rules:
        session.add(
            Platform(
                platform_code=rule.rule_id,
                name=rule.rule_id,
                currency=rule.currency,
                conversion_rule_id=rule.rule_id,
                created_by_id=TEST_ACTOR_ID,
            )
        )
    session.add(
        Platform(
            platform_code="newcam",
            name="New Cam",
            currency="USD",
            created_by_id=TEST_ACTOR_ID,
        )
    )
    session.add(
        Platform(
            platform_code="retired",
            name="Retired",
            currency="USD",
            enabled=False,
            created_by_id=TEST_ACTOR_ID,
        )
    )
    session.flush()

    return Studio(
        sede_id=sede.id,
        group_a=group_a.id,
        group_b=group_b.id,
        alice=alice,
        bianca=bianca,
        carla=carla,
        loner=loner,
    )


@pytest.fixture
def studio(session_factory, config) -> Studio:
    with session_factory() as session:
        seeded = seed_studio(session, config)
        session.commit()
    return seeded


@pytest.fixture
def record_values(session_factory, lifecycle):
    """
    Write raw values in their own committed transaction.

    Usage::

        record_values(studio.alice, {"big7": "100", "chaturbate": "1000"})
    """

    def _record(model_id: UUID, values: dict[str, str], period: Period = PERIOD) -> None:
        with session_factory() as session:
            service = lifecycle.earnings_service(session)
            for platform_id, amount in values.items():
                service.record_value(model_id, platform_id, period, Decimal(amount), TEST_ACTOR_ID)
            session.commit()

    return _record


@pytest.fixture
def pinned_rates(session_factory, deterministic_clock):
    """Pin TEST_RATES to PERIOD."""
    from earnings_kernel.services.rate_service import RateService

    with session_factory() as session:
        RateService(session, deterministic_clock).pin_rates(PERIOD, TEST_RATES, TEST_ACTOR_ID)
        session.commit()
    return TEST_RATES
