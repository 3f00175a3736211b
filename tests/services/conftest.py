"""Fixtures for kernel service tests: one session, seeded studio, no commits."""

import pytest

from tests.conftest import seed_studio


@pytest.fixture
def seeded(session, config):
    return seed_studio(session, config)
