"""Fixtures for concurrency tests: shared with the lifecycle tests."""

from tests.lifecycle.conftest import audit_events, counts, populated  # noqa: F401
