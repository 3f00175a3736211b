"""Tests for the structured logging system (earnings_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from earnings_kernel.domain.periods import Period
from earnings_kernel.exceptions import PeriodNotOpenError
from earnings_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from earnings_kernel.models.period_closure import ClosureState


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "earnings_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("archived", extra={"models_archived": 3, "archive_status": "complete"})

        record = _parse_log(stream)
        assert record["models_archived"] == 3
        assert record["archive_status"] == "complete"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(period_code="2025-10-P1", batch_id="b-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["period_code"] == "2025-10-P1"
        assert record["batch_id"] == "b-1"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "period_code" not in record
        assert "actor_id" not in record

    def test_decimal_and_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_values", extra={"model_id_extra": uid, "total": Decimal("71.085")})

        record = _parse_log(stream)
        assert record["model_id_extra"] == str(uid)
        assert record["total"] == "71.085"

    def test_enums_sets_and_periods_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "state",
            extra={
                "state": ClosureState.ARCHIVED,
                "platform_ids": frozenset({"mondo", "big7"}),
                "period": Period(date(2025, 10, 16)),
            },
        )

        record = _parse_log(stream)
        assert record["state"] == "archived"
        assert record["platform_ids"] == ["big7", "mondo"]
        assert record["period"] == "2025-10-P2"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise PeriodNotOpenError("2025-10-P1", "archiving")
        except PeriodNotOpenError:
            get_logger("test").error("write_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "PERIOD_NOT_OPEN"
        assert record["exc_type"] == "PeriodNotOpenError"
        assert record["exc_period_code"] == "2025-10-P1"
        assert record["exc_state"] == "archiving"

    def test_default_level_drops_debug(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(period_code="p", actor_id="a")
        assert LogContext.get_all() == {"actor_id": "a", "period_code": "p"}

    def test_clear(self):
        LogContext.set(period_code="p")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(period_code="outer")
        with LogContext.bind(period_code="inner"):
            assert LogContext.get_all()["period_code"] == "inner"
        assert LogContext.get_all()["period_code"] == "outer"

    def test_bind_restores_none(self):
        with LogContext.bind(batch_id="temp"):
            assert LogContext.get_all()["batch_id"] == "temp"
        assert "batch_id" not in LogContext.get_all()

    def test_bind_stringifies_uuids(self):
        uid = uuid4()
        with LogContext.bind(actor_id=uid):
            assert LogContext.get_all()["actor_id"] == str(uid)

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(period_code="p", colour="blue"):
            assert LogContext.get_all() == {"period_code": "p"}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("earnings_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.period_lock").name == "earnings_kernel.services.period_lock"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "earnings_kernel.deep.nested.module"
