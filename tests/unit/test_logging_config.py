"""Tests for the structured logging system (agency_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from agency_kernel.domain.currency import Currency
from agency_kernel.exceptions import RateFetchError
from agency_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's config."""
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
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "agency_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "transaction_created", extra={"category": "office", "amount": "10"}
        )

        record = _parse_log(stream)
        assert record["category"] == "office"
        assert record["amount"] == "10"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="req-123", actor_id="user-9")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "req-123"
        assert record["actor_id"] == "user-9"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "entity_id" not in record

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

    def test_agency_error_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise RateFetchError("EGP", "timed out")
        except RateFetchError:
            get_logger("test").error("rate_fetch_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "RATE_FETCH_FAILURE"
        assert record["exc_severity"] == "server"
        assert record["exc_base_currency"] == "EGP"
        assert record["exc_reason"] == "timed out"

    def test_rich_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "values",
            extra={"entity": uid, "total": Decimal("12.50"), "base_currency": Currency.USD},
        )

        record = _parse_log(stream)
        assert record["entity"] == str(uid)
        assert record["total"] == "12.50"
        assert record["base_currency"] == "USD"

    def test_level_filters_lines(self):
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
    def test_values_are_stored_as_strings(self):
        actor = uuid4()
        LogContext.set(actor_id=actor, entity_id="txn-1")
        assert LogContext.get_all() == {"actor_id": str(actor), "entity_id": "txn-1"}

    def test_set_ignores_none(self):
        LogContext.set(correlation_id="req-1")
        LogContext.set(correlation_id=None, actor_id="user-2")
        assert LogContext.get_all() == {"correlation_id": "req-1", "actor_id": "user-2"}

    def test_bind_restores_previous_values(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", actor_id="user-3"):
            assert LogContext.get_all() == {"correlation_id": "inner", "actor_id": "user-3"}
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_set_inside_bind_does_not_leak(self):
        with LogContext.bind(actor_id="user-4", entity_id=None):
            LogContext.set(entity_id="project-9")
            assert LogContext.get_all()["entity_id"] == "project-9"
        assert LogContext.get_all() == {}

    def test_bind_hides_outer_value_passed_as_none(self):
        LogContext.set(entity_id="outer-entity")
        with LogContext.bind(entity_id=None):
            assert "entity_id" not in LogContext.get_all()
        assert LogContext.get_all() == {"entity_id": "outer-entity"}

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(producer="ledger", actor_id="user-5"):
            assert LogContext.get_all() == {"actor_id": "user-5"}

    def test_restored_after_exception(self):
        with pytest.raises(RateFetchError):
            with LogContext.bind(actor_id="user-6"):
                raise RateFetchError("USD", "offline")
        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(correlation_id="x", actor_id="y")
        LogContext.clear()
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert logging.getLogger("agency_kernel").handlers == [h1]

    def test_get_logger_returns_child(self):
        assert get_logger("modules.transactions").name == "agency_kernel.modules.transactions"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "agency_kernel.deep.nested.module"
