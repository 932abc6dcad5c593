"""Tests for the structured logging system (reservation_kernel/logging_config.py)."""

import json
import logging
from datetime import UTC, date, datetime
from io import StringIO
from uuid import uuid4

import pytest

from reservation_kernel.domain.resource import ResourceStatus
from reservation_kernel.domain.roles import Role
from reservation_kernel.exceptions import (
    InsufficientRoleError,
    ReservationConflictError,
    ResourceNotReservableError,
)
from reservation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
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
    """Parse all JSON log lines from a stream."""
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "reservation_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("reservation_transitioned", extra={"to_state": "approved", "count": 2})

        record = _parse_log(stream)
        assert record["to_state"] == "approved"
        assert record["count"] == 2

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", reservation_id="res-456")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["reservation_id"] == "res-456"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self):
        """Kernel exceptions carry .code, .kind and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from reservation_kernel.exceptions import StaleStateError

        try:
            raise StaleStateError("Reservation", "r-1", "pending")
        except StaleStateError:
            logger.error("transition_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "STALE_STATE"
        assert record["exc_kind"] == "stale_state"
        assert record["exc_type"] == "StaleStateError"
        assert record["exc_entity_id"] == "r-1"
        assert record["exc_expected_state"] == "pending"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "reservation_id" not in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_uuid", extra={"resource_id_value": uid})

        record = _parse_log(stream)
        assert record["resource_id_value"] == str(uid)

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


    @pytest.mark.parametrize(
        "exc, kind, code, field, value",
        [
            (
                ReservationConflictError("res-1", "2025-03-10", "2025-03-12", instance_index=2),
                "conflict", "RESERVATION_CONFLICT", "exc_instance_index", 2,
            ),
            (
                ResourceNotReservableError("res-1", "resource is rented"),
                "validation", "RESOURCE_NOT_RESERVABLE", "exc_reason", "resource is rented",
            ),
            (
                InsufficientRoleError("u-1", "manager", "admin"),
                "permission", "INSUFFICIENT_ROLE", "exc_required_role", "admin",
            ),
        ],
    )
    def test_exc_kind_names_the_rejection_family(self, exc, kind, code, field, value):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise exc
        except type(exc):
            logger.warning("operation_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_kind"] == kind
        assert record["exc_code"] == code
        assert record[field] == value
        assert "exc_args" not in record

    def test_enum_and_calendar_values_encoded(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info(
            "resource_occupied",
            extra={
                "previous_status": ResourceStatus.AVAILABLE,
                "end_date": date(2025, 3, 31),
                "decided_at": datetime(2025, 3, 10, 9, 30, tzinfo=UTC),
                "fallback_roles": frozenset({Role.ADMIN}),
            },
        )

        record = _parse_log(stream)
        assert record["previous_status"] == "available"
        assert record["end_date"] == "2025-03-31"
        assert record["decided_at"] == "2025-03-10T09:30:00+00:00"
        assert record["fallback_roles"] == ["admin"]

    def test_unknown_objects_fall_back_to_str(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        class Opaque:
            def __str__(self):
                return "opaque-value"

        logger.info("odd_extra", extra={"thing": Opaque()})

        assert _parse_log(stream)["thing"] == "opaque-value"


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor_id="y")
        ctx = LogContext.get_all()
        assert ctx == {"correlation_id": "x", "actor_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "correlation_id" not in LogContext.get_all()
        with LogContext.bind(correlation_id="temp"):
            assert LogContext.get_all()["correlation_id"] == "temp"
        assert "correlation_id" not in LogContext.get_all()

    def test_bind_stringifies_uuids_and_skips_none(self):
        uid = uuid4()
        with LogContext.bind(actor_id=uid, resource_id=None):
            ctx = LogContext.get_all()
            assert ctx["actor_id"] == str(uid)
            assert "resource_id" not in ctx

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            organization_id="o",
            reservation_id="r",
            resource_id="s",
            request_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 6
        assert ctx["organization_id"] == "o"
        assert ctx["request_id"] == "t"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("reservation_kernel")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.workflow")
        assert logger.name == "reservation_kernel.services.workflow"

    def test_logger_hierarchy(self):
        """Child loggers inherit the reservation_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "reservation_kernel.deep.nested.module"
