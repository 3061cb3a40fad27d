"""
Tests for hr_workflow.logging_config -- JSON log lines and bound context.

Covers:
- One JSON object per line with ts/level/logger/message plus extras
- Kernel exceptions flattened into exc_* fields
- UUID, date, Decimal and Stage values serialized
- LogContext.bind nesting, restore, unknown fields, propagation to workers
- configure_logging idempotence and string levels
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from hr_workflow.domain.records import Stage
from hr_workflow.exceptions import RecordLockedError, VersionConflictError
from hr_workflow.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def json_lines():
    """Route a fresh hr_workflow configuration to a buffer; yields a reader."""
    reset_logging()
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())

    def _install(level=logging.INFO):
        configure_logging(handler=handler, level=level)
        return lambda: [json.loads(line) for line in stream.getvalue().splitlines() if line]

    yield _install
    reset_logging()
    configure_logging(level=logging.DEBUG)


class TestStructuredFormatter:

    def test_line_shape_and_extras(self, json_lines):
        read = json_lines()
        get_logger("services.workflow_engine").info(
            "transition_applied", extra={"version": 3, "to_stage": "secretary_submitted"},
        )

        (line,) = read()
        assert line["level"] == "INFO"
        assert line["logger"] == "hr_workflow.services.workflow_engine"
        assert line["message"] == "transition_applied"
        assert line["version"] == 3
        assert line["to_stage"] == "secretary_submitted"
        assert line["ts"].endswith("+00:00")

    def test_unbound_context_is_omitted(self, json_lines):
        read = json_lines()
        get_logger("orchestrator").info("orchestrator_configured")
        (line,) = read()
        assert not {"actor_id", "record_id", "batch_id"} & line.keys()

    def test_kernel_exception_fields(self, json_lines):
        read = json_lines()
        try:
            raise VersionConflictError("rec-1", 2, 3)
        except VersionConflictError:
            get_logger("services.record_store").warning("swap_failed", exc_info=True)

        (line,) = read()
        assert line["exc_type"] == "VersionConflictError"
        assert line["exc_code"] == "VERSION_CONFLICT"
        assert line["exc_record_id"] == "rec-1"
        assert line["exc_expected_version"] == 2
        assert line["exc_actual_version"] == 3
        assert "VersionConflictError" in line["traceback"]

    def test_lock_error_without_owner(self, json_lines):
        read = json_lines()
        try:
            raise RecordLockedError("rec-2", None, "Audit")
        except RecordLockedError:
            get_logger("services.workflow_engine").info("transition_refused", exc_info=True)

        (line,) = read()
        assert line["exc_code"] == "RECORD_LOCKED"
        assert line["exc_locked_by"] is None
        assert line["exc_message"] == "Record rec-2 is locked: Audit"

    def test_domain_values_serialized(self, json_lines):
        read = json_lines()
        leave_id = uuid4()
        get_logger("services.leave_expansion").info(
            "leave_day_already_materialized",
            extra={
                "leave_request_id": leave_id,
                "work_date": date(2024, 9, 9),
                "hours": Decimal("4.00"),
                "stage": Stage.ADMIN_APPROVED,
            },
        )

        (line,) = read()
        assert line["leave_request_id"] == str(leave_id)
        assert line["work_date"] == "2024-09-09"
        assert line["hours"] == "4.00"
        assert line["stage"] == "admin_approved"


class TestLogContext:

    def test_bound_fields_reach_the_line(self, json_lines):
        read = json_lines()
        with LogContext.bind(actor_id="actor-1", record_id="rec-9"):
            get_logger("services.lock_manager").info("record_locked")
        get_logger("services.lock_manager").info("after")

        inside, after = read()
        assert inside["actor_id"] == "actor-1"
        assert inside["record_id"] == "rec-9"
        assert "actor_id" not in after

    def test_nested_bind_restores_outer_value(self):
        with LogContext.bind(batch_id="b-1", record_id="outer"):
            with LogContext.bind(record_id="inner", actor_id=None):
                assert LogContext.get_all() == {"batch_id": "b-1", "record_id": "inner"}
            assert LogContext.get_all() == {"batch_id": "b-1", "record_id": "outer"}
        assert LogContext.get_all() == {}

    def test_unknown_field_is_rejected(self):
        with pytest.raises(TypeError, match="request_id"):
            with LogContext.bind(request_id="r-1"):
                pass

    def test_clear(self):
        with LogContext.bind(actor_id="actor-1"):
            LogContext.clear()
            assert LogContext.get_all() == {}

    def test_copied_context_reaches_worker_threads(self):
        with LogContext.bind(batch_id="b-7"):
            ctx = copy_context()
        with ThreadPoolExecutor(max_workers=1) as pool:
            seen = pool.submit(ctx.run, LogContext.get_all).result()
        assert seen == {"batch_id": "b-7"}


class TestConfigureLogging:

    def test_second_call_is_a_no_op(self, json_lines):
        json_lines()
        configure_logging(handler=logging.NullHandler())
        assert len(logging.getLogger("hr_workflow").handlers) == 1

    def test_level_by_name(self, json_lines):
        read = json_lines(level="WARNING")
        logger = get_logger("config")
        logger.info("WORKFLOW_CONFIG_TRACE")
        logger.warning("leave_day_failed")
        assert [line["message"] for line in read()] == ["leave_day_failed"]
