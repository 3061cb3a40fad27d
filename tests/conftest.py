"""
Pytest fixtures for the workflow kernel test suite.

Provides:
- A file-backed SQLite database per test (file-backed so worker threads in
  batch and race tests share it)
- Deterministic clock, recording audit sink, static identity provider
- Record factories for every record type
- Structured-log capture
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from hr_workflow.db.engine import build_engine, create_tables
from hr_workflow.domain.clock import DeterministicClock
from hr_workflow.domain.payloads import (
    LeaveRequestPayload,
    MonthlyTimeCardPayload,
    SubstituteTimeCardPayload,
    TimeCardPayload,
)
from hr_workflow.domain.records import RecordType, Role
from hr_workflow.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from hr_workflow.orchestrator import WorkflowOrchestrator
from hr_workflow.services.collaborators import StaticIdentityProvider
from hr_workflow.services.record_store import RecordStore


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
    Capture hr_workflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.apply_transition(...)
            logs = captured_logs()
            assert any(r["message"] == "transition_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("hr_workflow")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Collaborators
# =============================================================================


@dataclass(frozen=True)
class AuditEntry:
    actor_id: UUID
    action: str
    resource_type: str
    resource_id: UUID
    details: dict
    success: bool


class RecordingAuditSink:
    """Audit sink keeping every entry in memory (thread-safe)."""

    def __init__(self):
        self._lock = threading.Lock()
        self.entries: list[AuditEntry] = []

    def log(self, actor_id, action, resource_type, resource_id, details, success):
        with self._lock:
            self.entries.append(
                AuditEntry(actor_id, action, resource_type, resource_id, dict(details), success)
            )

    def for_record(self, record_id) -> list[AuditEntry]:
        return [e for e in self.entries if e.resource_id == record_id]


class FailingAuditSink:
    """Audit sink that is down."""

    def log(self, actor_id, action, resource_type, resource_id, details, success):
        raise ConnectionError("audit service unavailable")


@dataclass(frozen=True)
class Actors:
    secretary: UUID
    employee: UUID
    other_employee: UUID
    admin: UUID
    hr: UUID
    payroll: UUID


@pytest.fixture
def actors() -> Actors:
    return Actors(
        secretary=uuid4(),
        employee=uuid4(),
        other_employee=uuid4(),
        admin=uuid4(),
        hr=uuid4(),
        payroll=uuid4(),
    )


@pytest.fixture
def identity(actors) -> StaticIdentityProvider:
    return StaticIdentityProvider({
        actors.secretary: Role.SECRETARY,
        actors.employee: Role.EMPLOYEE,
        actors.other_employee: Role.EMPLOYEE,
        actors.admin: Role.ADMIN,
        actors.hr: Role.HR,
        actors.payroll: Role.PAYROLL,
    })


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def failing_audit_sink() -> FailingAuditSink:
    return FailingAuditSink()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 9, 3, 8, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite file database with the kernel schema."""
    engine = build_engine(f"sqlite:///{tmp_path / 'workflow.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory, deterministic_clock) -> RecordStore:
    return RecordStore(session_factory, deterministic_clock)


@pytest.fixture
def orchestrator(session_factory, identity, audit_sink, deterministic_clock):
    return WorkflowOrchestrator(
        session_factory,
        identity,
        audit_sink,
        deterministic_clock,
        leave_daily_hours={"half_day": Decimal("4.00")},
    )


@pytest.fixture
def threaded_orchestrator(session_factory, identity, audit_sink, deterministic_clock):
    """Orchestrator whose batch processor fans out over four threads."""
    return WorkflowOrchestrator(
        session_factory,
        identity,
        audit_sink,
        deterministic_clock,
        batch_max_workers=4,
    )


# =============================================================================
# Record factories
# =============================================================================


@pytest.fixture
def make_time_card(store, actors):
    """Factory: a draft time card about ``actors.employee`` by default."""

    def _make(subject_id=None, work_date=date(2024, 9, 2)):
        payload = TimeCardPayload(
            work_date=work_date,
            clock_in=datetime(2024, 9, 2, 7, 30, tzinfo=timezone.utc),
            clock_out=datetime(2024, 9, 2, 16, 0, tzinfo=timezone.utc),
            break_start=datetime(2024, 9, 2, 12, 0, tzinfo=timezone.utc),
            break_end=datetime(2024, 9, 2, 12, 30, tzinfo=timezone.utc),
        )
        return store.create(
            RecordType.TIME_CARD,
            subject_id or actors.employee,
            payload,
            created_by=actors.secretary,
        )

    return _make


@pytest.fixture
def make_substitute_card(store, actors):
    def _make(subject_id=None, daily_rate=Decimal("145.00")):
        payload = SubstituteTimeCardPayload(
            work_date=date(2024, 9, 4),
            daily_rate=daily_rate,
            assignment_id=uuid4(),
        )
        return store.create(
            RecordType.SUBSTITUTE_TIME_CARD,
            subject_id or actors.employee,
            payload,
            created_by=actors.secretary,
        )

    return _make


@pytest.fixture
def make_monthly_card(store, actors):
    def _make(subject_id=None, month=9, year=2024):
        return store.create(
            RecordType.MONTHLY_TIME_CARD,
            subject_id or actors.employee,
            MonthlyTimeCardPayload(month=month, year=year),
            created_by=actors.secretary,
        )

    return _make


@pytest.fixture
def make_leave_request(store, actors):
    """Factory: a pending leave request, Mon 2024-09-09 .. Fri 2024-09-13 by default."""

    def _make(
        subject_id=None,
        start_date=date(2024, 9, 9),
        end_date=date(2024, 9, 13),
        leave_type="sick",
    ):
        subject = subject_id or actors.employee
        return store.create(
            RecordType.LEAVE_REQUEST,
            subject,
            LeaveRequestPayload(
                leave_type=leave_type,
                start_date=start_date,
                end_date=end_date,
                reason="Medical appointment",
            ),
            created_by=subject,
        )

    return _make
