"""
WorkflowOrchestrator -- DI container for the approval workflow kernel.

Contract:
    Wires RecordStore, WorkflowEngine, BatchProcessor, LockManager,
    LeaveExpansionService and MonthlyTimecardGenerator around one session
    factory, one clock, one audit sink and one identity provider.  Single
    place where the kernel's services are composed, and the public surface
    host applications call.

Invariants enforced:
    - Clock injection: every service receives the same Clock.
    - Every mutation reaches the same audit sink.
    - Settings are read once, through ``workflow_config.get_active_config``,
      and only by ``from_settings``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from hr_workflow.db.engine import build_engine, create_tables
from hr_workflow.domain.clock import Clock, SystemClock
from hr_workflow.domain.records import (
    OVERRIDE_ROLES,
    Action,
    ApprovableRecord,
    RecordType,
    Role,
    Stage,
)
from hr_workflow.domain.results import (
    BatchResult,
    ExpansionReport,
    GenerationResult,
    TransitionResult,
)
from hr_workflow.domain.workflow import StageDescriptor
from hr_workflow.domain.workflow import describe_workflow as _describe_workflow
from hr_workflow.exceptions import PermissionDeniedError, RecordLockedError
from hr_workflow.logging_config import get_logger
from hr_workflow.selectors.record_selector import RecordSelector
from hr_workflow.services.batch_processor import BatchProcessor
from hr_workflow.services.collaborators import (
    AuditSink,
    IdentityProvider,
    LoggingAuditSink,
    verify_role_claim,
)
from hr_workflow.services.leave_expansion import (
    DEFAULT_LEAVE_DAILY_HOURS,
    LeaveExpansionService,
)
from hr_workflow.services.lock_manager import LockManager
from hr_workflow.services.monthly_generation import MonthlyTimecardGenerator
from hr_workflow.services.record_store import RecordStore
from hr_workflow.services.workflow_engine import WorkflowEngine

if TYPE_CHECKING:
    from workflow_config.schema import WorkflowSettings

logger = get_logger("orchestrator")


class WorkflowOrchestrator:
    """Composition root and public operations of the workflow kernel.

    Non-goals:
        - Does NOT manage engine lifecycle beyond ``from_settings``;
          callers that pass a session factory own its engine.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        identity: IdentityProvider,
        audit: AuditSink | None = None,
        clock: Clock | None = None,
        *,
        batch_max_workers: int = 1,
        leave_daily_hours: Mapping[str, Decimal] | None = None,
        default_leave_daily_hours: Decimal = DEFAULT_LEAVE_DAILY_HOURS,
    ) -> None:
        self._clock = clock or SystemClock()
        self._identity = identity
        self._audit = audit or LoggingAuditSink()
        self.store = RecordStore(session_factory, self._clock)
        self.expansion = LeaveExpansionService(
            self.store,
            self._clock,
            leave_daily_hours=leave_daily_hours,
            default_daily_hours=default_leave_daily_hours,
        )
        self.engine = WorkflowEngine(
            self.store, identity, self._audit, self.expansion, self._clock,
        )
        self.batch = BatchProcessor(self.engine, max_workers=batch_max_workers)
        self.locks = LockManager(self.store, identity, self._audit, self._clock)
        self.monthly = MonthlyTimecardGenerator(self.store)

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: WorkflowSettings,
        identity: IdentityProvider,
        audit: AuditSink | None = None,
        clock: Clock | None = None,
        *,
        create_schema: bool = False,
    ) -> WorkflowOrchestrator:
        """Build an engine from ``settings`` and wire every service to it."""
        engine = build_engine(
            settings.database_url,
            echo=settings.echo,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
        )
        if create_schema:
            create_tables(engine)
        logger.info(
            "orchestrator_configured",
            extra={
                "config_set_id": settings.config_id,
                "checksum": settings.checksum,
                "dialect": engine.dialect.name,
                "batch_max_workers": settings.batch_max_workers,
            },
        )
        return cls(
            sessionmaker(bind=engine, expire_on_commit=False),
            identity,
            audit,
            clock,
            batch_max_workers=settings.batch_max_workers,
            leave_daily_hours=settings.leave_daily_hours,
            default_leave_daily_hours=settings.default_leave_daily_hours,
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def apply_transition(
        self,
        record_id: UUID,
        actor_id: UUID,
        actor_role: Role | str,
        action: Action | str,
        notes: str | None = None,
        *,
        unlock: bool = False,
        expected_version: int | None = None,
    ) -> TransitionResult:
        return self.engine.apply_transition(
            record_id, actor_id, actor_role, action, notes,
            unlock=unlock, expected_version=expected_version,
        )

    def apply_batch(
        self,
        record_ids: Iterable[UUID],
        actor_id: UUID,
        actor_role: Role | str,
        action: Action | str,
        notes: str | None = None,
        *,
        unlock: bool = False,
    ) -> BatchResult:
        return self.batch.apply_batch(
            record_ids, actor_id, actor_role, action, notes, unlock=unlock,
        )

    # -------------------------------------------------------------------------
    # Locks
    # -------------------------------------------------------------------------

    def lock(
        self,
        record_id: UUID,
        actor_id: UUID,
        by_role: Role | str,
        reason: str | None = None,
    ) -> ApprovableRecord:
        return self.locks.lock(record_id, actor_id, by_role, reason)

    def unlock(self, record_id: UUID, actor_id: UUID, by_role: Role | str) -> ApprovableRecord:
        return self.locks.unlock(record_id, actor_id, by_role)

    # -------------------------------------------------------------------------
    # Leave and monthly generation
    # -------------------------------------------------------------------------

    def expand(
        self,
        leave_request_id: UUID,
        actor_id: UUID,
        actor_role: Role | str,
        *,
        unlock: bool = False,
    ) -> ExpansionReport:
        """Re-run leave expansion, creating only the days still missing.

        A locked leave request is expanded only with ``unlock=True``, which
        releases the lock first through the lock manager.
        """
        role = self._require_override(actor_id, actor_role)
        leave = self.store.load(leave_request_id)
        if leave.is_locked:
            if not unlock:
                raise RecordLockedError(
                    str(leave.record_id),
                    str(leave.locked_by) if leave.locked_by else None,
                    leave.lock_reason,
                )
            leave = self.locks.unlock(leave.record_id, actor_id, role)
        return self.expansion.expand(leave, actor_id, role)

    def generate_monthly_time_cards(
        self,
        month: int,
        year: int,
        subject_ids: Iterable[UUID],
        actor_id: UUID,
        actor_role: Role | str,
    ) -> GenerationResult:
        """Create draft monthly cards for every listed employee lacking one."""
        role = verify_role_claim(self._identity, actor_id, actor_role)
        if role not in OVERRIDE_ROLES | {Role.SECRETARY}:
            raise PermissionDeniedError(
                str(actor_id),
                role.value,
                "only secretaries, admin or hr may generate monthly time cards",
                required_roles=("admin", "hr", "secretary"),
            )
        return self.monthly.generate(month, year, subject_ids, created_by=actor_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def describe_workflow(self, record_type: RecordType | str) -> tuple[StageDescriptor, ...]:
        return _describe_workflow(record_type)

    def get(self, record_id: UUID) -> ApprovableRecord:
        return self.store.load(record_id)

    def at_stage(self, record_type: RecordType | str, stage: Stage | str) -> list[ApprovableRecord]:
        with self.store.session_factory() as session:
            return RecordSelector(session).at_stage(record_type, stage)

    def for_subject(
        self,
        subject_id: UUID,
        record_type: RecordType | str | None = None,
    ) -> list[ApprovableRecord]:
        with self.store.session_factory() as session:
            return RecordSelector(session).for_subject(subject_id, record_type)

    def derived_from(self, leave_request_id: UUID) -> list[ApprovableRecord]:
        with self.store.session_factory() as session:
            return RecordSelector(session).derived_from(leave_request_id)

    def _require_override(self, actor_id: UUID, actor_role: Role | str) -> Role:
        role = verify_role_claim(self._identity, actor_id, actor_role)
        if role not in OVERRIDE_ROLES:
            raise PermissionDeniedError(
                str(actor_id),
                role.value,
                "only admin or hr may re-run leave expansion",
                required_roles=("admin", "hr"),
            )
        return role
