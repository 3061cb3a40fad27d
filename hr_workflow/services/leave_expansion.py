"""
hr_workflow.services.leave_expansion -- Leave request to attendance days.

Responsibility:
    When a leave request is approved, materializes one ``time_card`` per
    calendar day of the leave so payroll sees the absence in the same queue
    as worked days.

Architecture position:
    Kernel > Services.  Called by the workflow engine after the approving
    write has committed; callable again to fill gaps left by a partial run.

Invariants enforced:
    - Every generated card carries ``source_leave_request_id`` and the
      leave subject, and enters directly at ``admin_approved`` with one
      ``enroll`` history entry naming the approver.
    - One card per day at most: days already materialized are skipped, and
      the (source_leave_request_id, derived_work_date) unique constraint
      turns a concurrent duplicate insert into a skipped day.
    - Each day is its own write; a failed day does not undo earlier days.
    - Forward-only: nothing here retracts generated cards.

Failure modes:
    - InvariantViolationError if the record is not an approved leave request.
    - Per-day write errors are captured in ``ExpansionReport.failed_days``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Mapping
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hr_workflow.domain.clock import Clock, SystemClock
from hr_workflow.domain.payloads import LeaveRequestPayload, TimeCardPayload
from hr_workflow.domain.records import (
    Action,
    ApprovableRecord,
    ApprovalHistoryEntry,
    RecordType,
    Role,
    Stage,
)
from hr_workflow.domain.results import ExpansionReport
from hr_workflow.exceptions import InvariantViolationError, WorkflowKernelError
from hr_workflow.logging_config import get_logger
from hr_workflow.selectors.record_selector import RecordSelector
from hr_workflow.services.record_store import RecordStore

logger = get_logger("services.leave_expansion")

DEFAULT_LEAVE_DAILY_HOURS = Decimal("8.00")

# Derived cards skip the secretary/employee/admin stages: the leave approval
# already is the admin decision for these days.
DERIVED_ENTRY_STAGE = Stage.ADMIN_APPROVED


class LeaveExpansionService:
    """Creates per-day time cards for an approved leave request."""

    def __init__(
        self,
        store: RecordStore,
        clock: Clock | None = None,
        *,
        leave_daily_hours: Mapping[str, Decimal] | None = None,
        default_daily_hours: Decimal = DEFAULT_LEAVE_DAILY_HOURS,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._leave_daily_hours = dict(leave_daily_hours or {})
        self._default_daily_hours = default_daily_hours

    def hours_for(self, leave_type: str) -> Decimal:
        return self._leave_daily_hours.get(leave_type, self._default_daily_hours)

    def expand(
        self,
        leave_request: ApprovableRecord,
        approver_id: UUID,
        approver_role: Role,
    ) -> ExpansionReport:
        """Materialize every not-yet-materialized day of ``leave_request``."""
        if (
            leave_request.record_type != RecordType.LEAVE_REQUEST
            or leave_request.status != Stage.APPROVED
        ):
            raise InvariantViolationError(
                str(leave_request.record_id),
                "only approved leave requests are expanded",
            )
        payload: LeaveRequestPayload = leave_request.payload
        existing = self._materialized_days(leave_request.record_id)
        hours = self.hours_for(payload.leave_type)

        logger.info(
            "leave_expansion_started",
            extra={
                "leave_request_id": str(leave_request.record_id),
                "day_count": payload.day_count,
                "already_materialized": len(existing),
            },
        )

        created: list[UUID] = []
        skipped: list[date] = []
        failed: list[tuple[date, str]] = []
        for day in payload.covered_days():
            if day in existing:
                skipped.append(day)
                continue
            try:
                record = self._create_day(leave_request, day, hours, approver_id, approver_role)
            except IntegrityError:
                if self._is_materialized(leave_request.record_id, day):
                    logger.info(
                        "leave_day_already_materialized",
                        extra={
                            "leave_request_id": str(leave_request.record_id),
                            "work_date": day,
                        },
                    )
                    skipped.append(day)
                else:
                    logger.warning(
                        "leave_day_failed",
                        extra={
                            "leave_request_id": str(leave_request.record_id),
                            "work_date": day,
                        },
                        exc_info=True,
                    )
                    failed.append((day, "IntegrityError"))
                continue
            except (WorkflowKernelError, SQLAlchemyError) as exc:
                logger.warning(
                    "leave_day_failed",
                    extra={
                        "leave_request_id": str(leave_request.record_id),
                        "work_date": day,
                    },
                    exc_info=True,
                )
                failed.append((day, getattr(exc, "code", type(exc).__name__)))
                continue
            created.append(record.record_id)

        report = ExpansionReport(
            leave_request_id=leave_request.record_id,
            created_ids=tuple(created),
            skipped_days=tuple(skipped),
            failed_days=tuple(failed),
        )
        logger.info(
            "leave_expansion_completed",
            extra={
                "leave_request_id": str(leave_request.record_id),
                "created_count": report.created_count,
                "skipped_count": len(report.skipped_days),
                "failed_count": report.failed_count,
            },
        )
        return report

    def _materialized_days(self, leave_request_id: UUID) -> set[date]:
        with self._store.session_factory() as session:
            return {
                record.payload.work_date
                for record in RecordSelector(session).derived_from(leave_request_id)
            }

    def _is_materialized(self, leave_request_id: UUID, day: date) -> bool:
        with self._store.session_factory() as session:
            return RecordSelector(session).has_derived_day(leave_request_id, day)

    def _create_day(
        self,
        leave_request: ApprovableRecord,
        day: date,
        hours: Decimal,
        approver_id: UUID,
        approver_role: Role,
    ) -> ApprovableRecord:
        leave_type = leave_request.payload.leave_type
        enroll = ApprovalHistoryEntry(
            actor_id=approver_id,
            actor_role=approver_role,
            from_stage=None,
            to_stage=DERIVED_ENTRY_STAGE,
            action=Action.ENROLL,
            notes=f"{leave_type} leave from request {leave_request.record_id}",
            timestamp=self._clock.now(),
        )
        return self._store.create(
            RecordType.TIME_CARD,
            leave_request.subject_id,
            TimeCardPayload(work_date=day, total_hours=hours, leave_type=leave_type),
            created_by=approver_id,
            status=DERIVED_ENTRY_STAGE,
            source_leave_request_id=leave_request.record_id,
            history=(enroll,),
        )
