"""
hr_workflow.services.workflow_engine -- Applies one approval action to one record.

Responsibility:
    Validates an actor's request to move a record along its workflow
    (identity, lock, legality, role), writes the new stage with an
    optimistic version check, triggers leave expansion on leave approval,
    and reports every attempt to the audit sink.

Architecture position:
    Kernel > Services.  Reads the stage registry from domain/, writes
    through RecordStore, delegates leave materialization to
    LeaveExpansionService.

Invariants enforced:
    - A transition is accepted only along a registry edge from the
      record's current stage.
    - The actor's role must be the one the target stage requires, unless
      the actor is admin or hr.  An employee may only act on records about
      themself.
    - A locked record refuses transitions unless an admin/hr actor passes
      ``unlock=True``; the lock is then cleared in the same write.
    - Each accepted transition appends exactly one approval history entry
      and bumps the version by one.
    - ``rejection_reason`` is set on reject and never otherwise.
    - A failed leave expansion never rolls back the approval; it is
      returned as an ``ExpansionPartialFailure`` warning.

Failure modes:
    - PermissionDeniedError: role claim not confirmed, or wrong role.
    - RecordNotFoundError: unknown record id.
    - VersionConflictError: caller's expected version is stale, or a
      concurrent writer won the compare-and-swap.
    - RecordLockedError: record is locked.
    - IllegalTransitionError: no edge for the action from the current stage.
    - SQLAlchemyError: the database refused the read or write; audited as a
      failed attempt and re-raised.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from hr_workflow.domain.clock import Clock, SystemClock
from hr_workflow.domain.records import (
    OVERRIDE_ROLES,
    Action,
    ApprovableRecord,
    ApprovalHistoryEntry,
    RecordType,
    Role,
    Stage,
)
from hr_workflow.domain.results import ExpansionReport, TransitionResult
from hr_workflow.domain.workflow import Transition, next_stage
from hr_workflow.exceptions import (
    ExpansionPartialFailure,
    PermissionDeniedError,
    RecordLockedError,
    VersionConflictError,
    WorkflowKernelError,
)
from hr_workflow.logging_config import LogContext, get_logger
from hr_workflow.services.collaborators import (
    AuditSink,
    IdentityProvider,
    emit_audit,
    verify_role_claim,
)
from hr_workflow.services.leave_expansion import LeaveExpansionService
from hr_workflow.services.lock_manager import released
from hr_workflow.services.record_store import Mutation, RecordStore

logger = get_logger("services.workflow_engine")

DEFAULT_REJECTION_REASON = "Rejected without comment"

RESOURCE_TYPE = "approvable_record"


class WorkflowEngine:
    """Single-record transition service."""

    def __init__(
        self,
        store: RecordStore,
        identity: IdentityProvider,
        audit: AuditSink,
        expansion: LeaveExpansionService | None = None,
        clock: Clock | None = None,
    ):
        self._store = store
        self._identity = identity
        self._audit = audit
        self._clock = clock or SystemClock()
        self._expansion = expansion or LeaveExpansionService(store, self._clock)

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
        """Move ``record_id`` one step along its workflow.

        Args:
            record_id: Record to act on.
            actor_id: Who is acting.
            actor_role: Role the actor claims; confirmed with the identity
                provider before anything else.
            action: ``advance``/``approve``, ``reject`` or ``cancel``.
            notes: Free text appended to the new stage's notes.  Also the
                rejection reason on ``reject``.
            unlock: Admin/hr only: clear an existing lock as part of this
                transition instead of being refused.
            expected_version: Version the caller last saw.  When given, a
                mismatch fails before any other record check.

        Returns:
            TransitionResult with the committed record, and any expansion
            report and warnings for leave approvals.
        """
        action_value = getattr(action, "value", action)
        with LogContext.bind(actor_id=str(actor_id), record_id=str(record_id)):
            try:
                role = verify_role_claim(self._identity, actor_id, actor_role)
                current = self._store.load(record_id)
                if expected_version is not None and current.version != expected_version:
                    raise VersionConflictError(
                        str(record_id), expected_version, current.version,
                    )

                clears_lock = False
                if current.is_locked:
                    if not (unlock and role in OVERRIDE_ROLES):
                        raise RecordLockedError(
                            str(record_id),
                            str(current.locked_by) if current.locked_by else None,
                            current.lock_reason,
                        )
                    clears_lock = True

                transition = next_stage(current.record_type, current.status, action_value)
                self._check_role(current, transition, actor_id, role)

                mutation = self._build_mutation(
                    transition, actor_id, role, notes, self._clock.now(), clears_lock,
                )
                updated = self._store.compare_and_swap(record_id, current.version, mutation)
            except WorkflowKernelError as exc:
                logger.info(
                    "transition_refused",
                    extra={"action": action_value, "error_code": exc.code},
                )
                emit_audit(
                    self._audit,
                    actor_id,
                    str(action_value),
                    RESOURCE_TYPE,
                    record_id,
                    {"error": exc.code, "message": str(exc)},
                    False,
                )
                raise
            except SQLAlchemyError as exc:
                logger.warning(
                    "transition_failed",
                    extra={"action": action_value},
                    exc_info=True,
                )
                emit_audit(
                    self._audit,
                    actor_id,
                    str(action_value),
                    RESOURCE_TYPE,
                    record_id,
                    {"error": type(exc).__name__, "message": str(exc)},
                    False,
                )
                raise

            logger.info(
                "transition_applied",
                extra={
                    "record_type": updated.record_type.value,
                    "action": transition.action.value,
                    "from_stage": transition.from_state.value,
                    "to_stage": transition.to_state.value,
                    "version": updated.version,
                },
            )
            if clears_lock:
                emit_audit(
                    self._audit,
                    actor_id,
                    "unlock",
                    RESOURCE_TYPE,
                    record_id,
                    {"changed": True, "during_action": transition.action.value},
                    True,
                )
            emit_audit(
                self._audit,
                actor_id,
                transition.action.value,
                RESOURCE_TYPE,
                record_id,
                {
                    "record_type": updated.record_type.value,
                    "from_stage": transition.from_state.value,
                    "to_stage": transition.to_state.value,
                    "version": updated.version,
                    "notes": notes,
                },
                True,
            )

            expansion = None
            warnings: tuple[WorkflowKernelError, ...] = ()
            if (
                updated.record_type == RecordType.LEAVE_REQUEST
                and updated.status == Stage.APPROVED
            ):
                expansion, warnings = self._expand(updated, actor_id, role)

            return TransitionResult(
                record=updated,
                previous_stage=transition.from_state,
                expansion=expansion,
                warnings=warnings,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_role(
        self,
        record: ApprovableRecord,
        transition: Transition,
        actor_id: UUID,
        role: Role,
    ) -> None:
        if role in OVERRIDE_ROLES:
            return
        required = transition.required_roles
        if role not in required:
            raise PermissionDeniedError(
                str(actor_id),
                role.value,
                f"{transition.action.value} to {transition.to_state.value} "
                f"requires {', '.join(r.value for r in required) or 'no role'}",
                required_roles=tuple(r.value for r in required),
            )
        if role == Role.EMPLOYEE and actor_id != record.subject_id:
            raise PermissionDeniedError(
                str(actor_id),
                role.value,
                "employees may only approve their own records",
                required_roles=tuple(r.value for r in required),
            )

    @staticmethod
    def _build_mutation(
        transition: Transition,
        actor_id: UUID,
        role: Role,
        notes: str | None,
        now: datetime,
        clears_lock: bool,
    ) -> Mutation:
        entry = ApprovalHistoryEntry(
            actor_id=actor_id,
            actor_role=role,
            from_stage=transition.from_state,
            to_stage=transition.to_state,
            action=transition.action,
            notes=notes,
            timestamp=now,
        )

        def mutate(record: ApprovableRecord) -> ApprovableRecord:
            stage_notes = dict(record.stage_notes)
            if notes:
                key = transition.to_state.value
                previous = stage_notes.get(key)
                stage_notes[key] = f"{previous}\n{notes}" if previous else notes
            rejection_reason = None
            if transition.to_state == Stage.REJECTED:
                rejection_reason = notes or DEFAULT_REJECTION_REASON
            updated = replace(
                record,
                status=transition.to_state,
                stage_notes=stage_notes,
                rejection_reason=rejection_reason,
                approval_history=record.approval_history + (entry,),
            )
            return released(updated) if clears_lock else updated

        return mutate

    def _expand(
        self,
        leave_request: ApprovableRecord,
        approver_id: UUID,
        approver_role: Role,
    ) -> tuple[ExpansionReport | None, tuple[WorkflowKernelError, ...]]:
        day_count = leave_request.payload.day_count
        try:
            report = self._expansion.expand(leave_request, approver_id, approver_role)
        except (WorkflowKernelError, SQLAlchemyError):
            logger.warning(
                "leave_expansion_aborted",
                extra={"leave_request_id": str(leave_request.record_id)},
                exc_info=True,
            )
            return None, (
                ExpansionPartialFailure(str(leave_request.record_id), 0, day_count),
            )

        if report.is_complete:
            return report, ()
        warning = ExpansionPartialFailure(
            str(leave_request.record_id), report.created_count, report.failed_count,
        )
        logger.warning(
            "leave_expansion_partial",
            extra={
                "leave_request_id": str(leave_request.record_id),
                "created_count": report.created_count,
                "failed_count": report.failed_count,
            },
        )
        return report, (warning,)
