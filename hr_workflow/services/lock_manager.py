"""
hr_workflow.services.lock_manager -- Administrative freeze of records.

Responsibility:
    Lets admin and hr users lock a record against further transitions and
    lift the lock again.  A locked record refuses every transition until it
    is unlocked (or an admin/hr actor explicitly unlocks it while acting).

Architecture position:
    Kernel > Services.  Writes only through RecordStore.compare_and_swap.

Invariants enforced:
    - Only admin and hr may lock or unlock.
    - Locking never changes status or approval history.
    - Locking a locked record, or unlocking an unlocked one, is a no-op.
    - Every attempt is audited, including attempts the database refuses.

Failure modes:
    - PermissionDeniedError for any other role, or an unconfirmed role claim.
    - RecordNotFoundError, VersionConflictError from the store.
    - SQLAlchemyError from the database, audited as a failure and re-raised.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from hr_workflow.domain.clock import Clock, SystemClock
from hr_workflow.domain.records import OVERRIDE_ROLES, ApprovableRecord, Role
from hr_workflow.exceptions import PermissionDeniedError, WorkflowKernelError
from hr_workflow.logging_config import LogContext, get_logger
from hr_workflow.services.collaborators import (
    AuditSink,
    IdentityProvider,
    emit_audit,
    verify_role_claim,
)
from hr_workflow.services.record_store import RecordStore

logger = get_logger("services.lock_manager")


def released(record: ApprovableRecord) -> ApprovableRecord:
    """``record`` with its lock and lock metadata cleared."""
    return replace(
        record, is_locked=False, locked_by=None, locked_at=None, lock_reason=None,
    )


class LockManager:
    """Sets and clears the administrative lock on a record."""

    def __init__(
        self,
        store: RecordStore,
        identity: IdentityProvider,
        audit: AuditSink,
        clock: Clock | None = None,
    ):
        self._store = store
        self._identity = identity
        self._audit = audit
        self._clock = clock or SystemClock()

    def lock(
        self,
        record_id: UUID,
        actor_id: UUID,
        by_role: Role | str,
        reason: str | None = None,
    ) -> ApprovableRecord:
        """Freeze ``record_id``; returns the (possibly unchanged) record."""
        with LogContext.bind(actor_id=str(actor_id), record_id=str(record_id)):
            try:
                self._authorize(actor_id, by_role)
                current = self._store.load(record_id)
                if current.is_locked:
                    logger.info("record_already_locked", extra={"locked_by": str(current.locked_by)})
                    self._audit_lock("lock", actor_id, record_id, {"changed": False}, True)
                    return current

                locked_at = self._clock.now()
                updated = self._store.compare_and_swap(
                    record_id,
                    current.version,
                    lambda rec: replace(
                        rec,
                        is_locked=True,
                        locked_by=actor_id,
                        locked_at=locked_at,
                        lock_reason=reason,
                    ),
                )
            except WorkflowKernelError as exc:
                self._audit_lock("lock", actor_id, record_id, {"error": exc.code}, False)
                raise
            except SQLAlchemyError as exc:
                logger.warning("lock_failed", exc_info=True)
                self._audit_lock(
                    "lock", actor_id, record_id, {"error": type(exc).__name__}, False,
                )
                raise

            logger.info(
                "record_locked",
                extra={"version": updated.version, "lock_reason": reason},
            )
            self._audit_lock(
                "lock", actor_id, record_id, {"changed": True, "reason": reason}, True,
            )
            return updated

    def unlock(
        self,
        record_id: UUID,
        actor_id: UUID,
        by_role: Role | str,
    ) -> ApprovableRecord:
        """Lift the lock on ``record_id``; returns the (possibly unchanged) record."""
        with LogContext.bind(actor_id=str(actor_id), record_id=str(record_id)):
            try:
                self._authorize(actor_id, by_role)
                current = self._store.load(record_id)
                if not current.is_locked:
                    self._audit_lock("unlock", actor_id, record_id, {"changed": False}, True)
                    return current
                updated = self._store.compare_and_swap(record_id, current.version, released)
            except WorkflowKernelError as exc:
                self._audit_lock("unlock", actor_id, record_id, {"error": exc.code}, False)
                raise
            except SQLAlchemyError as exc:
                logger.warning("unlock_failed", exc_info=True)
                self._audit_lock(
                    "unlock", actor_id, record_id, {"error": type(exc).__name__}, False,
                )
                raise

            logger.info(
                "record_unlocked",
                extra={"version": updated.version, "previous_locked_by": str(current.locked_by)},
            )
            self._audit_lock("unlock", actor_id, record_id, {"changed": True}, True)
            return updated

    def _authorize(self, actor_id: UUID, by_role: Role | str) -> Role:
        role = verify_role_claim(self._identity, actor_id, by_role)
        if role not in OVERRIDE_ROLES:
            raise PermissionDeniedError(
                str(actor_id),
                role.value,
                "only admin or hr may lock or unlock records",
                required_roles=tuple(sorted(r.value for r in OVERRIDE_ROLES)),
            )
        return role

    def _audit_lock(
        self,
        action: str,
        actor_id: UUID,
        record_id: UUID,
        details: dict,
        success: bool,
    ) -> None:
        emit_audit(self._audit, actor_id, action, "approvable_record", record_id, details, success)
