"""
hr_workflow.services.record_store -- Versioned access to approvable records.

Responsibility:
    The only code that writes the ``approvable_records`` table.  Loads
    records as frozen snapshots, inserts new ones at version 1, and applies
    mutations with an optimistic compare-and-swap on ``version``.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Every accepted write bumps ``version`` by exactly one.
    - A write carrying a stale version is rejected; nothing retries.
    - Identity fields (id, type, subject, creator, creation time, leave
      source) never change after insert.
    - Approval history and stage notes are append-only.
    - ``rejection_reason`` is set iff the status is ``rejected``.
    - Lock metadata is empty whenever ``is_locked`` is false.

Failure modes:
    - RecordNotFoundError if the id is unknown (or vanished mid-swap).
    - VersionConflictError if the stored version differs from the expected one.
    - InvariantViolationError if a mutation breaks a record invariant.
    - InvalidPayloadError if the payload class does not match the record type.

Concurrency:
    The load and the write run in separate short transactions.  The write is
    a single ``UPDATE ... WHERE id = :id AND version = :expected`` so two
    writers racing on one version cannot both succeed, without holding a
    lock between read and write.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from hr_workflow.db.engine import session_scope
from hr_workflow.domain.clock import Clock, SystemClock
from hr_workflow.domain.payloads import RecordPayload, check_payload_type
from hr_workflow.domain.records import (
    ApprovableRecord,
    ApprovalHistoryEntry,
    RecordType,
    Stage,
)
from hr_workflow.domain.workflow import get_workflow
from hr_workflow.exceptions import (
    InvariantViolationError,
    RecordNotFoundError,
    VersionConflictError,
)
from hr_workflow.logging_config import get_logger
from hr_workflow.models.record import ApprovableRecordModel, state_columns

logger = get_logger("services.record_store")

Mutation = Callable[[ApprovableRecord], ApprovableRecord]

_IDENTITY_FIELDS = (
    "record_id",
    "record_type",
    "subject_id",
    "created_by",
    "created_at",
    "source_leave_request_id",
)


class RecordStore:
    """Loads, creates and compare-and-swaps approvable records."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ):
        self.session_factory = session_factory
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load(self, record_id: UUID) -> ApprovableRecord:
        """Current snapshot of ``record_id``.

        Raises:
            RecordNotFoundError: No record with that id.
        """
        with self.session_factory() as session:
            model = session.get(ApprovableRecordModel, record_id)
            if model is None:
                raise RecordNotFoundError(str(record_id))
            return model.to_dto()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        record_type: RecordType,
        subject_id: UUID,
        payload: RecordPayload,
        created_by: UUID | None = None,
        *,
        status: Stage | None = None,
        source_leave_request_id: UUID | None = None,
        history: Iterable[ApprovalHistoryEntry] = (),
        stage_notes: dict[str, str] | None = None,
    ) -> ApprovableRecord:
        """Insert a new record at version 1.

        ``status`` defaults to the first stage of the record type's workflow.
        Only the leave expansion service enters records further along.
        """
        record_type = RecordType(record_type)
        check_payload_type(record_type, payload)
        now = self._clock.now()
        record = ApprovableRecord(
            record_id=uuid4(),
            record_type=record_type,
            subject_id=subject_id,
            status=status or get_workflow(record_type).initial_state,
            version=1,
            payload=payload,
            stage_notes=dict(stage_notes or {}),
            approval_history=tuple(history),
            source_leave_request_id=source_leave_request_id,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        _check_state(record)

        with session_scope(self.session_factory) as session:
            session.add(ApprovableRecordModel.from_dto(record))

        logger.info(
            "record_created",
            extra={
                "record_id": str(record.record_id),
                "record_type": record_type.value,
                "status": record.status.value,
                "derived": record.is_derived,
            },
        )
        return record

    def compare_and_swap(
        self,
        record_id: UUID,
        expected_version: int,
        mutation: Mutation,
    ) -> ApprovableRecord:
        """Apply ``mutation`` iff the stored version equals ``expected_version``.

        The mutation receives the current snapshot and returns the proposed
        one; ``version`` and ``updated_at`` on its result are overwritten by
        the store.

        Raises:
            RecordNotFoundError: No record with that id.
            VersionConflictError: The stored version moved on, before the
                mutation ran or between the load and the write.
            InvariantViolationError: The proposed snapshot breaks a record
                invariant; nothing is written.
        """
        current = self.load(record_id)
        if current.version != expected_version:
            logger.warning(
                "version_conflict",
                extra={
                    "record_id": str(record_id),
                    "expected_version": expected_version,
                    "actual_version": current.version,
                },
            )
            raise VersionConflictError(str(record_id), expected_version, current.version)

        proposed = replace(
            mutation(current),
            version=expected_version + 1,
            updated_at=self._clock.now(),
        )
        _check_identity(current, proposed)
        _check_append_only(current, proposed)
        _check_state(proposed)

        stmt = (
            update(ApprovableRecordModel)
            .where(
                ApprovableRecordModel.id == record_id,
                ApprovableRecordModel.version == expected_version,
            )
            .values(version=proposed.version, **state_columns(proposed))
            .execution_options(synchronize_session=False)
        )
        with session_scope(self.session_factory) as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                actual = session.execute(
                    select(ApprovableRecordModel.version).where(
                        ApprovableRecordModel.id == record_id,
                    )
                ).scalar_one_or_none()
                if actual is None:
                    raise RecordNotFoundError(str(record_id))
                logger.warning(
                    "version_conflict",
                    extra={
                        "record_id": str(record_id),
                        "expected_version": expected_version,
                        "actual_version": actual,
                    },
                )
                raise VersionConflictError(str(record_id), expected_version, actual)

        logger.debug(
            "record_swapped",
            extra={
                "record_id": str(record_id),
                "from_version": expected_version,
                "to_version": proposed.version,
                "status": proposed.status.value,
            },
        )
        return proposed


# =============================================================================
# Invariant checks
# =============================================================================


def _check_identity(current: ApprovableRecord, proposed: ApprovableRecord) -> None:
    for name in _IDENTITY_FIELDS:
        if getattr(current, name) != getattr(proposed, name):
            raise InvariantViolationError(str(current.record_id), f"{name} is immutable")


def _check_append_only(current: ApprovableRecord, proposed: ApprovableRecord) -> None:
    rid = str(current.record_id)
    old_history = current.approval_history
    if proposed.approval_history[:len(old_history)] != old_history:
        raise InvariantViolationError(rid, "approval history is append-only")
    for stage, text in current.stage_notes.items():
        if not proposed.stage_notes.get(stage, "").startswith(text):
            raise InvariantViolationError(rid, f"stage notes for {stage} are append-only")


def _check_state(record: ApprovableRecord) -> None:
    rid = str(record.record_id)
    check_payload_type(record.record_type, record.payload)
    if (record.status == Stage.REJECTED) != (record.rejection_reason is not None):
        raise InvariantViolationError(
            rid, "rejection_reason must be set exactly when status is rejected",
        )
    if not record.is_locked and (
        record.locked_by is not None
        or record.locked_at is not None
        or record.lock_reason is not None
    ):
        raise InvariantViolationError(rid, "lock metadata on an unlocked record")
