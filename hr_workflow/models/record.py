"""
Module: hr_workflow.models.record
Responsibility: ORM persistence for approvable records (time cards,
    substitute time cards, monthly time cards, leave requests).

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - status = current_stage: DB check constraint; the two columns are kept
      for existing report queries but can never disagree.
    - rejection_reason is present iff status = 'rejected' (DB check).
    - status holds only wire-contract stage values (DB check).
    - version >= 1 (DB check); bumped only by RecordStore.compare_and_swap.
    - At most one derived card per (source leave request, day): unique
      constraint on (source_leave_request_id, derived_work_date).  Rows that
      are not derived leave both NULL and never collide.
    - No ORM-level UPDATE or DELETE: existing rows change only through the
      store's compare-and-swap statement, and the kernel never deletes.

Failure modes:
    - ImmutabilityViolationError on an ORM flush that edits or deletes a row.
    - IntegrityError if a write bypasses the store and breaks a check.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_workflow.db.base import Base, UUIDString
from hr_workflow.domain.payloads import payload_from_json
from hr_workflow.domain.records import (
    ApprovableRecord,
    ApprovalHistoryEntry,
    RecordType,
    Stage,
)
from hr_workflow.exceptions import ImmutabilityViolationError

_STAGE_VALUES = ", ".join(f"'{s.value}'" for s in Stage)
_TYPE_VALUES = ", ".join(f"'{t.value}'" for t in RecordType)


class ApprovableRecordModel(Base):
    """Persistent approvable record.

    Contract:
        Rows are inserted by RecordStore.create and afterwards changed only by
        RecordStore.compare_and_swap (a versioned UPDATE statement, which does
        not go through the ORM unit of work and so is not blocked by the
        listeners below).
    """

    __tablename__ = "approvable_records"

    __table_args__ = (
        CheckConstraint(
            f"record_type IN ({_TYPE_VALUES})",
            name="ck_approvable_records_record_type",
        ),
        CheckConstraint(
            f"status IN ({_STAGE_VALUES})",
            name="ck_approvable_records_valid_status",
        ),
        CheckConstraint(
            "status = current_stage",
            name="ck_approvable_records_stage_mirrors_status",
        ),
        CheckConstraint(
            "(status = 'rejected' AND rejection_reason IS NOT NULL) "
            "OR (status <> 'rejected' AND rejection_reason IS NULL)",
            name="ck_approvable_records_rejection_reason",
        ),
        CheckConstraint("version >= 1", name="ck_approvable_records_version"),
        UniqueConstraint(
            "source_leave_request_id",
            "derived_work_date",
            name="uq_approvable_records_leave_day",
        ),
        # Dashboard queue: "everything waiting at stage X"
        Index("ix_approvable_records_type_status", "record_type", "status"),
        Index("ix_approvable_records_subject", "subject_id"),
        Index("ix_approvable_records_source_leave", "source_leave_request_id"),
    )

    record_type: Mapped[str] = mapped_column(String(40), nullable=False)
    subject_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    status: Mapped[str] = mapped_column(String(40), nullable=False)
    current_stage: Mapped[str] = mapped_column(String(40), nullable=False)
    stage_notes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    lock_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approval_history: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    source_leave_request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    # Set once at insert for leave-derived cards; never rewritten by CAS.
    derived_work_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ApprovableRecord {self.id} {self.record_type} "
            f"status={self.status} v{self.version}>"
        )

    def to_dto(self) -> ApprovableRecord:
        """Convert ORM model to frozen domain DTO."""
        record_type = RecordType(self.record_type)
        return ApprovableRecord(
            record_id=self.id,
            record_type=record_type,
            subject_id=self.subject_id,
            status=Stage(self.status),
            version=self.version,
            payload=payload_from_json(record_type, self.payload or {}),
            stage_notes=dict(self.stage_notes or {}),
            rejection_reason=self.rejection_reason,
            is_locked=self.is_locked,
            locked_by=self.locked_by,
            locked_at=self.locked_at,
            lock_reason=self.lock_reason,
            approval_history=tuple(
                ApprovalHistoryEntry.from_dict(h) for h in self.approval_history or ()
            ),
            source_leave_request_id=self.source_leave_request_id,
            created_by=self.created_by_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: ApprovableRecord) -> ApprovableRecordModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.record_id,
            record_type=dto.record_type.value,
            subject_id=dto.subject_id,
            version=dto.version,
            created_by_id=dto.created_by,
            created_at=dto.created_at,
            derived_work_date=(
                getattr(dto.payload, "work_date", None)
                if dto.source_leave_request_id is not None
                else None
            ),
            **state_columns(dto),
        )


def state_columns(dto: ApprovableRecord) -> dict[str, Any]:
    """Column values for the mutable part of a record.

    Shared by the insert path and the compare-and-swap UPDATE so both write
    exactly the same shape.
    """
    return {
        "status": dto.status.value,
        "current_stage": dto.status.value,
        "stage_notes": dict(dto.stage_notes),
        "rejection_reason": dto.rejection_reason,
        "is_locked": dto.is_locked,
        "locked_by": dto.locked_by,
        "locked_at": dto.locked_at,
        "lock_reason": dto.lock_reason,
        "approval_history": [h.to_dict() for h in dto.approval_history],
        "payload": dto.payload.to_json(),
        "source_leave_request_id": dto.source_leave_request_id,
        "updated_at": dto.updated_at,
    }


# =============================================================================
# ORM-level guards: the store's versioned UPDATE is the only write path
# =============================================================================


@event.listens_for(ApprovableRecordModel, "before_update")
def prevent_orm_update(mapper, connection, target):
    """Block unit-of-work edits that would skip the version check."""
    raise ImmutabilityViolationError(
        entity_type="ApprovableRecord",
        entity_id=str(target.id),
        reason="records change only through RecordStore.compare_and_swap",
    )


@event.listens_for(ApprovableRecordModel, "before_delete")
def prevent_orm_delete(mapper, connection, target):
    """The kernel never deletes records."""
    raise ImmutabilityViolationError(
        entity_type="ApprovableRecord",
        entity_id=str(target.id),
        reason="records are never deleted by the workflow kernel",
    )
