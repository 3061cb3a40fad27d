"""
Module: hr_workflow.selectors.record_selector
Responsibility: Read-only queries over approvable records: work queues by
    stage, a subject's records, and the attendance days derived from a
    leave request.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Deterministic ordering: queues oldest first (created_at, id); derived
      days by work date.

Failure modes:
    - Returns an empty list when nothing matches; never raises on absence.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select

from hr_workflow.domain.records import ApprovableRecord, RecordType, Stage
from hr_workflow.models.record import ApprovableRecordModel
from hr_workflow.selectors.base import BaseSelector


class RecordSelector(BaseSelector[ApprovableRecordModel]):
    """Queue and lookup queries for dashboards and the expansion service."""

    def get(self, record_id: UUID) -> ApprovableRecord | None:
        model = self.session.get(ApprovableRecordModel, record_id)
        return model.to_dto() if model is not None else None

    def at_stage(
        self,
        record_type: RecordType | str,
        stage: Stage | str,
        *,
        include_locked: bool = True,
    ) -> list[ApprovableRecord]:
        """Records of ``record_type`` currently waiting at ``stage``."""
        stmt = (
            select(ApprovableRecordModel)
            .where(
                ApprovableRecordModel.record_type == RecordType(record_type).value,
                ApprovableRecordModel.status == Stage(stage).value,
            )
            .order_by(ApprovableRecordModel.created_at, ApprovableRecordModel.id)
        )
        if not include_locked:
            stmt = stmt.where(ApprovableRecordModel.is_locked.is_(False))
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def for_subject(
        self,
        subject_id: UUID,
        record_type: RecordType | str | None = None,
    ) -> list[ApprovableRecord]:
        """All records about one employee, optionally of one type."""
        stmt = select(ApprovableRecordModel).where(
            ApprovableRecordModel.subject_id == subject_id,
        )
        if record_type is not None:
            stmt = stmt.where(
                ApprovableRecordModel.record_type == RecordType(record_type).value,
            )
        stmt = stmt.order_by(ApprovableRecordModel.created_at, ApprovableRecordModel.id)
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def derived_from(self, leave_request_id: UUID) -> list[ApprovableRecord]:
        """Time cards generated from ``leave_request_id``, by work date."""
        stmt = select(ApprovableRecordModel).where(
            ApprovableRecordModel.source_leave_request_id == leave_request_id,
        )
        records = [m.to_dto() for m in self.session.scalars(stmt)]
        records.sort(key=lambda r: r.payload.work_date)
        return records

    def has_derived_day(self, leave_request_id: UUID, work_date: date) -> bool:
        stmt = select(ApprovableRecordModel.id).where(
            ApprovableRecordModel.source_leave_request_id == leave_request_id,
            ApprovableRecordModel.derived_work_date == work_date,
        )
        return self.session.scalars(stmt).first() is not None
