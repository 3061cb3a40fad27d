"""
hr_workflow.services.monthly_generation -- Month-start monthly time cards.

Responsibility:
    Creates one draft ``monthly_time_card`` per employee for a given month,
    so secretaries start the month with a card to fill in for everyone.

Architecture position:
    Kernel > Services.  Writes through RecordStore.create only.

Invariants enforced:
    - At most one monthly card per (employee, month, year): employees who
      already have one are skipped, so re-running is safe.
    - Cards start at ``draft`` with a pay period from the first to the last
      day of the month.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from hr_workflow.domain.payloads import MonthlyTimeCardPayload
from hr_workflow.domain.records import RecordType
from hr_workflow.domain.results import GenerationResult
from hr_workflow.exceptions import WorkflowKernelError
from hr_workflow.logging_config import get_logger
from hr_workflow.selectors.record_selector import RecordSelector
from hr_workflow.services.record_store import RecordStore

logger = get_logger("services.monthly_generation")


class MonthlyTimecardGenerator:
    """Generates the month's draft monthly time cards."""

    def __init__(self, store: RecordStore):
        self._store = store

    def generate(
        self,
        month: int,
        year: int,
        subject_ids: Iterable[UUID],
        created_by: UUID | None = None,
    ) -> GenerationResult:
        # Validates month before any write.
        template = MonthlyTimeCardPayload(month=month, year=year)
        subjects = list(dict.fromkeys(subject_ids))
        existing = self._subjects_with_card(month, year, subjects)

        created: list[UUID] = []
        skipped: list[UUID] = []
        failed: list[tuple[UUID, str]] = []
        for subject_id in subjects:
            if subject_id in existing:
                skipped.append(subject_id)
                continue
            try:
                record = self._store.create(
                    RecordType.MONTHLY_TIME_CARD,
                    subject_id,
                    template,
                    created_by=created_by,
                )
            except (WorkflowKernelError, SQLAlchemyError) as exc:
                logger.warning(
                    "monthly_card_failed",
                    extra={"subject_id": str(subject_id)},
                    exc_info=True,
                )
                failed.append((subject_id, getattr(exc, "code", type(exc).__name__)))
                continue
            created.append(record.record_id)

        logger.info(
            "monthly_cards_generated",
            extra={
                "month": month,
                "year": year,
                "created_count": len(created),
                "skipped_count": len(skipped),
                "failed_count": len(failed),
            },
        )
        return GenerationResult(
            month=month,
            year=year,
            created_ids=tuple(created),
            skipped_subjects=tuple(skipped),
            failed_subjects=tuple(failed),
        )

    def _subjects_with_card(
        self, month: int, year: int, subjects: list[UUID],
    ) -> set[UUID]:
        found: set[UUID] = set()
        with self._store.session_factory() as session:
            selector = RecordSelector(session)
            for subject_id in subjects:
                for record in selector.for_subject(subject_id, RecordType.MONTHLY_TIME_CARD):
                    if record.payload.month == month and record.payload.year == year:
                        found.add(subject_id)
        return found
