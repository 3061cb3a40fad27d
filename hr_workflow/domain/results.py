"""
Operation result types (``hr_workflow.domain.results``).

Frozen dataclasses returned by the engine, the batch processor, and the
expansion and generation services.  Errors that abort an operation are
raised; these types carry what happened when the operation itself
completed, including per-item failures and non-fatal warnings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from hr_workflow.domain.records import ApprovableRecord, Stage
from hr_workflow.exceptions import WorkflowKernelError


@dataclass(frozen=True)
class ExpansionReport:
    """Outcome of materializing a leave request into attendance days.

    ``skipped_days`` were already materialized by an earlier run.
    """

    leave_request_id: UUID
    created_ids: tuple[UUID, ...] = ()
    skipped_days: tuple[date, ...] = ()
    failed_days: tuple[tuple[date, str], ...] = ()

    @property
    def created_count(self) -> int:
        return len(self.created_ids)

    @property
    def failed_count(self) -> int:
        return len(self.failed_days)

    @property
    def is_complete(self) -> bool:
        return not self.failed_days


@dataclass(frozen=True)
class TransitionResult:
    """A committed transition, plus any warnings raised after the commit."""

    record: ApprovableRecord
    previous_stage: Stage
    expansion: ExpansionReport | None = None
    warnings: tuple[WorkflowKernelError, ...] = ()


@dataclass(frozen=True)
class BatchFailure:
    """One record id that did not transition, with the typed error."""

    record_id: UUID
    error: WorkflowKernelError

    @property
    def code(self) -> str:
        return self.error.code


@dataclass(frozen=True)
class BatchResult:
    """Per-id outcome of a batch transition.  Order follows the input."""

    succeeded: tuple[UUID, ...] = ()
    failed: tuple[BatchFailure, ...] = ()
    warnings: tuple[WorkflowKernelError, ...] = ()

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of generating monthly time cards for a set of employees."""

    month: int
    year: int
    created_ids: tuple[UUID, ...] = ()
    skipped_subjects: tuple[UUID, ...] = ()
    failed_subjects: tuple[tuple[UUID, str], ...] = ()
