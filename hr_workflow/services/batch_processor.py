"""
hr_workflow.services.batch_processor -- One action over many records.

Responsibility:
    Applies the same transition to a list of record ids (the "approve all
    selected" button), isolating every id from the others and reporting a
    per-id outcome.

Architecture position:
    Kernel > Services.  Calls WorkflowEngine.apply_transition once per id.

Invariants enforced:
    - Each id is its own unit of work; a failure never aborts or rolls back
      another id.
    - Duplicate ids are processed once, at their first position.
    - Output order follows input order regardless of worker scheduling.
    - Empty input returns an empty result, not an error.

Failure modes:
    - None raised for per-id failures; they are captured in
      ``BatchResult.failed``.  Errors outside the kernel hierarchy are
      wrapped in UnhandledItemError.
"""

from __future__ import annotations

import contextvars
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable
from uuid import UUID, uuid4

from hr_workflow.domain.records import Action, Role
from hr_workflow.domain.results import BatchFailure, BatchResult, TransitionResult
from hr_workflow.exceptions import UnhandledItemError, WorkflowKernelError
from hr_workflow.logging_config import LogContext, get_logger
from hr_workflow.services.workflow_engine import WorkflowEngine

logger = get_logger("services.batch_processor")

_Outcome = tuple[UUID, "TransitionResult | None", "WorkflowKernelError | None"]


class BatchProcessor:
    """Fans one action out over many records."""

    def __init__(self, engine: WorkflowEngine, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._engine = engine
        self._max_workers = max_workers

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
        """Apply ``action`` to each id; never raises for a single id's failure."""
        unique = list(dict.fromkeys(record_ids))
        if not unique:
            return BatchResult()

        batch_id = uuid4()
        start_time = time.monotonic()
        with LogContext.bind(batch_id=str(batch_id), actor_id=str(actor_id)):
            logger.info(
                "batch_started",
                extra={
                    "action": getattr(action, "value", action),
                    "item_count": len(unique),
                    "max_workers": self._max_workers,
                },
            )

            def run(record_id: UUID) -> _Outcome:
                return self._apply_one(record_id, actor_id, actor_role, action, notes, unlock)

            if self._max_workers > 1 and len(unique) > 1:
                workers = min(self._max_workers, len(unique))
                with ThreadPoolExecutor(max_workers=workers) as pool:
                    # Each task runs in a copy of this context so log lines
                    # keep the batch id.
                    futures = [
                        pool.submit(contextvars.copy_context().run, run, record_id)
                        for record_id in unique
                    ]
                    outcomes = [f.result() for f in futures]
            else:
                outcomes = [run(record_id) for record_id in unique]

            succeeded: list[UUID] = []
            failed: list[BatchFailure] = []
            warnings: list[WorkflowKernelError] = []
            for record_id, result, error in outcomes:
                if error is not None:
                    failed.append(BatchFailure(record_id=record_id, error=error))
                else:
                    succeeded.append(record_id)
                    warnings.extend(result.warnings)

            logger.info(
                "batch_completed",
                extra={
                    "succeeded": len(succeeded),
                    "failed": len(failed),
                    "warnings": len(warnings),
                    "duration_ms": int((time.monotonic() - start_time) * 1000),
                },
            )
            return BatchResult(
                succeeded=tuple(succeeded),
                failed=tuple(failed),
                warnings=tuple(warnings),
            )

    def _apply_one(
        self,
        record_id: UUID,
        actor_id: UUID,
        actor_role: Role | str,
        action: Action | str,
        notes: str | None,
        unlock: bool,
    ) -> _Outcome:
        try:
            result = self._engine.apply_transition(
                record_id, actor_id, actor_role, action, notes, unlock=unlock,
            )
        except WorkflowKernelError as exc:
            return record_id, None, exc
        except Exception as exc:
            logger.error(
                "batch_item_unhandled",
                extra={"record_id": str(record_id)},
                exc_info=True,
            )
            wrapped = UnhandledItemError(str(record_id), type(exc).__name__, str(exc))
            wrapped.__cause__ = exc
            return record_id, None, wrapped
        return record_id, result, None
