"""
Race tests for leave expansion.

Two expansion runs of the same leave request both read "no days
materialized yet" before either inserts.  The unique constraint on
(source_leave_request_id, derived_work_date) lets exactly one insert per
day through; the other run reports that day as skipped.

Covers:
- Concurrent re-runs create each day exactly once
- The losing run reports skipped days, not failed days
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from hr_workflow.domain.records import Action, Role
from hr_workflow.exceptions import InvariantViolationError
from hr_workflow.services.leave_expansion import LeaveExpansionService

pytestmark = pytest.mark.concurrency


class FailingExpansion(LeaveExpansionService):
    """Leaves every day unmaterialized so a later re-run has work to do."""

    def _create_day(self, leave_request, day, *args):
        raise InvariantViolationError(str(leave_request.record_id), "disk full")


class SynchronizedExpansion(LeaveExpansionService):
    """Holds each run after its existence check until all runs have made it."""

    def __init__(self, store, parties):
        super().__init__(store)
        self.barrier = Barrier(parties)

    def _materialized_days(self, leave_request_id):
        existing = super()._materialized_days(leave_request_id)
        self.barrier.wait(timeout=10)
        return existing


class TestExpansionRace:

    def test_concurrent_reruns_create_each_day_once(
        self, orchestrator, make_leave_request, actors, store,
    ):
        orchestrator.engine._expansion = FailingExpansion(store)
        leave = make_leave_request()
        approval = orchestrator.apply_transition(
            leave.record_id, actors.hr, Role.HR, Action.APPROVE,
        )
        assert approval.expansion.failed_count == 5

        orchestrator.expansion = SynchronizedExpansion(orchestrator.store, parties=2)
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(orchestrator.expand, leave.record_id, actors.admin, Role.ADMIN),
                pool.submit(orchestrator.expand, leave.record_id, actors.hr, Role.HR),
            ]
            reports = [f.result() for f in futures]

        days = orchestrator.derived_from(leave.record_id)
        assert len(days) == 5
        assert len({d.payload.work_date for d in days}) == 5
        assert sum(r.created_count for r in reports) == 5
        for report in reports:
            assert report.failed_days == ()
            assert report.created_count + len(report.skipped_days) == 5
