"""
Tests for LockManager -- administrative freeze of records.

Covers:
- lock()/unlock() set and clear lock metadata without touching status or history
- Repeated lock / unlock are no-ops
- Only admin and hr may lock
- Audit entries for successes, no-ops, refusals and database failures
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from hr_workflow.domain.records import Role, Stage
from hr_workflow.exceptions import PermissionDeniedError, RecordNotFoundError


class TestLock:

    def test_lock_sets_metadata(self, orchestrator, make_time_card, actors, deterministic_clock):
        card = make_time_card()
        locked = orchestrator.lock(card.record_id, actors.admin, Role.ADMIN, "Payroll audit")

        assert locked.is_locked
        assert locked.locked_by == actors.admin
        assert locked.locked_at == deterministic_clock.now()
        assert locked.lock_reason == "Payroll audit"
        assert locked.status == Stage.DRAFT
        assert locked.approval_history == ()
        assert locked.version == 2

    def test_lock_twice_is_a_no_op(self, orchestrator, make_time_card, actors):
        card = make_time_card()
        first = orchestrator.lock(card.record_id, actors.admin, Role.ADMIN, "First")
        second = orchestrator.lock(card.record_id, actors.hr, Role.HR, "Second")
        assert second == first
        assert second.locked_by == actors.admin
        assert second.lock_reason == "First"

    def test_reason_is_optional(self, orchestrator, make_time_card, actors):
        locked = orchestrator.lock(make_time_card().record_id, actors.hr, Role.HR)
        assert locked.is_locked
        assert locked.lock_reason is None

    @pytest.mark.parametrize("role_name", ["secretary", "employee", "payroll"])
    def test_other_roles_may_not_lock(self, orchestrator, make_time_card, actors, role_name):
        actor = getattr(actors, role_name)
        card = make_time_card()
        with pytest.raises(PermissionDeniedError) as exc_info:
            orchestrator.lock(card.record_id, actor, Role(role_name))
        assert exc_info.value.required_roles == ("admin", "hr")
        assert not orchestrator.get(card.record_id).is_locked

    def test_claimed_role_must_match(self, orchestrator, make_time_card, actors):
        with pytest.raises(PermissionDeniedError):
            orchestrator.lock(make_time_card().record_id, actors.secretary, Role.ADMIN)

    def test_unknown_record(self, orchestrator, actors):
        with pytest.raises(RecordNotFoundError):
            orchestrator.lock(uuid4(), actors.admin, Role.ADMIN)


class TestUnlock:

    def test_unlock_clears_metadata(self, orchestrator, make_time_card, actors):
        card = make_time_card()
        orchestrator.lock(card.record_id, actors.admin, Role.ADMIN, "Hold")
        unlocked = orchestrator.unlock(card.record_id, actors.hr, Role.HR)

        assert not unlocked.is_locked
        assert unlocked.locked_by is None
        assert unlocked.locked_at is None
        assert unlocked.lock_reason is None
        assert unlocked.version == 3

    def test_unlock_unlocked_is_a_no_op(self, orchestrator, make_time_card, actors):
        card = make_time_card()
        result = orchestrator.unlock(card.record_id, actors.admin, Role.ADMIN)
        assert result == card

    def test_employee_may_not_unlock(self, orchestrator, make_time_card, actors):
        card = make_time_card()
        orchestrator.lock(card.record_id, actors.admin, Role.ADMIN)
        with pytest.raises(PermissionDeniedError):
            orchestrator.unlock(card.record_id, actors.employee, Role.EMPLOYEE)
        assert orchestrator.get(card.record_id).is_locked


class TestLockAudit:

    def test_successful_lock_is_audited(self, orchestrator, make_time_card, actors, audit_sink):
        card = make_time_card()
        orchestrator.lock(card.record_id, actors.admin, Role.ADMIN, "Hold")
        (entry,) = audit_sink.for_record(card.record_id)
        assert entry.action == "lock"
        assert entry.success is True
        assert entry.details == {"changed": True, "reason": "Hold"}
        assert entry.resource_type == "approvable_record"

    def test_no_op_is_audited(self, orchestrator, make_time_card, actors, audit_sink):
        card = make_time_card()
        orchestrator.unlock(card.record_id, actors.admin, Role.ADMIN)
        (entry,) = audit_sink.for_record(card.record_id)
        assert entry.action == "unlock"
        assert entry.details == {"changed": False}

    def test_refusal_is_audited(self, orchestrator, make_time_card, actors, audit_sink):
        card = make_time_card()
        with pytest.raises(PermissionDeniedError):
            orchestrator.lock(card.record_id, actors.payroll, Role.PAYROLL)
        (entry,) = audit_sink.for_record(card.record_id)
        assert entry.success is False
        assert entry.details == {"error": "PERMISSION_DENIED"}

    @pytest.mark.parametrize("operation", ["lock", "unlock"])
    def test_database_error_is_audited(
        self, orchestrator, make_time_card, actors, audit_sink, monkeypatch, operation,
    ):
        card = make_time_card()

        def unreachable(record_id):
            raise OperationalError("SELECT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(orchestrator.store, "load", unreachable)
        with pytest.raises(OperationalError):
            getattr(orchestrator, operation)(card.record_id, actors.admin, Role.ADMIN)

        (entry,) = audit_sink.for_record(card.record_id)
        assert entry.action == operation
        assert entry.success is False
        assert entry.details == {"error": "OperationalError"}
