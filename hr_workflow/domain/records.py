"""
Approvable record domain types (``hr_workflow.domain.records``).

Responsibility
--------------
Pure value objects shared by every layer: the record type / stage / role /
action vocabularies, the approval history entry, and the frozen
``ApprovableRecord`` snapshot handed out by the record store.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Stage string values are part of the wire contract and never change.
* ``status`` and ``current_stage`` are one field (``current_stage`` is a
  read-only alias), so they cannot drift.
* ``ApprovalHistoryEntry`` serializes losslessly to the JSON column shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from hr_workflow.domain.payloads import RecordPayload


class RecordType(str, Enum):
    """The four approvable record variants."""

    TIME_CARD = "time_card"
    SUBSTITUTE_TIME_CARD = "substitute_time_card"
    MONTHLY_TIME_CARD = "monthly_time_card"
    LEAVE_REQUEST = "leave_request"


class Stage(str, Enum):
    """Named workflow positions.  Values are the wire contract."""

    DRAFT = "draft"
    SECRETARY_SUBMITTED = "secretary_submitted"
    EMPLOYEE_APPROVED = "employee_approved"
    ADMIN_APPROVED = "admin_approved"
    PAYROLL_PROCESSED = "payroll_processed"
    SUBMITTED_TO_EMPLOYEE = "submitted_to_employee"
    SUBMITTED_TO_ADMIN = "submitted_to_admin"
    SUBMITTED_TO_PAYROLL = "submitted_to_payroll"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Role(str, Enum):
    """District roles that act on records."""

    SECRETARY = "secretary"
    EMPLOYEE = "employee"
    ADMIN = "admin"
    HR = "hr"
    PAYROLL = "payroll"


class Action(str, Enum):
    """Actions a caller can request, plus ``enroll`` used only in history."""

    ADVANCE = "advance"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    ENROLL = "enroll"


# Roles that may act at any stage and lock/unlock records.
OVERRIDE_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.HR})

# No transition leaves these stages, for any record type.
TERMINAL_STAGES: frozenset[Stage] = frozenset({
    Stage.PAYROLL_PROCESSED,
    Stage.REJECTED,
    Stage.CANCELLED,
})


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """One append-only step in a record's approval history."""

    actor_id: UUID
    actor_role: Role
    from_stage: Stage | None
    to_stage: Stage
    action: Action
    notes: str | None
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "actor_id": str(self.actor_id),
            "actor_role": self.actor_role.value,
            "from_stage": self.from_stage.value if self.from_stage else None,
            "to_stage": self.to_stage.value,
            "action": self.action.value,
            "notes": self.notes,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApprovalHistoryEntry:
        from_stage = data.get("from_stage")
        return cls(
            actor_id=UUID(data["actor_id"]),
            actor_role=Role(data["actor_role"]),
            from_stage=Stage(from_stage) if from_stage else None,
            to_stage=Stage(data["to_stage"]),
            action=Action(data["action"]),
            notes=data.get("notes"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class ApprovableRecord:
    """Immutable snapshot of an approvable record at one ``version``.

    Mutations never edit a snapshot; they produce a new one with
    ``dataclasses.replace`` and hand it to ``RecordStore.compare_and_swap``.
    """

    record_id: UUID
    record_type: RecordType
    subject_id: UUID
    status: Stage
    version: int
    payload: RecordPayload
    stage_notes: dict[str, str] = field(default_factory=dict)
    rejection_reason: str | None = None
    is_locked: bool = False
    locked_by: UUID | None = None
    locked_at: datetime | None = None
    lock_reason: str | None = None
    approval_history: tuple[ApprovalHistoryEntry, ...] = ()
    source_leave_request_id: UUID | None = None
    created_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def current_stage(self) -> Stage:
        return self.status

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STAGES

    @property
    def is_derived(self) -> bool:
        return self.source_leave_request_id is not None
