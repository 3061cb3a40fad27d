"""
Pure domain layer.

Value objects and pure functions with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from hr_workflow.domain.clock import Clock, DeterministicClock, SystemClock
from hr_workflow.domain.payloads import (
    LeaveRequestPayload,
    MonthlyTimeCardPayload,
    RecordPayload,
    SubstituteTimeCardPayload,
    TimeCardPayload,
    compute_total_hours,
)
from hr_workflow.domain.records import (
    OVERRIDE_ROLES,
    TERMINAL_STAGES,
    Action,
    ApprovableRecord,
    ApprovalHistoryEntry,
    RecordType,
    Role,
    Stage,
)
from hr_workflow.domain.results import (
    BatchFailure,
    BatchResult,
    ExpansionReport,
    GenerationResult,
    TransitionResult,
)
from hr_workflow.domain.workflow import (
    WORKFLOW_REGISTRY,
    StageDescriptor,
    Transition,
    Workflow,
    describe_workflow,
    get_workflow,
    next_stage,
)

__all__ = [
    "Action",
    "ApprovableRecord",
    "ApprovalHistoryEntry",
    "BatchFailure",
    "BatchResult",
    "Clock",
    "DeterministicClock",
    "ExpansionReport",
    "GenerationResult",
    "LeaveRequestPayload",
    "MonthlyTimeCardPayload",
    "OVERRIDE_ROLES",
    "RecordPayload",
    "RecordType",
    "Role",
    "Stage",
    "StageDescriptor",
    "SubstituteTimeCardPayload",
    "SystemClock",
    "TERMINAL_STAGES",
    "TimeCardPayload",
    "Transition",
    "TransitionResult",
    "WORKFLOW_REGISTRY",
    "Workflow",
    "compute_total_hours",
    "describe_workflow",
    "get_workflow",
    "next_stage",
]
