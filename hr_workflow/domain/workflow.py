"""
Stage registry (``hr_workflow.domain.workflow``).

Responsibility
--------------
Static, read-only table of the four approval workflows: which stages each
record type moves through, which action moves it, and which role acts at
each stage.  ``next_stage`` and ``describe_workflow`` are the only ways the
rest of the kernel reads the table.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and pure functions.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``; terminal states have no
  outgoing transitions.
* Linear workflows: ``advance``/``approve`` moves to the immediate successor;
  ``reject`` is legal from every non-initial, non-terminal stage and lands on
  ``rejected`` directly.
* Adding a record type is one ``_linear_workflow`` call (or one explicit
  ``Workflow``) in ``WORKFLOW_REGISTRY``.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from hr_workflow.domain.records import (
    Action,
    RecordType,
    Role,
    Stage,
    TERMINAL_STAGES,
)
from hr_workflow.exceptions import IllegalTransitionError, UnknownRecordTypeError


@dataclass(frozen=True)
class Transition:
    """A legal edge in a workflow.

    ``required_roles`` lists the registry-declared roles that may fire it;
    admin/hr override is applied by the engine, not declared here.
    """
    from_state: Stage
    to_state: Stage
    action: Action
    required_roles: tuple[Role, ...]


@dataclass(frozen=True)
class StageDescriptor:
    """One row of ``describe_workflow`` output, for progress indicators."""
    stage: Stage
    position: int
    required_roles: tuple[Role, ...]
    is_terminal: bool


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for one record type.

    ``states`` is the ordered stage sequence shown to users (rejected and
    cancelled outcomes are not part of the progress sequence).
    """
    record_type: RecordType
    initial_state: Stage
    states: tuple[Stage, ...]
    stage_roles: tuple[tuple[Role, ...], ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[Stage, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"{self.record_type.value}: initial state not in states")
        if len(self.stage_roles) != len(self.states):
            raise ValueError(f"{self.record_type.value}: one role tuple per stage required")
        known = set(self.states) | TERMINAL_STAGES
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"{self.record_type.value}: transition "
                    f"{t.from_state.value}->{t.to_state.value} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.record_type.value}: terminal state {t.from_state.value} "
                    "has an outgoing transition"
                )

    def find(self, from_state: Stage, action: Action) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None


def _linear_workflow(
    record_type: RecordType,
    steps: tuple[tuple[Stage, Role | None], ...],
) -> Workflow:
    """Build a linear sequence with advance/approve edges and reject exits."""
    states = tuple(stage for stage, _ in steps)
    stage_roles = tuple((role,) if role else () for _, role in steps)
    transitions: list[Transition] = []
    for index in range(len(steps) - 1):
        current = states[index]
        successor, role = steps[index + 1]
        roles = (role,) if role else ()
        for action in (Action.ADVANCE, Action.APPROVE):
            transitions.append(Transition(current, successor, action, roles))
        if index > 0:
            # The reviewer holding the record may send it back as rejected.
            transitions.append(Transition(current, Stage.REJECTED, Action.REJECT, roles))
    return Workflow(
        record_type=record_type,
        initial_state=states[0],
        states=states,
        stage_roles=stage_roles,
        transitions=tuple(transitions),
        terminal_states=(states[-1], Stage.REJECTED, Stage.CANCELLED),
    )


_LEAVE_DECIDERS: tuple[Role, ...] = (Role.ADMIN, Role.HR)

_LEAVE_WORKFLOW = Workflow(
    record_type=RecordType.LEAVE_REQUEST,
    initial_state=Stage.PENDING,
    states=(Stage.PENDING, Stage.APPROVED),
    stage_roles=((), _LEAVE_DECIDERS),
    transitions=(
        Transition(Stage.PENDING, Stage.APPROVED, Action.APPROVE, _LEAVE_DECIDERS),
        Transition(Stage.PENDING, Stage.APPROVED, Action.ADVANCE, _LEAVE_DECIDERS),
        Transition(Stage.PENDING, Stage.REJECTED, Action.REJECT, _LEAVE_DECIDERS),
        Transition(Stage.PENDING, Stage.CANCELLED, Action.CANCEL, _LEAVE_DECIDERS),
    ),
    terminal_states=(Stage.APPROVED, Stage.REJECTED, Stage.CANCELLED),
)


WORKFLOW_REGISTRY: Mapping[RecordType, Workflow] = MappingProxyType({
    RecordType.TIME_CARD: _linear_workflow(
        RecordType.TIME_CARD,
        (
            (Stage.DRAFT, None),
            (Stage.SECRETARY_SUBMITTED, Role.SECRETARY),
            (Stage.EMPLOYEE_APPROVED, Role.EMPLOYEE),
            (Stage.ADMIN_APPROVED, Role.ADMIN),
            (Stage.PAYROLL_PROCESSED, Role.PAYROLL),
        ),
    ),
    RecordType.SUBSTITUTE_TIME_CARD: _linear_workflow(
        RecordType.SUBSTITUTE_TIME_CARD,
        (
            (Stage.DRAFT, None),
            (Stage.SECRETARY_SUBMITTED, Role.SECRETARY),
            (Stage.ADMIN_APPROVED, Role.ADMIN),
            (Stage.PAYROLL_PROCESSED, Role.PAYROLL),
        ),
    ),
    RecordType.MONTHLY_TIME_CARD: _linear_workflow(
        RecordType.MONTHLY_TIME_CARD,
        (
            (Stage.DRAFT, None),
            (Stage.SUBMITTED_TO_EMPLOYEE, Role.SECRETARY),
            (Stage.EMPLOYEE_APPROVED, Role.EMPLOYEE),
            (Stage.SUBMITTED_TO_ADMIN, Role.ADMIN),
            (Stage.SUBMITTED_TO_PAYROLL, Role.ADMIN),
            (Stage.PAYROLL_PROCESSED, Role.PAYROLL),
        ),
    ),
    RecordType.LEAVE_REQUEST: _LEAVE_WORKFLOW,
})


def get_workflow(record_type: RecordType | str) -> Workflow:
    """Registry entry for ``record_type``; ``UnknownRecordTypeError`` if absent."""
    try:
        return WORKFLOW_REGISTRY[RecordType(record_type)]
    except (KeyError, ValueError):
        raise UnknownRecordTypeError(str(getattr(record_type, "value", record_type)))


def next_stage(
    record_type: RecordType | str,
    current_stage: Stage | str,
    action: Action | str,
) -> Transition:
    """Resolve the legal transition for ``action`` from ``current_stage``.

    Raises:
        UnknownRecordTypeError: ``record_type`` has no workflow.
        IllegalTransitionError: no edge for ``(current_stage, action)``,
            including every attempt out of a terminal stage.
    """
    workflow = get_workflow(record_type)
    stage_value = getattr(current_stage, "value", current_stage)
    action_value = getattr(action, "value", action)
    try:
        stage = Stage(stage_value)
        act = Action(action_value)
    except ValueError:
        raise IllegalTransitionError(workflow.record_type.value, str(stage_value), str(action_value))

    transition = workflow.find(stage, act)
    if transition is None:
        raise IllegalTransitionError(workflow.record_type.value, stage.value, act.value)
    return transition


def describe_workflow(record_type: RecordType | str) -> tuple[StageDescriptor, ...]:
    """Ordered stages with required roles, for presentation layers."""
    workflow = get_workflow(record_type)
    return tuple(
        StageDescriptor(
            stage=stage,
            position=index,
            required_roles=workflow.stage_roles[index],
            is_terminal=stage in workflow.terminal_states,
        )
        for index, stage in enumerate(workflow.states)
    )
