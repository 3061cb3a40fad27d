"""
Tests for the stage registry (hr_workflow.domain.workflow).

Covers:
- next_stage(): the happy path of every record type, reject and cancel edges
- Terminal stages: no action leaves payroll_processed, rejected, cancelled,
  or an approved leave request
- Linear types: reject illegal from the initial stage
- describe_workflow(): ordering and role columns
- Workflow construction: malformed definitions are refused
- Hypothesis: arbitrary (type, stage, action) triples either resolve to a
  registry edge or raise IllegalTransitionError, never anything else
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from hr_workflow.domain.records import TERMINAL_STAGES, Action, RecordType, Role, Stage
from hr_workflow.domain.workflow import (
    WORKFLOW_REGISTRY,
    Transition,
    Workflow,
    describe_workflow,
    get_workflow,
    next_stage,
)
from hr_workflow.exceptions import IllegalTransitionError, UnknownRecordTypeError


TIME_CARD_PATH = [
    (Stage.DRAFT, Stage.SECRETARY_SUBMITTED, Role.SECRETARY),
    (Stage.SECRETARY_SUBMITTED, Stage.EMPLOYEE_APPROVED, Role.EMPLOYEE),
    (Stage.EMPLOYEE_APPROVED, Stage.ADMIN_APPROVED, Role.ADMIN),
    (Stage.ADMIN_APPROVED, Stage.PAYROLL_PROCESSED, Role.PAYROLL),
]

SUBSTITUTE_PATH = [
    (Stage.DRAFT, Stage.SECRETARY_SUBMITTED, Role.SECRETARY),
    (Stage.SECRETARY_SUBMITTED, Stage.ADMIN_APPROVED, Role.ADMIN),
    (Stage.ADMIN_APPROVED, Stage.PAYROLL_PROCESSED, Role.PAYROLL),
]

MONTHLY_PATH = [
    (Stage.DRAFT, Stage.SUBMITTED_TO_EMPLOYEE, Role.SECRETARY),
    (Stage.SUBMITTED_TO_EMPLOYEE, Stage.EMPLOYEE_APPROVED, Role.EMPLOYEE),
    (Stage.EMPLOYEE_APPROVED, Stage.SUBMITTED_TO_ADMIN, Role.ADMIN),
    (Stage.SUBMITTED_TO_ADMIN, Stage.SUBMITTED_TO_PAYROLL, Role.ADMIN),
    (Stage.SUBMITTED_TO_PAYROLL, Stage.PAYROLL_PROCESSED, Role.PAYROLL),
]


class TestNextStage:
    """Resolution of legal edges."""

    @pytest.mark.parametrize(
        "record_type, path",
        [
            (RecordType.TIME_CARD, TIME_CARD_PATH),
            (RecordType.SUBSTITUTE_TIME_CARD, SUBSTITUTE_PATH),
            (RecordType.MONTHLY_TIME_CARD, MONTHLY_PATH),
        ],
    )
    def test_linear_path_advances_one_stage_at_a_time(self, record_type, path):
        """Each advance lands on the immediate successor with its role."""
        for current, expected, role in path:
            transition = next_stage(record_type, current, Action.ADVANCE)
            assert transition.to_state == expected
            assert transition.required_roles == (role,)

    def test_approve_is_an_alias_for_advance(self):
        """approve and advance resolve to the same target."""
        for current, expected, _ in TIME_CARD_PATH:
            assert next_stage(RecordType.TIME_CARD, current, Action.APPROVE).to_state == expected

    def test_accepts_wire_strings(self):
        transition = next_stage("time_card", "draft", "advance")
        assert transition.to_state == Stage.SECRETARY_SUBMITTED

    def test_reject_goes_straight_to_rejected_with_reviewer_role(self):
        """The reviewer holding the record is the one who may reject it."""
        transition = next_stage(
            RecordType.TIME_CARD, Stage.EMPLOYEE_APPROVED, Action.REJECT,
        )
        assert transition.to_state == Stage.REJECTED
        assert transition.required_roles == (Role.ADMIN,)

    def test_reject_from_initial_linear_stage_is_illegal(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            next_stage(RecordType.TIME_CARD, Stage.DRAFT, Action.REJECT)
        assert exc_info.value.current_stage == "draft"
        assert exc_info.value.action == "reject"

    def test_cancel_is_illegal_on_linear_types(self):
        with pytest.raises(IllegalTransitionError):
            next_stage(RecordType.TIME_CARD, Stage.SECRETARY_SUBMITTED, Action.CANCEL)

    @pytest.mark.parametrize(
        "action, expected",
        [
            (Action.APPROVE, Stage.APPROVED),
            (Action.ADVANCE, Stage.APPROVED),
            (Action.REJECT, Stage.REJECTED),
            (Action.CANCEL, Stage.CANCELLED),
        ],
    )
    def test_leave_request_decisions(self, action, expected):
        transition = next_stage(RecordType.LEAVE_REQUEST, Stage.PENDING, action)
        assert transition.to_state == expected
        assert set(transition.required_roles) == {Role.ADMIN, Role.HR}

    def test_enroll_is_never_a_requestable_action(self):
        for record_type, workflow in WORKFLOW_REGISTRY.items():
            for stage in workflow.states:
                with pytest.raises(IllegalTransitionError):
                    next_stage(record_type, stage, Action.ENROLL)

    def test_unknown_action_string(self):
        with pytest.raises(IllegalTransitionError):
            next_stage(RecordType.TIME_CARD, Stage.DRAFT, "teleport")

    def test_unknown_record_type(self):
        with pytest.raises(UnknownRecordTypeError) as exc_info:
            next_stage("expense_report", "draft", "advance")
        assert exc_info.value.code == "UNKNOWN_RECORD_TYPE"


class TestTerminalStages:
    """No transition leaves a terminal stage."""

    @pytest.mark.parametrize("record_type", list(RecordType))
    @pytest.mark.parametrize("stage", sorted(TERMINAL_STAGES, key=lambda s: s.value))
    @pytest.mark.parametrize("action", [Action.ADVANCE, Action.APPROVE, Action.REJECT, Action.CANCEL])
    def test_terminal_stage_has_no_exit(self, record_type, stage, action):
        with pytest.raises(IllegalTransitionError):
            next_stage(record_type, stage, action)

    @pytest.mark.parametrize("action", [Action.ADVANCE, Action.APPROVE, Action.REJECT, Action.CANCEL])
    def test_approved_leave_has_no_exit(self, action):
        """Approval is forward-only: there is no retraction edge."""
        with pytest.raises(IllegalTransitionError):
            next_stage(RecordType.LEAVE_REQUEST, Stage.APPROVED, action)


class TestDescribeWorkflow:

    def test_time_card_sequence(self):
        descriptors = describe_workflow(RecordType.TIME_CARD)
        assert [d.stage for d in descriptors] == [
            Stage.DRAFT,
            Stage.SECRETARY_SUBMITTED,
            Stage.EMPLOYEE_APPROVED,
            Stage.ADMIN_APPROVED,
            Stage.PAYROLL_PROCESSED,
        ]
        assert [d.position for d in descriptors] == [0, 1, 2, 3, 4]
        assert descriptors[0].required_roles == ()
        assert descriptors[2].required_roles == (Role.EMPLOYEE,)
        assert [d.is_terminal for d in descriptors] == [False, False, False, False, True]

    def test_monthly_admin_acts_twice(self):
        roles = [d.required_roles for d in describe_workflow("monthly_time_card")]
        assert roles == [
            (),
            (Role.SECRETARY,),
            (Role.EMPLOYEE,),
            (Role.ADMIN,),
            (Role.ADMIN,),
            (Role.PAYROLL,),
        ]

    def test_leave_request_sequence(self):
        descriptors = describe_workflow(RecordType.LEAVE_REQUEST)
        assert [d.stage for d in descriptors] == [Stage.PENDING, Stage.APPROVED]
        assert descriptors[1].is_terminal

    def test_every_registered_type_is_describable(self):
        for record_type in RecordType:
            assert describe_workflow(record_type)[0].stage == get_workflow(record_type).initial_state


class TestWorkflowDefinition:
    """Malformed workflow definitions are refused at construction."""

    def test_initial_state_must_be_a_state(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow(
                record_type=RecordType.TIME_CARD,
                initial_state=Stage.PENDING,
                states=(Stage.DRAFT,),
                stage_roles=((),),
                transitions=(),
            )

    def test_terminal_state_cannot_have_exit(self):
        with pytest.raises(ValueError, match="terminal"):
            Workflow(
                record_type=RecordType.TIME_CARD,
                initial_state=Stage.DRAFT,
                states=(Stage.DRAFT, Stage.ADMIN_APPROVED),
                stage_roles=((), (Role.ADMIN,)),
                transitions=(
                    Transition(Stage.ADMIN_APPROVED, Stage.DRAFT, Action.REJECT, (Role.ADMIN,)),
                ),
                terminal_states=(Stage.ADMIN_APPROVED,),
            )

    def test_one_role_tuple_per_stage(self):
        with pytest.raises(ValueError, match="role tuple"):
            Workflow(
                record_type=RecordType.TIME_CARD,
                initial_state=Stage.DRAFT,
                states=(Stage.DRAFT, Stage.ADMIN_APPROVED),
                stage_roles=((),),
                transitions=(),
            )


# ---------------------------------------------------------------------------
# Property-based checks
# ---------------------------------------------------------------------------


@given(
    record_type=st.sampled_from(list(RecordType)),
    stage=st.sampled_from(list(Stage)),
    action=st.sampled_from(list(Action)),
)
def test_resolution_is_total_and_registry_backed(record_type, stage, action):
    """Every triple either maps to a registry edge or is an illegal transition."""
    workflow = WORKFLOW_REGISTRY[record_type]
    edge = workflow.find(stage, action)
    if edge is None:
        with pytest.raises(IllegalTransitionError):
            next_stage(record_type, stage, action)
    else:
        assert next_stage(record_type, stage, action) == edge


@given(
    record_type=st.sampled_from(list(RecordType)),
    action=st.sampled_from(list(Action)),
    data=st.data(),
)
def test_resolved_targets_stay_inside_the_workflow(record_type, action, data):
    """A resolved target is the successor, rejected, or cancelled."""
    workflow = WORKFLOW_REGISTRY[record_type]
    index = data.draw(st.integers(min_value=0, max_value=len(workflow.states) - 1))
    stage = workflow.states[index]
    edge = workflow.find(stage, action)
    if edge is None:
        return
    allowed = {Stage.REJECTED, Stage.CANCELLED}
    if index + 1 < len(workflow.states):
        allowed.add(workflow.states[index + 1])
    assert edge.to_state in allowed
    assert edge.from_state not in workflow.terminal_states


@given(data=st.data())
def test_advancing_from_initial_reaches_the_end(data):
    """Repeated advance walks every linear workflow to its last stage."""
    record_type = data.draw(st.sampled_from([
        RecordType.TIME_CARD,
        RecordType.SUBSTITUTE_TIME_CARD,
        RecordType.MONTHLY_TIME_CARD,
    ]))
    workflow = WORKFLOW_REGISTRY[record_type]
    stage = workflow.initial_state
    steps = 0
    while stage not in workflow.terminal_states:
        stage = next_stage(record_type, stage, Action.ADVANCE).to_state
        steps += 1
    assert stage == workflow.states[-1] == Stage.PAYROLL_PROCESSED
    assert steps == len(workflow.states) - 1
