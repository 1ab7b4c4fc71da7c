"""状态机与智能转换解析表单元测试

测试内容：
1. 有向流转表（含自环）
2. validate 抛出带可选目标的 InvalidTransitionError
3. 解析表恰好覆盖所有不同状态的有序对
"""

import itertools

import pytest
from taskflow.core.errors import ErrorCode, InvalidTransitionError
from taskflow.core.models import (
    NoopTransition,
    PlannedTransition,
    RejectedTransition,
    TaskStatus,
    TransitionAction,
    available_transitions,
    can_transition,
)
from taskflow.core.workflow import (
    REJECTED_TRANSITIONS,
    TRANSITION_PLAN,
    StateMachine,
    plan_transition,
)

ALLOWED = {
    (TaskStatus.TODO, TaskStatus.IN_PROGRESS),
    (TaskStatus.IN_PROGRESS, TaskStatus.TODO),
    (TaskStatus.IN_PROGRESS, TaskStatus.REVIEW),
    (TaskStatus.IN_PROGRESS, TaskStatus.DONE),
    (TaskStatus.REVIEW, TaskStatus.IN_PROGRESS),
    (TaskStatus.REVIEW, TaskStatus.DONE),
    (TaskStatus.DONE, TaskStatus.IN_PROGRESS),
}


class TestCanTransition:
    """流转合法性"""

    @pytest.mark.parametrize("from_status,to_status", sorted(ALLOWED))
    def test_valid_transition(self, from_status: TaskStatus, to_status: TaskStatus):
        assert can_transition(from_status, to_status) is True

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.TODO, TaskStatus.REVIEW),
            (TaskStatus.TODO, TaskStatus.DONE),
            (TaskStatus.REVIEW, TaskStatus.TODO),
            (TaskStatus.DONE, TaskStatus.TODO),
            (TaskStatus.DONE, TaskStatus.REVIEW),
        ],
    )
    def test_invalid_transition(self, from_status: TaskStatus, to_status: TaskStatus):
        assert can_transition(from_status, to_status) is False

    @pytest.mark.parametrize("status", list(TaskStatus))
    def test_self_loop_is_legal(self, status: TaskStatus):
        """相同状态视为合法的空操作"""
        assert can_transition(status, status) is True

    def test_table_matches_pairs(self):
        """流转表与合法有序对完全一致"""
        pairs = {(s, t) for s in TaskStatus for t in available_transitions(s)}
        assert pairs == ALLOWED


class TestValidate:
    """StateMachine.validate"""

    def test_validate_passes(self):
        StateMachine().validate(TaskStatus.TODO, TaskStatus.IN_PROGRESS)

    def test_validate_lists_available_targets(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            StateMachine().validate(TaskStatus.DONE, TaskStatus.TODO)

        err = exc_info.value
        assert err.code == ErrorCode.INVALID_TRANSITION
        assert err.details["available"] == ["in_progress"]
        assert "已完成" in err.message


class TestTransitionPlan:
    """智能转换解析表"""

    def test_plan_covers_every_distinct_pair_exactly_once(self):
        planned = set(TRANSITION_PLAN)
        rejected = set(REJECTED_TRANSITIONS)
        distinct = {(s, t) for s, t in itertools.product(TaskStatus, repeat=2) if s != t}

        assert planned.isdisjoint(rejected)
        assert planned | rejected == distinct

    def test_planned_pairs_are_legal_in_state_machine(self):
        for from_status, to_status in TRANSITION_PLAN:
            assert can_transition(from_status, to_status)

    def test_same_status_is_noop(self):
        assert isinstance(plan_transition(TaskStatus.REVIEW, TaskStatus.REVIEW), NoopTransition)

    @pytest.mark.parametrize(
        "old,requested,action",
        [
            (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TransitionAction.START),
            (TaskStatus.IN_PROGRESS, TaskStatus.TODO, TransitionAction.REVERT_TO_TODO),
            (TaskStatus.IN_PROGRESS, TaskStatus.REVIEW, TransitionAction.SUBMIT_REVIEW),
            (TaskStatus.IN_PROGRESS, TaskStatus.DONE, TransitionAction.COMPLETE),
            (TaskStatus.REVIEW, TaskStatus.IN_PROGRESS, TransitionAction.REJECT),
            (TaskStatus.REVIEW, TaskStatus.DONE, TransitionAction.APPROVE),
            (TaskStatus.DONE, TaskStatus.IN_PROGRESS, TransitionAction.REOPEN),
        ],
    )
    def test_planned_action(
        self, old: TaskStatus, requested: TaskStatus, action: TransitionAction
    ):
        plan = plan_transition(old, requested)
        assert isinstance(plan, PlannedTransition)
        assert plan.action == action

    def test_todo_to_done_rejected(self):
        plan = plan_transition(TaskStatus.TODO, TaskStatus.DONE)
        assert isinstance(plan, RejectedTransition)
        assert "先开始" in plan.reason

    def test_done_only_reopens_to_in_progress(self):
        for requested in (TaskStatus.TODO, TaskStatus.REVIEW):
            plan = plan_transition(TaskStatus.DONE, requested)
            assert isinstance(plan, RejectedTransition)
            assert "重新打开" in plan.reason
