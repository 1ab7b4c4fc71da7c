"""TransitionOrchestrator -- 智能状态转换

用户只选择目标状态，编排器把 (当前状态, 目标状态) 解析为一个规范操作，
再组合 StateMachine、PermissionResolver、TaskOperations 与 CascadeEngine 执行。

解析顺序：
1. 校验目标状态值（InvalidStatus）
2. 加载任务（NotFound）
3. 编辑权限（Forbidden）
4. 第 2/3 级任务请求审核 → SubtaskNoReview
5. 相同状态 → 空操作（不写事件、不联动）
6. 查解析表，执行规范操作

规范操作、事件写入和状态联动在同一个 unit of work 内提交；
状态联动在 savepoint 内执行，失败只记录日志，不影响主操作。
通知在提交之后投递。
"""

import structlog

from ..errors import (
    InvalidStatusError,
    InvalidTransitionError,
    SubtaskNoReviewError,
    task_not_found,
)
from ..models.enums import TaskStatus, TransitionAction, parse_status
from ..models.results import (
    CascadeChange,
    NoopTransition,
    PlannedTransition,
    RejectedTransition,
    TransitionPlan,
    TransitionResult,
)
from ..models.task import TaskContext
from ..notifications import NotificationDispatcher
from ..store import StoreGroup
from .cascade import CascadeEngine
from .hierarchy import task_depth
from .operations import OperationOutcome, TaskOperations
from .permissions import PermissionResolver
from .state_machine import StateMachine

log = structlog.get_logger()

# (当前状态, 目标状态) → 规范操作
TRANSITION_PLAN: dict[tuple[TaskStatus, TaskStatus], TransitionAction] = {
    (TaskStatus.TODO, TaskStatus.IN_PROGRESS): TransitionAction.START,
    (TaskStatus.IN_PROGRESS, TaskStatus.TODO): TransitionAction.REVERT_TO_TODO,
    (TaskStatus.IN_PROGRESS, TaskStatus.REVIEW): TransitionAction.SUBMIT_REVIEW,
    (TaskStatus.IN_PROGRESS, TaskStatus.DONE): TransitionAction.COMPLETE,
    (TaskStatus.REVIEW, TaskStatus.IN_PROGRESS): TransitionAction.REJECT,
    (TaskStatus.REVIEW, TaskStatus.DONE): TransitionAction.APPROVE,
    (TaskStatus.DONE, TaskStatus.IN_PROGRESS): TransitionAction.REOPEN,
}

# (当前状态, 目标状态) → 拒绝原因
REJECTED_TRANSITIONS: dict[tuple[TaskStatus, TaskStatus], str] = {
    (TaskStatus.TODO, TaskStatus.DONE): "待办任务需要先开始，才能完成",
    (TaskStatus.TODO, TaskStatus.REVIEW): "待办任务需要先开始，才能提交审核",
    (TaskStatus.REVIEW, TaskStatus.TODO): "审核中的任务不能直接退回待办，请先退回修改",
    (TaskStatus.DONE, TaskStatus.TODO): "已完成的任务只能重新打开为「进行中」状态",
    (TaskStatus.DONE, TaskStatus.REVIEW): "已完成的任务只能重新打开为「进行中」状态",
}

ACTION_MESSAGES: dict[TransitionAction, str] = {
    TransitionAction.START: "任务已开始",
    TransitionAction.REVERT_TO_TODO: "任务已退回待办",
    TransitionAction.SUBMIT_REVIEW: "任务已提交审核",
    TransitionAction.COMPLETE: "任务已完成",
    TransitionAction.REJECT: "任务已退回修改",
    TransitionAction.APPROVE: "审核通过，任务已完成",
    TransitionAction.REOPEN: "任务已重新打开",
}

NOOP_MESSAGE = "状态未改变"

# 通过智能转换退回时记录的默认原因
SMART_REJECT_REASON = "手动退回"


def plan_transition(old_status: TaskStatus, requested: TaskStatus) -> TransitionPlan:
    """纯函数：解析 (当前状态, 目标状态)"""
    if old_status == requested:
        return NoopTransition()
    action = TRANSITION_PLAN.get((old_status, requested))
    if action is not None:
        return PlannedTransition(action=action)
    reason = REJECTED_TRANSITIONS.get((old_status, requested))
    if reason is None:
        reason = f"不能从「{old_status}」转换到「{requested}」"
    return RejectedTransition(reason=reason)


class TransitionOrchestrator:
    """智能状态转换编排器"""

    def __init__(
        self,
        stores: StoreGroup,
        permissions: PermissionResolver,
        operations: TaskOperations,
        cascade: CascadeEngine,
        dispatcher: NotificationDispatcher,
        state_machine: StateMachine | None = None,
    ) -> None:
        self._stores = stores
        self._permissions = permissions
        self._operations = operations
        self._cascade = cascade
        self._dispatcher = dispatcher
        self._state_machine = state_machine or StateMachine()

    async def resolve(
        self,
        user_id: str,
        task_id: str,
        requested_status: str | TaskStatus,
    ) -> TransitionResult:
        """把用户选择的目标状态解析为规范操作并执行

        Raises:
            InvalidStatusError: 目标状态值无效
            NotFoundError: 任务不存在
            ForbiddenError: 无编辑权限或不满足操作执行人规则
            SubtaskNoReviewError: 子任务请求审核
            InvalidTransitionError: 解析表拒绝该转换
        """
        requested = parse_status(requested_status)
        if requested is None:
            raise InvalidStatusError("无效的状态", details={"status": str(requested_status)})

        async with self._stores.unit_of_work():
            ctx = await self._load(task_id)
            await self._permissions.require_edit_task(ctx, user_id, "无权修改此任务")

            if requested == TaskStatus.REVIEW:
                depth = await task_depth(self._stores.task_store, ctx.task)
                if depth > 1:
                    raise SubtaskNoReviewError(details={"task_id": task_id, "depth": depth})

            old_status = ctx.task.status
            plan = plan_transition(old_status, requested)

            if isinstance(plan, NoopTransition):
                return TransitionResult(
                    task=ctx.task,
                    actual_status=old_status,
                    message=NOOP_MESSAGE,
                    status_changed=False,
                )
            if isinstance(plan, RejectedTransition):
                raise InvalidTransitionError(
                    plan.reason,
                    details={"from": old_status.value, "to": requested.value},
                )

            self._state_machine.validate(old_status, requested)
            reason = SMART_REJECT_REASON if plan.action == TransitionAction.REJECT else None
            outcome = await self._operations.run(plan.action, ctx, user_id, reason=reason)
            cascaded = await self._cascade_after(outcome, user_id)

        return self._finish(outcome, cascaded)

    async def execute(
        self,
        action: TransitionAction,
        user_id: str,
        task_id: str,
        *,
        reason: str | None = None,
    ) -> TransitionResult:
        """直接执行某个规范操作（开始/提交审核/通过/退回/直接完成/重新打开）

        当前状态不符合时抛出 InvalidTransitionError，执行人规则由操作本身检查。
        """
        async with self._stores.unit_of_work():
            ctx = await self._load(task_id)
            outcome = await self._operations.run(action, ctx, user_id, reason=reason)
            cascaded = await self._cascade_after(outcome, user_id)

        return self._finish(outcome, cascaded)

    async def propagate_completion(self, task_id: str, actor_id: str) -> list[CascadeChange]:
        """在独立的 unit of work 内执行一次完成联动（批量完成后的补充检查）"""
        async with self._stores.unit_of_work():
            return await self._cascade.propagate_completion(task_id, actor_id)

    # ------------------------------------------------------------------
    # 内部辅助
    # ------------------------------------------------------------------

    async def _load(self, task_id: str) -> TaskContext:
        ctx = await self._stores.task_store.find_task_with_relations(task_id)
        if ctx is None:
            raise task_not_found(task_id)
        return ctx

    async def _cascade_after(
        self,
        outcome: OperationOutcome,
        user_id: str,
    ) -> list[CascadeChange]:
        """根据主操作的新旧状态触发联动；失败回滚到 savepoint 并记录日志"""
        task = outcome.task
        if not task.parent_id:
            return []

        old_status = outcome.old_status
        new_status = task.status
        try:
            async with self._stores.savepoint("cascade"):
                changes: list[CascadeChange] = []
                if new_status == TaskStatus.DONE:
                    changes += await self._cascade.propagate_completion(task.task_id, user_id)
                if old_status == TaskStatus.TODO and new_status == TaskStatus.IN_PROGRESS:
                    changes += await self._cascade.propagate_start(task.task_id, user_id)
                if old_status == TaskStatus.DONE and new_status != TaskStatus.DONE:
                    changes += await self._cascade.propagate_revert(task.task_id, user_id)
        except Exception as e:
            log.error(
                "cascade_failed",
                task_id=task.task_id,
                action=outcome.action.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            return []
        return changes

    def _finish(
        self,
        outcome: OperationOutcome,
        cascaded: list[CascadeChange],
    ) -> TransitionResult:
        self._dispatcher.dispatch(outcome.notifications)
        return TransitionResult(
            task=outcome.task,
            actual_status=outcome.task.status,
            message=ACTION_MESSAGES[outcome.action],
            status_changed=outcome.old_status != outcome.task.status,
            action=outcome.action,
            cascaded=cascaded,
        )
