"""规范状态操作 -- start / revert_to_todo / submit_review / complete / reject / approve / reopen

每个操作都是独立的可调用单元，在调用方已开启的 unit of work 内执行：
检查当前状态与执行人，写入状态和事件，返回待发送的通知。
状态联动和通知投递由调用方（TransitionOrchestrator）在事务边界上处理。
"""

from pydantic import BaseModel, Field

from ..errors import ForbiddenError, InvalidTransitionError, SubtaskNoReviewError
from ..models.enums import NotificationType, TaskStatus, TransitionAction
from ..models.notification import Notification
from ..models.task import Task, TaskContext
from ..store.protocols import TaskStore
from .event_log import EventLog
from .hierarchy import task_depth
from .mutations import write_status
from .permissions import PermissionResolver


class OperationOutcome(BaseModel):
    """单个规范操作的执行结果"""

    task: Task
    old_status: TaskStatus
    action: TransitionAction
    notifications: list[Notification] = Field(default_factory=list)


class TaskOperations:
    """规范状态操作集合"""

    def __init__(
        self,
        task_store: TaskStore,
        event_log: EventLog,
        permissions: PermissionResolver,
    ) -> None:
        self._task_store = task_store
        self._event_log = event_log
        self._permissions = permissions

    async def run(
        self,
        action: TransitionAction,
        ctx: TaskContext,
        user_id: str,
        *,
        reason: str | None = None,
    ) -> OperationOutcome:
        """按 action 分派到对应操作"""
        if action == TransitionAction.START:
            return await self.start(ctx, user_id)
        if action == TransitionAction.REVERT_TO_TODO:
            return await self.revert_to_todo(ctx, user_id)
        if action == TransitionAction.SUBMIT_REVIEW:
            return await self.submit_for_review(ctx, user_id)
        if action == TransitionAction.COMPLETE:
            return await self.complete_direct(ctx, user_id)
        if action == TransitionAction.REJECT:
            return await self.reject(ctx, user_id, reason)
        if action == TransitionAction.APPROVE:
            return await self.approve(ctx, user_id)
        if action == TransitionAction.REOPEN:
            return await self.reopen(ctx, user_id)
        raise ValueError(f"未知的状态操作: {action}")

    # ------------------------------------------------------------------
    # 各操作
    # ------------------------------------------------------------------

    async def start(self, ctx: TaskContext, user_id: str) -> OperationOutcome:
        """开始任务 todo → in_progress"""
        self._require_status(ctx, TaskStatus.TODO, "只有待办任务可以开始")
        await self._require_operator(
            ctx, user_id, "只有任务负责人或创建者可以开始任务"
        )
        return await self._apply(
            ctx, user_id, TaskStatus.IN_PROGRESS, TransitionAction.START, prefix="开始任务："
        )

    async def revert_to_todo(self, ctx: TaskContext, user_id: str) -> OperationOutcome:
        """退回待办 in_progress → todo

        只需要编辑权限（由调用方检查），不额外限制执行人。
        """
        self._require_status(ctx, TaskStatus.IN_PROGRESS, "只有进行中的任务可以退回待办")
        return await self._apply(
            ctx, user_id, TaskStatus.TODO, TransitionAction.REVERT_TO_TODO
        )

    async def submit_for_review(self, ctx: TaskContext, user_id: str) -> OperationOutcome:
        """提交审核 in_progress → review，通知项目负责人"""
        self._require_status(ctx, TaskStatus.IN_PROGRESS, "只有进行中的任务才能提交审核")
        depth = await task_depth(self._task_store, ctx.task)
        if depth > 1:
            raise SubtaskNoReviewError(details={"task_id": ctx.task.task_id, "depth": depth})
        await self._require_operator(ctx, user_id, "只有任务负责人才能提交审核")

        outcome = await self._apply(
            ctx, user_id, TaskStatus.REVIEW, TransitionAction.SUBMIT_REVIEW, prefix="提交审核："
        )
        for leader_id in _leader_ids(ctx):
            if leader_id == user_id:
                continue
            outcome.notifications.append(
                Notification(
                    user_id=leader_id,
                    type=NotificationType.TASK_REVIEW_REQUEST,
                    title="任务待审核",
                    message=f"任务「{ctx.task.title}」已提交审核，请及时处理",
                    task_id=ctx.task.task_id,
                    project_id=ctx.task.project_id,
                )
            )
        return outcome

    async def complete_direct(self, ctx: TaskContext, user_id: str) -> OperationOutcome:
        """直接完成 in_progress → done（审核是可选的）"""
        self._require_status(ctx, TaskStatus.IN_PROGRESS, "只有进行中的任务可以完成")
        await self._require_operator(
            ctx, user_id, "只有任务负责人或创建者可以完成任务"
        )
        return await self._apply(
            ctx, user_id, TaskStatus.DONE, TransitionAction.COMPLETE, prefix="直接完成任务："
        )

    async def reject(
        self,
        ctx: TaskContext,
        user_id: str,
        reason: str | None = None,
    ) -> OperationOutcome:
        """审核不通过 review → in_progress，通知任务负责人"""
        self._require_status(ctx, TaskStatus.REVIEW, "只有审核中的任务才能退回修改")
        await self._require_reviewer(ctx, user_id, "只有项目负责人或管理员才能退回任务")

        reason = reason or None
        outcome = await self._apply(
            ctx,
            user_id,
            TaskStatus.IN_PROGRESS,
            TransitionAction.REJECT,
            prefix="审核不通过：",
            reject_reason=reason,
        )
        suffix = f"，原因：{reason}" if reason else ""
        self._notify_assignee(
            outcome,
            ctx,
            user_id,
            NotificationType.TASK_REJECTED,
            "任务审核不通过",
            f"您的任务「{ctx.task.title}」审核不通过{suffix}，请修改后重新提交",
        )
        return outcome

    async def approve(self, ctx: TaskContext, user_id: str) -> OperationOutcome:
        """审核通过 review → done，通知任务负责人"""
        self._require_status(ctx, TaskStatus.REVIEW, "只有审核中的任务才能审核通过")
        await self._require_reviewer(ctx, user_id, "只有项目负责人或管理员才能审核任务")

        outcome = await self._apply(
            ctx, user_id, TaskStatus.DONE, TransitionAction.APPROVE, prefix="审核通过："
        )
        self._notify_assignee(
            outcome,
            ctx,
            user_id,
            NotificationType.TASK_APPROVED,
            "任务审核通过",
            f"您的任务「{ctx.task.title}」已审核通过",
        )
        return outcome

    async def reopen(self, ctx: TaskContext, user_id: str) -> OperationOutcome:
        """重新打开 done → in_progress"""
        self._require_status(ctx, TaskStatus.DONE, "只有已完成的任务可以重新打开")
        if not await self._permissions.can_operate(ctx, user_id, allow_creator=False):
            raise ForbiddenError("只有任务负责人或管理员可以重新打开任务")
        return await self._apply(
            ctx, user_id, TaskStatus.IN_PROGRESS, TransitionAction.REOPEN, prefix="重新打开任务："
        )

    # ------------------------------------------------------------------
    # 内部辅助
    # ------------------------------------------------------------------

    @staticmethod
    def _require_status(ctx: TaskContext, expected: TaskStatus, message: str) -> None:
        current = ctx.task.status
        if current != expected:
            raise InvalidTransitionError(
                message,
                details={
                    "task_id": ctx.task.task_id,
                    "current": current.value,
                    "expected": expected.value,
                },
            )

    async def _require_operator(self, ctx: TaskContext, user_id: str, message: str) -> None:
        if not await self._permissions.can_operate(ctx, user_id):
            raise ForbiddenError(message)

    async def _require_reviewer(self, ctx: TaskContext, user_id: str, message: str) -> None:
        if not await self._permissions.can_review(ctx, user_id):
            raise ForbiddenError(message)

    async def _apply(
        self,
        ctx: TaskContext,
        user_id: str,
        new_status: TaskStatus,
        action: TransitionAction,
        *,
        prefix: str = "",
        reject_reason: str | None = None,
    ) -> OperationOutcome:
        old_status = ctx.task.status
        updated = await write_status(
            self._task_store,
            self._event_log,
            ctx.task,
            new_status,
            user_id,
            prefix=prefix,
            action=action,
            reject_reason=reject_reason,
        )
        return OperationOutcome(task=updated, old_status=old_status, action=action)

    @staticmethod
    def _notify_assignee(
        outcome: OperationOutcome,
        ctx: TaskContext,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
    ) -> None:
        assignee_id = ctx.task.assignee_id
        if not assignee_id or assignee_id == user_id:
            return
        outcome.notifications.append(
            Notification(
                user_id=assignee_id,
                type=notification_type,
                title=title,
                message=message,
                task_id=ctx.task.task_id,
                project_id=ctx.task.project_id,
            )
        )


def _leader_ids(ctx: TaskContext) -> list[str]:
    """审核通知接收人：项目 leader_id，未设置时取 is_leader 成员"""
    if ctx.project.leader_id:
        return [ctx.project.leader_id]
    return [m.user_id for m in ctx.project_members if m.is_leader]
