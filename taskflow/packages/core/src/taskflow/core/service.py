"""TaskService -- 任务生命周期业务入口

组合 PermissionResolver、EventLog、TaskOperations、CascadeEngine、
TransitionOrchestrator 与 BatchCoordinator，对外暴露：
- 任务创建 / 非状态字段更新 / 删除
- 智能状态转换与各个规范状态操作
- 批量完成 / 批量删除
- 详情、列表、事件历史、统计等只读查询

每个写操作在一个 unit of work 内原子提交，通知在提交后异步投递。
"""

from datetime import UTC, datetime

import structlog
from ulid import ULID

from .config import MAX_TASK_DEPTH, WorkflowConfig, load_workflow_config
from .errors import (
    ErrorCode,
    ForbiddenError,
    InvalidInitialStatusError,
    InvalidParentError,
    InvalidPriorityError,
    InvalidStatusError,
    MaxDepthExceededError,
    MissingFieldsError,
    NotFoundError,
    UseStatusEndpointError,
    project_not_found,
    task_not_found,
)
from .models.enums import (
    TaskEventType,
    TaskPriority,
    TaskStatus,
    TransitionAction,
    parse_priority,
    parse_status,
)
from .models.event import TaskEvent
from .models.payloads import TaskCreatedPayload, TaskUpdatedPayload
from .models.project import Project
from .models.results import (
    BatchCompleteResult,
    BatchDeleteResult,
    DeleteResult,
    TaskView,
    TransitionResult,
)
from .models.task import Task, TaskContext, TaskCreate, TaskUpdate
from .notifications import NotificationDispatcher
from .store import StoreGroup
from .store.protocols import Notifier
from .workflow.batch import BatchCoordinator
from .workflow.cascade import CascadeEngine
from .workflow.event_log import EventLog
from .workflow.hierarchy import is_subtask, leaf_first, task_depth
from .workflow.operations import TaskOperations
from .workflow.orchestrator import TransitionOrchestrator
from .workflow.permissions import PermissionResolver
from .workflow.state_machine import StateMachine

log = structlog.get_logger()

# updated 事件中的字段名
_FIELD_LABELS: dict[str, str] = {
    "title": "标题",
    "description": "描述",
    "priority": "优先级",
    "assignee_id": "负责人",
    "due_date": "截止日期",
}


class TaskService:
    """任务业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier | None = None,
        *,
        config: WorkflowConfig | None = None,
    ) -> None:
        self._stores = store_group
        self._config = config or load_workflow_config()
        self._state_machine = StateMachine()
        self._permissions = PermissionResolver(store_group.membership_store)
        self._event_log = EventLog(store_group.event_store, self._config.event_history_limit)
        self._operations = TaskOperations(
            store_group.task_store, self._event_log, self._permissions
        )
        self._cascade = CascadeEngine(store_group.task_store, self._event_log)
        self._dispatcher = NotificationDispatcher(notifier)
        self._orchestrator = TransitionOrchestrator(
            store_group,
            self._permissions,
            self._operations,
            self._cascade,
            self._dispatcher,
            self._state_machine,
        )
        self._batch = BatchCoordinator(store_group, self._orchestrator, self._permissions)

    @property
    def permissions(self) -> PermissionResolver:
        return self._permissions

    @property
    def cascade(self) -> CascadeEngine:
        return self._cascade

    async def drain_notifications(self) -> None:
        """等待已调度的通知全部投递完毕"""
        await self._dispatcher.drain()

    # ------------------------------------------------------------------
    # 创建 / 更新 / 删除
    # ------------------------------------------------------------------

    async def create_task(self, user_id: str, data: TaskCreate) -> Task:
        """创建任务

        规则：
        - member 创建任务时自动成为负责人，不能分配给他人
        - observer 不能创建任务，也不能被分配任务
        - 新任务状态必须为 todo
        - 父任务必须存在、属于同一项目，且层级小于 3

        Raises:
            MissingFieldsError: 缺少项目或标题
            NotFoundError: 项目或父任务不存在
            ForbiddenError: 没有创建权限
        """
        title = data.title.strip()
        if not data.project_id or not title:
            raise MissingFieldsError("项目和任务标题不能为空")

        async with self._stores.unit_of_work():
            project = await self._stores.project_store.find_project(data.project_id)
            if project is None:
                raise project_not_found(data.project_id)
            members = await self._stores.project_store.find_members(project.project_id)

            if not await self._permissions.can_edit(
                project, members, user_id, is_creating=True
            ):
                log.info(
                    "permission_denied",
                    check="create",
                    project_id=project.project_id,
                    user_id=user_id,
                )
                raise ForbiddenError("没有权限创建任务")

            assignee_id = await self._permissions.resolve_create_assignee(
                project.workspace_id, user_id, data.assignee_id
            )

            if data.status is not None and parse_status(data.status) != TaskStatus.TODO:
                raise InvalidInitialStatusError(details={"status": data.status})

            priority = TaskPriority.MEDIUM
            if data.priority:
                parsed = parse_priority(data.priority)
                if parsed is None:
                    raise InvalidPriorityError(f"无效的优先级: {data.priority}")
                priority = parsed

            parent_id = data.parent_id or None
            if parent_id is not None:
                await self._check_parent(project, parent_id)

            now = datetime.now(UTC)
            task = Task(
                task_id=str(ULID()),
                project_id=project.project_id,
                title=title,
                description=data.description,
                status=TaskStatus.TODO,
                priority=priority,
                parent_id=parent_id,
                assignee_id=assignee_id,
                creator_id=user_id,
                due_date=data.due_date,
                created_at=now,
                updated_at=now,
            )
            await self._stores.task_store.create_task(task)
            await self._event_log.append(
                task.task_id,
                user_id,
                TaskEventType.CREATED,
                TaskCreatedPayload(
                    description=f"创建了任务「{task.title}」",
                    title=task.title,
                    parent_id=task.parent_id,
                ),
            )

        log.info(
            "task_created",
            task_id=task.task_id,
            project_id=task.project_id,
            parent_id=task.parent_id,
            creator_id=user_id,
        )
        return task

    async def update_task_fields(self, user_id: str, task_id: str, data: TaskUpdate) -> Task:
        """更新非状态字段（标题、描述、优先级、负责人、截止日期）

        只有实际发生变化时才写入 updated 事件。

        Raises:
            UseStatusEndpointError: 试图通过此接口修改状态
        """
        fields = data.model_fields_set

        async with self._stores.unit_of_work():
            ctx = await self._load(task_id)
            task = ctx.task
            await self._permissions.require_edit_task(ctx, user_id)

            if "status" in fields and data.status is not None:
                requested = parse_status(data.status)
                if requested is None:
                    raise InvalidStatusError(f"无效的状态: {data.status}")
                if requested != task.status:
                    raise UseStatusEndpointError()

            patch: dict = {}

            if "title" in fields and data.title is not None:
                title = data.title.strip()
                if not title:
                    raise MissingFieldsError("任务标题不能为空")
                if title != task.title:
                    patch["title"] = title

            if "description" in fields and data.description is not None:
                if data.description != task.description:
                    patch["description"] = data.description

            if "priority" in fields and data.priority is not None:
                priority = parse_priority(data.priority)
                if priority is None:
                    raise InvalidPriorityError(f"无效的优先级: {data.priority}")
                if priority != task.priority:
                    patch["priority"] = priority

            if "assignee_id" in fields:
                assignee_id = data.assignee_id or None
                await self._permissions.check_update_assignee(ctx, user_id, assignee_id)
                if assignee_id != task.assignee_id:
                    patch["assignee_id"] = assignee_id

            if "due_date" in fields and data.due_date != task.due_date:
                patch["due_date"] = data.due_date

            if not patch:
                return task

            changed = [name for name in _FIELD_LABELS if name in patch]
            patch["updated_at"] = datetime.now(UTC)
            await self._stores.task_store.update_task(task_id, patch)
            await self._event_log.append(
                task_id,
                user_id,
                TaskEventType.UPDATED,
                TaskUpdatedPayload(
                    description="更新了" + "、".join(_FIELD_LABELS[n] for n in changed),
                    changed_fields=changed,
                ),
            )

        log.info("task_updated", task_id=task_id, changed_fields=changed)
        return task.model_copy(update=patch)

    async def delete_task(self, user_id: str, task_id: str) -> DeleteResult:
        """删除任务及其全部后代（叶子优先）

        权限：管理层、项目负责人。创建者本身不足以删除。
        事件记录不会随任务一起删除。
        """
        async with self._stores.unit_of_work():
            ctx = await self._load(task_id)
            if not await self._permissions.can_delete(ctx, user_id):
                log.info("permission_denied", check="delete", task_id=task_id, user_id=user_id)
                raise ForbiddenError("只有项目负责人或管理员可以删除任务")

            descendants = await self._stores.task_store.find_descendants(task_id)
            for task in leaf_first([ctx.task, *descendants]):
                await self._stores.task_store.delete_task(task.task_id)

        log.info(
            "task_deleted",
            task_id=task_id,
            user_id=user_id,
            subtask_count=len(descendants),
        )
        return DeleteResult(deleted_count=1 + len(descendants), subtask_count=len(descendants))

    # ------------------------------------------------------------------
    # 状态转换
    # ------------------------------------------------------------------

    async def resolve_smart_transition(
        self,
        user_id: str,
        task_id: str,
        requested_status: str | TaskStatus,
    ) -> TransitionResult:
        """智能状态转换：按用户选择的目标状态执行对应的规范操作"""
        return await self._orchestrator.resolve(user_id, task_id, requested_status)

    async def start(self, user_id: str, task_id: str) -> TransitionResult:
        return await self._orchestrator.execute(TransitionAction.START, user_id, task_id)

    async def submit_for_review(self, user_id: str, task_id: str) -> TransitionResult:
        return await self._orchestrator.execute(
            TransitionAction.SUBMIT_REVIEW, user_id, task_id
        )

    async def approve(self, user_id: str, task_id: str) -> TransitionResult:
        return await self._orchestrator.execute(TransitionAction.APPROVE, user_id, task_id)

    async def reject(
        self,
        user_id: str,
        task_id: str,
        reason: str | None = None,
    ) -> TransitionResult:
        return await self._orchestrator.execute(
            TransitionAction.REJECT, user_id, task_id, reason=reason
        )

    async def complete_direct(self, user_id: str, task_id: str) -> TransitionResult:
        return await self._orchestrator.execute(TransitionAction.COMPLETE, user_id, task_id)

    async def reopen(self, user_id: str, task_id: str) -> TransitionResult:
        return await self._orchestrator.execute(TransitionAction.REOPEN, user_id, task_id)

    # ------------------------------------------------------------------
    # 批量
    # ------------------------------------------------------------------

    async def batch_complete(self, user_id: str, task_ids: list[str]) -> BatchCompleteResult:
        return await self._batch.batch_complete(user_id, task_ids)

    async def batch_delete(self, user_id: str, task_ids: list[str]) -> BatchDeleteResult:
        return await self._batch.batch_delete(user_id, task_ids)

    # ------------------------------------------------------------------
    # 查询（所有工作区角色都可以查看）
    # ------------------------------------------------------------------

    async def get_task(self, user_id: str, task_id: str) -> TaskView:
        """获取任务详情及当前可选的目标状态"""
        ctx = await self._load(task_id)
        await self._permissions.require_view(ctx.workspace_id, user_id)
        return TaskView(
            task=ctx.task,
            available_transitions=await self._transitions_for(ctx.task),
        )

    async def get_available_transitions(self, user_id: str, task_id: str) -> list[TaskStatus]:
        """获取可转换的目标状态（子任务不包含审核中）"""
        ctx = await self._load(task_id)
        await self._permissions.require_view(ctx.workspace_id, user_id)
        return await self._transitions_for(ctx.task)

    async def get_events(
        self,
        user_id: str,
        task_id: str,
        limit: int | None = None,
    ) -> list[TaskEvent]:
        """获取任务事件历史，最新的在前"""
        ctx = await self._load(task_id)
        await self._permissions.require_view(ctx.workspace_id, user_id)
        return await self._event_log.history(task_id, limit)

    async def get_project_stats(self, user_id: str, project_id: str) -> dict[TaskStatus, int]:
        """项目任务状态统计，所有状态都有键"""
        project = await self._require_project(project_id)
        await self._permissions.require_view(project.workspace_id, user_id)
        return await self._stores.task_store.count_by_status(project_id)

    async def list_project_tasks(
        self,
        user_id: str,
        project_id: str,
        *,
        status: str | None = None,
        assignee_id: str | None = None,
    ) -> list[Task]:
        """项目顶级任务列表，按优先级、创建时间倒序"""
        project = await self._require_project(project_id)
        await self._permissions.require_view(project.workspace_id, user_id)

        status_filter = None
        if status:
            status_filter = parse_status(status)
            if status_filter is None:
                raise InvalidStatusError(f"无效的状态: {status}")

        return await self._stores.task_store.list_root_tasks(
            project_id, status=status_filter, assignee_id=assignee_id
        )

    async def get_subtask_count(self, task_id: str) -> int:
        """后代任务数量（删除确认时展示）"""
        return len(await self._stores.task_store.find_descendants(task_id))

    # ------------------------------------------------------------------
    # 内部辅助
    # ------------------------------------------------------------------

    async def _load(self, task_id: str) -> TaskContext:
        ctx = await self._stores.task_store.find_task_with_relations(task_id)
        if ctx is None:
            raise task_not_found(task_id)
        return ctx

    async def _require_project(self, project_id: str) -> Project:
        project = await self._stores.project_store.find_project(project_id)
        if project is None:
            raise project_not_found(project_id)
        return project

    async def _check_parent(self, project: Project, parent_id: str) -> None:
        parent = await self._stores.task_store.find_task(parent_id)
        if parent is None:
            raise NotFoundError(
                "父任务不存在",
                code=ErrorCode.PARENT_TASK_NOT_FOUND,
                details={"parent_id": parent_id},
            )
        if parent.project_id != project.project_id:
            raise InvalidParentError("子任务必须与父任务属于同一项目")
        parent_depth = await task_depth(self._stores.task_store, parent)
        if parent_depth >= MAX_TASK_DEPTH:
            raise MaxDepthExceededError(details={"parent_depth": parent_depth})

    async def _transitions_for(self, task: Task) -> list[TaskStatus]:
        available = self._state_machine.available_transitions(task.status)
        if is_subtask(task):
            available = available - {TaskStatus.REVIEW}
        return [status for status in TaskStatus if status in available]
