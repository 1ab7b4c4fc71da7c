"""Store Protocol 接口定义

定义引擎消费的外部协作方接口（持久化、成员角色查询、通知投递），
使用 Python Protocol 实现结构化子类型（duck typing）。
SQLite 实现见同包其他模块；宿主系统可替换为任意满足协议的实现。
"""

from typing import Any, Protocol

from ..models.enums import TaskStatus, WorkspaceRole
from ..models.event import TaskEvent
from ..models.notification import Notification
from ..models.project import Project, ProjectMember, WorkspaceMember
from ..models.task import Task, TaskContext


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        ...

    async def find_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def find_task_with_relations(self, task_id: str) -> TaskContext | None:
        """查询任务详情（含项目、父任务、子任务）"""
        ...

    async def update_task(self, task_id: str, patch: dict[str, Any]) -> None:
        """按字段更新任务"""
        ...

    async def delete_task(self, task_id: str) -> None:
        """硬删除单个任务"""
        ...

    async def find_children(self, parent_id: str) -> list[Task]:
        """查询直接子任务"""
        ...

    async def find_descendants(self, task_id: str) -> list[Task]:
        """查询所有后代任务（传递闭包）"""
        ...

    async def list_root_tasks(
        self,
        project_id: str,
        status: TaskStatus | None = None,
        assignee_id: str | None = None,
    ) -> list[Task]:
        """查询项目下的顶级任务"""
        ...

    async def count_by_status(self, project_id: str) -> dict[TaskStatus, int]:
        """按状态统计项目任务数"""
        ...


class EventStore(Protocol):
    """TaskEvent 存储接口

    事件表 append-only：只允许插入，不允许更新或删除。
    """

    async def create_event(self, event: TaskEvent) -> None:
        """追加事件（append-only）"""
        ...

    async def find_events(self, task_id: str, limit: int | None = None) -> list[TaskEvent]:
        """查询指定任务的事件，最新的在前"""
        ...


class MembershipLookup(Protocol):
    """工作区成员角色查询接口"""

    async def get_membership(
        self, workspace_id: str, user_id: str
    ) -> WorkspaceMember | None:
        """查询成员资格"""
        ...

    async def get_user_role(self, workspace_id: str, user_id: str) -> WorkspaceRole | None:
        """查询角色，非成员返回 None"""
        ...

    async def has_any_role(
        self,
        workspace_id: str,
        user_id: str,
        roles: frozenset[WorkspaceRole] | set[WorkspaceRole] | list[WorkspaceRole],
    ) -> bool:
        """用户角色是否在给定集合内"""
        ...


class ProjectStore(Protocol):
    """项目存储接口"""

    async def find_project(self, project_id: str) -> Project | None:
        """根据 project_id 查询项目"""
        ...

    async def find_members(self, project_id: str) -> list[ProjectMember]:
        """查询项目成员"""
        ...


class Notifier(Protocol):
    """通知投递接口 -- 由引擎以 fire-and-forget 方式调用"""

    async def notify(self, notification: Notification) -> None:
        """投递一条通知"""
        ...
