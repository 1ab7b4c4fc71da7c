"""权限解析 -- 工作区角色 + 项目负责人 + 任务负责人/创建者

编辑权限按顺序判断，首个命中的规则生效：
1. owner / director / manager：可以编辑工作区内所有任务
2. 项目负责人：可以编辑项目内所有任务
3. observer（或非成员）：无编辑/创建权限
4. 创建任务时，member 可以创建
5. 编辑任务时，member 只能编辑自己创建或被分配的任务
6. 其他情况拒绝

删除权限严格窄于编辑权限：只有管理层和项目负责人可以删除，
任务创建者和普通 member 即使是自己创建的任务也不能删除。
"""

import structlog

from ..errors import (
    CannotAssignToObserverError,
    ForbiddenError,
    MemberCannotAssignOthersError,
)
from ..models.enums import ADMIN_ROLES, WorkspaceRole
from ..models.project import Project, ProjectMember, is_project_leader
from ..models.task import Task, TaskContext
from ..store.protocols import MembershipLookup

log = structlog.get_logger()


class PermissionResolver:
    """计算查看/编辑/删除/审核/状态操作权限"""

    def __init__(self, memberships: MembershipLookup) -> None:
        self._memberships = memberships

    async def role_of(self, workspace_id: str, user_id: str) -> WorkspaceRole | None:
        return await self._memberships.get_user_role(workspace_id, user_id)

    async def is_admin_tier(self, workspace_id: str, user_id: str) -> bool:
        return await self._memberships.has_any_role(workspace_id, user_id, ADMIN_ROLES)

    # ------------------------------------------------------------------
    # 查看
    # ------------------------------------------------------------------

    async def can_view(self, workspace_id: str, user_id: str) -> bool:
        """所有工作区角色（含 observer）都可以查看"""
        return await self.role_of(workspace_id, user_id) is not None

    async def require_view(self, workspace_id: str, user_id: str) -> None:
        if not await self.can_view(workspace_id, user_id):
            raise ForbiddenError("您不是该工作区成员")

    # ------------------------------------------------------------------
    # 编辑 / 创建
    # ------------------------------------------------------------------

    async def can_edit(
        self,
        project: Project,
        members: list[ProjectMember],
        user_id: str,
        task: Task | None = None,
        *,
        is_creating: bool = False,
    ) -> bool:
        """检查用户是否有任务编辑（或创建）权限"""
        role = await self.role_of(project.workspace_id, user_id)

        if role is not None and role.is_admin_tier:
            return True

        if is_project_leader(project, members, user_id):
            return True

        if role is None or role == WorkspaceRole.OBSERVER:
            return False

        if is_creating and role == WorkspaceRole.MEMBER:
            return True

        if task is not None and role == WorkspaceRole.MEMBER:
            return user_id in (task.creator_id, task.assignee_id)

        return False

    async def can_edit_task(self, ctx: TaskContext, user_id: str) -> bool:
        return await self.can_edit(ctx.project, ctx.project_members, user_id, ctx.task)

    async def require_edit_task(
        self,
        ctx: TaskContext,
        user_id: str,
        message: str = "没有权限编辑任务",
    ) -> None:
        if not await self.can_edit_task(ctx, user_id):
            log.info(
                "permission_denied",
                check="edit",
                task_id=ctx.task.task_id,
                user_id=user_id,
            )
            raise ForbiddenError(message)

    # ------------------------------------------------------------------
    # 删除 / 审核 / 具体状态操作
    # ------------------------------------------------------------------

    async def can_delete(self, ctx: TaskContext, user_id: str) -> bool:
        """删除权限：管理层、项目 leader_id、标记为 is_leader 的项目成员"""
        if ctx.is_project_leader(user_id):
            return True
        return await self.is_admin_tier(ctx.workspace_id, user_id)

    async def can_review(self, ctx: TaskContext, user_id: str) -> bool:
        """审核（通过/退回）权限：项目负责人或管理层"""
        if ctx.is_project_leader(user_id):
            return True
        return await self.is_admin_tier(ctx.workspace_id, user_id)

    async def can_operate(
        self,
        ctx: TaskContext,
        user_id: str,
        *,
        allow_creator: bool = True,
    ) -> bool:
        """开始/提交审核/直接完成/重新打开等具体操作的执行人检查

        任务负责人、项目负责人、管理层总是可以；
        allow_creator=True 时任务创建者也可以。
        """
        task = ctx.task
        if task.assignee_id == user_id:
            return True
        if allow_creator and task.creator_id == user_id:
            return True
        if ctx.is_project_leader(user_id):
            return True
        return await self.is_admin_tier(ctx.workspace_id, user_id)

    # ------------------------------------------------------------------
    # 分配约束
    # ------------------------------------------------------------------

    async def ensure_assignable(self, workspace_id: str, assignee_id: str) -> None:
        """被分配者不能是 observer"""
        role = await self.role_of(workspace_id, assignee_id)
        if role == WorkspaceRole.OBSERVER:
            raise CannotAssignToObserverError()

    async def resolve_create_assignee(
        self,
        workspace_id: str,
        user_id: str,
        requested_assignee_id: str | None,
    ) -> str | None:
        """计算新任务的最终负责人

        member 创建任务时只能分配给自己：未指定则自动成为负责人，
        指定他人则拒绝。
        """
        role = await self.role_of(workspace_id, user_id)
        assignee_id = requested_assignee_id or None

        if role == WorkspaceRole.MEMBER:
            if assignee_id is not None and assignee_id != user_id:
                raise MemberCannotAssignOthersError()
            assignee_id = user_id

        if assignee_id is not None:
            await self.ensure_assignable(workspace_id, assignee_id)
        return assignee_id

    async def check_update_assignee(
        self,
        ctx: TaskContext,
        user_id: str,
        new_assignee_id: str | None,
    ) -> None:
        """更新负责人时的约束

        member 只能分配给自己、保持原负责人或清空。
        """
        role = await self.role_of(ctx.workspace_id, user_id)
        if role == WorkspaceRole.MEMBER and new_assignee_id is not None:
            if new_assignee_id not in (user_id, ctx.task.assignee_id):
                raise MemberCannotAssignOthersError("您没有权限将任务分配给他人")

        if new_assignee_id is not None:
            await self.ensure_assignable(ctx.workspace_id, new_assignee_id)
