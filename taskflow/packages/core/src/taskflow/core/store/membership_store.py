"""成员关系存储 -- 工作区角色查询 + 项目/项目成员

角色在读取时规范化（兼容旧角色代码），未知角色视为无成员资格。
"""

import aiosqlite
import structlog

from ..models.enums import WorkspaceRole, parse_role
from ..models.project import Project, ProjectMember, WorkspaceMember

log = structlog.get_logger()


class SqliteMembershipStore:
    """工作区成员资格查询（MembershipLookup 的 SQLite 实现）"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def add_member(self, workspace_id: str, user_id: str, role: str) -> None:
        """写入或覆盖成员角色"""
        await self._conn.execute(
            """
            INSERT INTO workspace_members (workspace_id, user_id, role)
            VALUES (?, ?, ?)
            ON CONFLICT (workspace_id, user_id) DO UPDATE SET role = excluded.role
            """,
            (workspace_id, user_id, role),
        )

    async def get_membership(
        self, workspace_id: str, user_id: str
    ) -> WorkspaceMember | None:
        """查询成员资格"""
        cursor = await self._conn.execute(
            "SELECT role FROM workspace_members WHERE workspace_id = ? AND user_id = ?",
            (workspace_id, user_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        role = parse_role(row["role"])
        if role is None:
            log.warning(
                "unknown_workspace_role",
                workspace_id=workspace_id,
                user_id=user_id,
                role=row["role"],
            )
            return None
        return WorkspaceMember(workspace_id=workspace_id, user_id=user_id, role=role)

    async def get_user_role(self, workspace_id: str, user_id: str) -> WorkspaceRole | None:
        """查询用户在工作区的角色，非成员返回 None"""
        membership = await self.get_membership(workspace_id, user_id)
        return membership.role if membership else None

    async def has_any_role(
        self,
        workspace_id: str,
        user_id: str,
        roles: frozenset[WorkspaceRole] | set[WorkspaceRole] | list[WorkspaceRole],
    ) -> bool:
        """用户角色是否在给定集合内"""
        role = await self.get_user_role(workspace_id, user_id)
        return role is not None and role in roles


class SqliteProjectStore:
    """项目与项目成员存储"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_project(self, project: Project) -> None:
        """创建项目"""
        await self._conn.execute(
            """
            INSERT INTO projects (project_id, workspace_id, name, leader_id)
            VALUES (?, ?, ?, ?)
            """,
            (project.project_id, project.workspace_id, project.name, project.leader_id),
        )

    async def add_member(self, member: ProjectMember) -> None:
        """写入或覆盖项目成员"""
        await self._conn.execute(
            """
            INSERT INTO project_members (project_id, user_id, is_leader)
            VALUES (?, ?, ?)
            ON CONFLICT (project_id, user_id) DO UPDATE SET is_leader = excluded.is_leader
            """,
            (member.project_id, member.user_id, int(member.is_leader)),
        )

    async def find_project(self, project_id: str) -> Project | None:
        """根据 project_id 查询项目"""
        cursor = await self._conn.execute(
            "SELECT * FROM projects WHERE project_id = ?",
            (project_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Project(
            project_id=row["project_id"],
            workspace_id=row["workspace_id"],
            name=row["name"],
            leader_id=row["leader_id"],
        )

    async def find_members(self, project_id: str) -> list[ProjectMember]:
        """查询项目成员，负责人在前"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM project_members WHERE project_id = ?
            ORDER BY is_leader DESC, user_id ASC
            """,
            (project_id,),
        )
        return [
            ProjectMember(
                project_id=row["project_id"],
                user_id=row["user_id"],
                is_leader=bool(row["is_leader"]),
            )
            for row in await cursor.fetchall()
        ]
