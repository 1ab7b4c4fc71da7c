"""TaskStore SQLite 实现

tasks 表是以 parent_id 反向引用组成的扁平任务树。
此处仅提供数据库操作，事务边界由调用方（unit of work）管理。
"""

from collections import deque
from datetime import datetime
from enum import Enum
from typing import Any

import aiosqlite

from ..config import MAX_TASK_DEPTH
from ..models.enums import TaskStatus
from ..models.project import Project, ProjectMember
from ..models.task import Task, TaskContext, TaskSummary

# 允许通过 update_task 修改的列
_UPDATABLE_COLUMNS = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "assignee_id",
        "due_date",
        "completed_at",
        "updated_at",
    }
)

# 优先级排序（critical 最高）
_PRIORITY_ORDER_SQL = (
    "CASE priority WHEN 'critical' THEN 3 WHEN 'high' THEN 2 "
    "WHEN 'medium' THEN 1 ELSE 0 END"
)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            """
            INSERT INTO tasks (task_id, project_id, title, description, status,
                               priority, parent_id, assignee_id, creator_id,
                               due_date, completed_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.project_id,
                task.title,
                task.description,
                task.status.value,
                task.priority.value,
                task.parent_id,
                task.assignee_id,
                task.creator_id,
                _to_iso(task.due_date),
                _to_iso(task.completed_at),
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ),
        )

    async def find_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def find_task_with_relations(self, task_id: str) -> TaskContext | None:
        """查询任务详情（含项目、项目成员、父任务、直接子任务）"""
        task = await self.find_task(task_id)
        if task is None:
            return None

        cursor = await self._conn.execute(
            "SELECT * FROM projects WHERE project_id = ?",
            (task.project_id,),
        )
        project_row = await cursor.fetchone()
        if project_row is None:
            return None
        project = Project(
            project_id=project_row["project_id"],
            workspace_id=project_row["workspace_id"],
            name=project_row["name"],
            leader_id=project_row["leader_id"],
        )

        cursor = await self._conn.execute(
            "SELECT * FROM project_members WHERE project_id = ?",
            (task.project_id,),
        )
        members = [
            ProjectMember(
                project_id=row["project_id"],
                user_id=row["user_id"],
                is_leader=bool(row["is_leader"]),
            )
            for row in await cursor.fetchall()
        ]

        parent = None
        if task.parent_id:
            parent_task = await self.find_task(task.parent_id)
            if parent_task is not None:
                parent = _summary(parent_task)

        children = [_summary(child) for child in await self.find_children(task_id)]

        return TaskContext(
            task=task,
            project=project,
            project_members=members,
            parent=parent,
            children=children,
        )

    async def update_task(self, task_id: str, patch: dict[str, Any]) -> None:
        """按字段更新任务

        Raises:
            ValueError: patch 中包含不可更新的列
        """
        if not patch:
            return
        unknown = set(patch) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"不可更新的字段: {sorted(unknown)}")

        columns = sorted(patch)
        assignments = ", ".join(f"{col} = ?" for col in columns)
        values = [_to_db(patch[col]) for col in columns]
        await self._conn.execute(
            f"UPDATE tasks SET {assignments} WHERE task_id = ?",
            (*values, task_id),
        )

    async def delete_task(self, task_id: str) -> None:
        """硬删除单个任务（调用方需保证子任务已先删除）"""
        await self._conn.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))

    async def find_children(self, parent_id: str) -> list[Task]:
        """查询直接子任务，按创建时间正序"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE parent_id = ? ORDER BY created_at ASC, rowid ASC",
            (parent_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def find_descendants(self, task_id: str) -> list[Task]:
        """查询所有后代任务（传递闭包），广度优先顺序

        使用显式队列逐层展开，最多展开 MAX_TASK_DEPTH 层。
        """
        descendants: list[Task] = []
        seen: set[str] = {task_id}
        queue: deque[tuple[str, int]] = deque([(task_id, 1)])

        while queue:
            current_id, level = queue.popleft()
            if level >= MAX_TASK_DEPTH:
                continue
            for child in await self.find_children(current_id):
                if child.task_id in seen:
                    continue
                seen.add(child.task_id)
                descendants.append(child)
                queue.append((child.task_id, level + 1))

        return descendants

    async def list_root_tasks(
        self,
        project_id: str,
        status: TaskStatus | None = None,
        assignee_id: str | None = None,
    ) -> list[Task]:
        """查询项目下的顶级任务，按优先级、创建时间倒序"""
        clauses = ["project_id = ?", "parent_id IS NULL"]
        params: list[Any] = [project_id]
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if assignee_id is not None:
            clauses.append("assignee_id = ?")
            params.append(assignee_id)

        cursor = await self._conn.execute(
            f"""
            SELECT * FROM tasks
            WHERE {" AND ".join(clauses)}
            ORDER BY {_PRIORITY_ORDER_SQL} DESC, created_at DESC
            """,
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def count_by_status(self, project_id: str) -> dict[TaskStatus, int]:
        """按状态统计项目任务数，所有状态都有键"""
        counts = {status: 0 for status in TaskStatus}
        cursor = await self._conn.execute(
            "SELECT status, COUNT(*) FROM tasks WHERE project_id = ? GROUP BY status",
            (project_id,),
        )
        for row in await cursor.fetchall():
            counts[TaskStatus(row[0])] = row[1]
        return counts

    async def list_all_tasks(self) -> list[Task]:
        """查询所有任务（用于一致性诊断）"""
        cursor = await self._conn.execute("SELECT * FROM tasks ORDER BY created_at ASC")
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row["task_id"],
            project_id=row["project_id"],
            title=row["title"],
            description=row["description"],
            status=row["status"],
            priority=row["priority"],
            parent_id=row["parent_id"],
            assignee_id=row["assignee_id"],
            creator_id=row["creator_id"],
            due_date=_from_iso(row["due_date"]),
            completed_at=_from_iso(row["completed_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


def _summary(task: Task) -> TaskSummary:
    return TaskSummary(task_id=task.task_id, title=task.title, status=task.status)


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _to_db(value: Any) -> Any:
    """枚举/时间值转换为 SQLite 可存储的值"""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value
