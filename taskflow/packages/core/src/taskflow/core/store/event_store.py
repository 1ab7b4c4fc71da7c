"""EventStore SQLite 实现

事件表 append-only：只允许插入，不允许更新或删除。
event_id 为 ULID；同一任务内按写入顺序（rowid）排序。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import TaskEventType
from ..models.event import TaskEvent


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_event(self, event: TaskEvent) -> None:
        """追加事件（append-only）

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            INSERT INTO task_events (event_id, task_id, actor_id, type, payload, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.task_id,
                event.actor_id,
                event.type.value,
                json.dumps(event.payload, ensure_ascii=False, default=str),
                event.created_at.isoformat(),
            ),
        )

    async def find_events(self, task_id: str, limit: int | None = None) -> list[TaskEvent]:
        """查询指定任务的事件，最新的在前"""
        sql = "SELECT * FROM task_events WHERE task_id = ? ORDER BY rowid DESC"
        params: tuple = (task_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (task_id, limit)
        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def all_events(self) -> list[TaskEvent]:
        """查询所有事件，按 task_id 和时间正序（用于一致性诊断）"""
        cursor = await self._conn.execute(
            "SELECT * FROM task_events ORDER BY task_id, rowid ASC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> TaskEvent:
        """将数据库行转换为 TaskEvent 模型"""
        payload = json.loads(row["payload"]) if row["payload"] else {}
        return TaskEvent(
            event_id=row["event_id"],
            task_id=row["task_id"],
            actor_id=row["actor_id"],
            type=TaskEventType(row["type"]),
            payload=payload,
            created_at=datetime.fromisoformat(row["created_at"]),
        )
