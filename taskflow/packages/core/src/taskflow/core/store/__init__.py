"""taskflow Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from contextlib import AbstractAsyncContextManager
from pathlib import Path

import aiosqlite

from .event_store import SqliteEventStore
from .membership_store import SqliteMembershipStore, SqliteProjectStore
from .sqlite_init import connect, init_db
from .task_store import SqliteTaskStore
from .transaction import savepoint, unit_of_work


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接和写事务锁"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.task_store = SqliteTaskStore(conn)
        self.event_store = SqliteEventStore(conn)
        self.membership_store = SqliteMembershipStore(conn)
        self.project_store = SqliteProjectStore(conn)
        self._write_lock = asyncio.Lock()

    def unit_of_work(self) -> AbstractAsyncContextManager[aiosqlite.Connection]:
        """开启一个原子写事务（同连接上串行执行）"""
        return unit_of_work(self.conn, self._write_lock)

    def savepoint(self, name: str) -> AbstractAsyncContextManager[None]:
        """在当前事务内开启保存点"""
        return savepoint(self.conn, name)

    async def close(self) -> None:
        await self.conn.close()


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await connect(db_path)
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteEventStore",
    "SqliteMembershipStore",
    "SqliteProjectStore",
    "connect",
    "init_db",
    "unit_of_work",
    "savepoint",
]
