"""事务封装 -- unit of work 与 savepoint

每个顶层操作（单次状态转换、批量中的单项）在一个 unit of work 内原子提交：
状态变更、事件写入和同次调用内的状态联动要么全部提交，要么全部回滚。
状态联动在 savepoint 内执行，失败时只回滚联动部分。

同一连接上的所有 unit of work 由连接级 asyncio.Lock 串行化，
以此关闭同一任务上"读取-判断-写入"的竞态，并避免重叠子树上的联动交错。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite


@asynccontextmanager
async def unit_of_work(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[aiosqlite.Connection]:
    """在同一事务内执行一组写操作

    Args:
        conn: autocommit 模式的数据库连接
        lock: 串行化写事务的连接级锁

    Raises:
        Exception: 事务体内的任何异常都会触发回滚并原样抛出
    """
    async with lock:
        await conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            await conn.execute("ROLLBACK")
            raise
        else:
            await conn.execute("COMMIT")


@asynccontextmanager
async def savepoint(conn: aiosqlite.Connection, name: str) -> AsyncIterator[None]:
    """在当前事务内开启可单独回滚的保存点

    Args:
        conn: 已处于事务中的数据库连接
        name: 保存点名称（仅字母/下划线）
    """
    if not name.replace("_", "").isalpha():
        raise ValueError(f"非法的 savepoint 名称: {name}")
    await conn.execute(f"SAVEPOINT {name}")
    try:
        yield
    except BaseException:
        await conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
        await conn.execute(f"RELEASE SAVEPOINT {name}")
        raise
    else:
        await conn.execute(f"RELEASE SAVEPOINT {name}")
