"""SQLite 数据库初始化

PRAGMA 配置 + 表 DDL + 索引创建。
使用 aiosqlite 异步操作；连接以 autocommit 模式打开，事务由 unit of work 显式管理。
"""

import aiosqlite

# 工作区成员表 DDL
_WORKSPACE_MEMBERS_DDL = """
CREATE TABLE IF NOT EXISTS workspace_members (
    workspace_id  TEXT NOT NULL,
    user_id       TEXT NOT NULL,
    role          TEXT NOT NULL,

    PRIMARY KEY (workspace_id, user_id)
);
"""

# 项目表 DDL
_PROJECTS_DDL = """
CREATE TABLE IF NOT EXISTS projects (
    project_id    TEXT PRIMARY KEY,
    workspace_id  TEXT NOT NULL,
    name          TEXT NOT NULL DEFAULT '',
    leader_id     TEXT
);
"""

# 项目成员表 DDL
_PROJECT_MEMBERS_DDL = """
CREATE TABLE IF NOT EXISTS project_members (
    project_id  TEXT NOT NULL,
    user_id     TEXT NOT NULL,
    is_leader   INTEGER NOT NULL DEFAULT 0,

    PRIMARY KEY (project_id, user_id),
    FOREIGN KEY (project_id) REFERENCES projects(project_id)
);
"""

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id       TEXT PRIMARY KEY,
    project_id    TEXT NOT NULL,
    title         TEXT NOT NULL,
    description   TEXT NOT NULL DEFAULT '',
    status        TEXT NOT NULL DEFAULT 'todo',
    priority      TEXT NOT NULL DEFAULT 'medium',
    parent_id     TEXT,
    assignee_id   TEXT,
    creator_id    TEXT NOT NULL,
    due_date      TEXT,
    completed_at  TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,

    FOREIGN KEY (project_id) REFERENCES projects(project_id),
    FOREIGN KEY (parent_id) REFERENCES tasks(task_id),
    CHECK (status IN ('todo', 'in_progress', 'review', 'done')),
    CHECK ((status = 'done') = (completed_at IS NOT NULL))
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks(project_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_parent_id ON tasks(parent_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(project_id, status);",
]

# task_events 表 DDL
# 不设外键：任务被硬删除后审计记录仍保留
_TASK_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS task_events (
    event_id    TEXT PRIMARY KEY,
    task_id     TEXT NOT NULL,
    actor_id    TEXT NOT NULL,
    type        TEXT NOT NULL,
    payload     TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT NOT NULL
);
"""

_TASK_EVENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_task_events_task ON task_events(task_id);",
]


async def connect(db_path: str) -> aiosqlite.Connection:
    """打开 autocommit 模式的数据库连接"""
    conn = await aiosqlite.connect(db_path, isolation_level=None)
    conn.row_factory = aiosqlite.Row
    return conn


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    for ddl in (
        _WORKSPACE_MEMBERS_DDL,
        _PROJECTS_DDL,
        _PROJECT_MEMBERS_DDL,
        _TASKS_DDL,
        _TASK_EVENTS_DDL,
    ):
        await conn.execute(ddl)

    for idx_sql in _TASKS_INDEXES + _TASK_EVENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
