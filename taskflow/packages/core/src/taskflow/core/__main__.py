"""CLI 入口模块 -- python -m taskflow.core <command>

支持的命令：
  init-db  初始化数据库（建表、WAL 模式）
  audit    以事件历史核对任务表，发现不一致时以非零状态退出
"""

import asyncio
import sys

from .config import load_workflow_config
from .logging_config import bind_request_context, setup_logging

_USAGE = """用法: python -m taskflow.core <command>
命令:
  init-db  初始化数据库
  audit    以事件历史核对任务表"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    setup_logging()
    command = sys.argv[1]
    bind_request_context(command=command)

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "audit":
        ok = asyncio.run(run_audit())
        if not ok:
            sys.exit(2)
    else:
        print(f"未知命令: {command}")
        print("可用命令: init-db, audit")
        sys.exit(1)


async def init_database() -> None:
    """创建数据库文件与表结构"""
    from .store import create_store_group
    from .store.sqlite_init import verify_wal_mode

    db_path = load_workflow_config().db_path
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        wal = await verify_wal_mode(store_group.conn)
        print(f"初始化完成，WAL 模式: {'是' if wal else '否'}")
    finally:
        await store_group.close()


async def run_audit() -> bool:
    """执行一致性诊断，返回是否一致"""
    from .diagnostics import audit
    from .store import create_store_group

    db_path = load_workflow_config().db_path
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        report = await audit(store_group)
    finally:
        await store_group.close()

    print(f"任务数: {report.task_count}，事件数: {report.event_count}")
    if report.ok:
        print("未发现不一致")
        return True

    print(f"发现 {len(report.issues)} 个问题:")
    for issue in report.issues:
        print(f"  [{issue.kind}] {issue.task_id}: {issue.detail}")
    return False


if __name__ == "__main__":
    main()
