"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、事件历史条数、通知队列大小等可配置常量，
以及 WorkflowConfig 配置模型。任务层级上限是固定规则，不可配置。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()

# 任务最大嵌套层级（根任务为第 1 级）
MAX_TASK_DEPTH: int = 3


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKFLOW_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKFLOW_DB_PATH",
        str(_get_base_dir() / "sqlite" / "taskflow.db"),
    )


# 事件历史默认返回条数
DEFAULT_EVENT_HISTORY_LIMIT: int = 20

# 进程内通知队列容量（每个订阅者）
DEFAULT_NOTIFICATION_QUEUE_SIZE: int = 100


class WorkflowConfig(BaseModel):
    """工作流引擎配置

    环境变量:
        TASKFLOW_DB_PATH: SQLite 数据库路径
        TASKFLOW_EVENT_HISTORY_LIMIT: 事件历史默认返回条数（默认 20）
        TASKFLOW_NOTIFICATION_QUEUE_SIZE: 通知队列容量（默认 100）
    """

    db_path: str = Field(default_factory=get_db_path, description="SQLite 数据库路径")
    event_history_limit: int = Field(
        default=DEFAULT_EVENT_HISTORY_LIMIT,
        ge=1,
        description="事件历史默认返回条数",
    )
    notification_queue_size: int = Field(
        default=DEFAULT_NOTIFICATION_QUEUE_SIZE,
        ge=1,
        description="通知队列容量",
    )


def _read_int_env(name: str, fallback: int) -> int | None:
    """读取正整数环境变量；未设置或无效时返回 None（使用默认值）"""
    val = os.environ.get(name)
    if not val:
        return None
    try:
        parsed = int(val)
    except ValueError:
        parsed = 0
    if parsed < 1:
        # 使用默认值，不阻塞启动
        log.warning(
            "invalid_int_config",
            env_var=name,
            value=val,
            fallback=fallback,
        )
        return None
    return parsed


def load_workflow_config() -> WorkflowConfig:
    """从环境变量加载引擎配置

    Returns:
        WorkflowConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKFLOW_DB_PATH"):
        kwargs["db_path"] = val

    limit = _read_int_env("TASKFLOW_EVENT_HISTORY_LIMIT", DEFAULT_EVENT_HISTORY_LIMIT)
    if limit is not None:
        kwargs["event_history_limit"] = limit

    size = _read_int_env("TASKFLOW_NOTIFICATION_QUEUE_SIZE", DEFAULT_NOTIFICATION_QUEUE_SIZE)
    if size is not None:
        kwargs["notification_queue_size"] = size

    return WorkflowConfig(**kwargs)
