"""状态写入 -- 所有状态变更的唯一落库入口

保证 completed_at 非空当且仅当 status == done，
并在同一事务内追加对应的 status_changed 事件。
"""

from datetime import UTC, datetime
from typing import Any

from ..models.enums import TaskStatus
from ..models.task import Task
from ..store.protocols import TaskStore
from .event_log import EventLog


def status_patch(new_status: TaskStatus, now: datetime) -> dict[str, Any]:
    """构造状态变更的字段补丁"""
    return {
        "status": new_status,
        "completed_at": now if new_status == TaskStatus.DONE else None,
        "updated_at": now,
    }


async def write_status(
    task_store: TaskStore,
    event_log: EventLog,
    task: Task,
    new_status: TaskStatus,
    actor_id: str,
    **event_kwargs: Any,
) -> Task:
    """更新任务状态并追加事件，返回更新后的任务快照

    Args:
        task_store: TaskStore 实例
        event_log: EventLog 实例
        task: 变更前的任务
        new_status: 目标状态
        actor_id: 操作者
        **event_kwargs: 透传给 EventLog.append_status_change
    """
    now = datetime.now(UTC)
    patch = status_patch(new_status, now)
    await task_store.update_task(task.task_id, patch)
    await event_log.append_status_change(
        task.task_id,
        actor_id,
        task.status,
        new_status,
        **event_kwargs,
    )
    return task.model_copy(update=patch)
