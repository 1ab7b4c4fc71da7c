"""一致性诊断 -- 以事件历史核对任务表

task_events 是只追加的审计轨迹。按时间顺序折叠 created / status_changed
事件即可得到每个任务"最后一次记录"的状态，与 tasks 表中的状态比对：
- status_drift: 任务状态与事件回放结果不一致
- missing_history: 任务没有任何事件
- completed_at_mismatch: completed_at 与 done 状态不对应
- depth_exceeded: 任务层级超过上限

诊断只读、幂等，不修改任何数据。
"""

import time
from typing import Literal

import structlog
from pydantic import BaseModel, Field

from .config import MAX_TASK_DEPTH
from .models.enums import TaskEventType, TaskStatus
from .models.event import TaskEvent
from .models.task import Task
from .store import StoreGroup

log = structlog.get_logger()

IssueKind = Literal[
    "status_drift",
    "missing_history",
    "completed_at_mismatch",
    "depth_exceeded",
]


class AuditIssue(BaseModel):
    """单条诊断问题"""

    task_id: str
    kind: IssueKind
    detail: str


class AuditReport(BaseModel):
    """诊断报告"""

    task_count: int = 0
    event_count: int = 0
    issues: list[AuditIssue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


def replay_statuses(events: list[TaskEvent]) -> dict[str, TaskStatus]:
    """按顺序折叠事件，得到每个任务最后记录的状态

    Args:
        events: 按任务内写入顺序排列的事件

    Returns:
        task_id -> 回放得到的状态
    """
    statuses: dict[str, TaskStatus] = {}
    for event in events:
        if event.type == TaskEventType.CREATED:
            statuses[event.task_id] = TaskStatus.TODO
        elif event.type == TaskEventType.STATUS_CHANGED:
            new_value = event.payload.get("new_value")
            if new_value:
                statuses[event.task_id] = TaskStatus(new_value)
    return statuses


def _depths(tasks: dict[str, Task]) -> dict[str, int]:
    """在内存中计算层级，向上遍历以层级上限为界"""
    depths: dict[str, int] = {}
    for task_id, task in tasks.items():
        depth = 1
        parent_id = task.parent_id
        while parent_id and depth <= MAX_TASK_DEPTH:
            parent = tasks.get(parent_id)
            if parent is None:
                break
            depth += 1
            parent_id = parent.parent_id
        depths[task_id] = depth
    return depths


async def audit(stores: StoreGroup) -> AuditReport:
    """核对任务表与事件历史

    Returns:
        AuditReport，issues 为空表示一致
    """
    start_time = time.monotonic()

    tasks = {t.task_id: t for t in await stores.task_store.list_all_tasks()}
    events = await stores.event_store.all_events()
    replayed = replay_statuses(events)
    depths = _depths(tasks)

    report = AuditReport(task_count=len(tasks), event_count=len(events))

    for task_id, task in tasks.items():
        expected = replayed.get(task_id)
        if expected is None:
            report.issues.append(
                AuditIssue(task_id=task_id, kind="missing_history", detail="任务没有任何事件记录")
            )
        elif expected != task.status:
            report.issues.append(
                AuditIssue(
                    task_id=task_id,
                    kind="status_drift",
                    detail=f"任务状态为 {task.status}，事件回放为 {expected}",
                )
            )

        if (task.status == TaskStatus.DONE) != (task.completed_at is not None):
            report.issues.append(
                AuditIssue(
                    task_id=task_id,
                    kind="completed_at_mismatch",
                    detail=f"状态 {task.status} 与 completed_at={task.completed_at} 不对应",
                )
            )

        if depths[task_id] > MAX_TASK_DEPTH:
            report.issues.append(
                AuditIssue(
                    task_id=task_id,
                    kind="depth_exceeded",
                    detail=f"任务层级超过 {MAX_TASK_DEPTH}",
                )
            )

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    log.info(
        "audit_completed",
        task_count=report.task_count,
        event_count=report.event_count,
        issue_count=len(report.issues),
        elapsed_ms=elapsed_ms,
    )
    return report
