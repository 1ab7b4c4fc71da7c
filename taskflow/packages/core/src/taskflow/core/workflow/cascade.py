"""CascadeEngine -- 任务树上的状态联动

三个方向：
- 完成联动：子任务全部完成时，L2 父任务自动完成并继续向上检查；
  L1 根任务自动提交审核（根任务永远不会被联动直接完成）
- 开始联动：子任务开始时，仍处于待办的祖先依次自动开始
- 回退联动：子任务离开已完成状态时，处于审核中的祖先自动退回进行中

所有遍历都是以 MAX_TASK_DEPTH 为上限的迭代循环。每个方法都是幂等的，
对一致的任务树重复调用不会产生任何写入。事务边界由调用方负责。
"""

import structlog

from ..config import MAX_TASK_DEPTH
from ..models.enums import TaskStatus
from ..models.results import CascadeChange
from ..models.task import Task
from ..store.protocols import TaskStore
from .event_log import EventLog
from .hierarchy import ancestors
from .mutations import write_status

log = structlog.get_logger()

REASON_AUTO_REVIEW = "所有子任务已完成，父任务自动提交审核"
REASON_AUTO_DONE = "所有子任务已完成，父任务自动完成"
REASON_AUTO_START = "子任务已开始，父任务自动开始"
REASON_AUTO_REVERT = "子任务被重新打开，父任务自动退回进行中"


class CascadeEngine:
    """状态联动引擎"""

    def __init__(self, task_store: TaskStore, event_log: EventLog) -> None:
        self._task_store = task_store
        self._event_log = event_log

    async def propagate_completion(self, task_id: str, actor_id: str) -> list[CascadeChange]:
        """子任务完成后向上检查父任务

        Returns:
            本次联动产生的状态变化（由近及远）
        """
        changes: list[CascadeChange] = []
        current = await self._task_store.find_task(task_id)

        for _ in range(MAX_TASK_DEPTH):
            if current is None or current.status != TaskStatus.DONE or not current.parent_id:
                break
            parent = await self._task_store.find_task(current.parent_id)
            if parent is None:
                break

            siblings = await self._task_store.find_children(parent.task_id)
            if not siblings or any(s.status != TaskStatus.DONE for s in siblings):
                break

            if parent.parent_id is None:
                # 根任务：进行中 → 审核中，到此为止
                if parent.status == TaskStatus.IN_PROGRESS:
                    await self._apply(
                        parent, TaskStatus.REVIEW, actor_id, REASON_AUTO_REVIEW, changes
                    )
                break

            if parent.status == TaskStatus.IN_PROGRESS:
                parent = await self._apply(
                    parent, TaskStatus.DONE, actor_id, REASON_AUTO_DONE, changes
                )
            elif parent.status != TaskStatus.DONE:
                # 待办中的父任务不会被跳级完成
                break
            current = parent

        return changes

    async def propagate_start(self, task_id: str, actor_id: str) -> list[CascadeChange]:
        """子任务开始后，依次启动仍处于待办的祖先"""
        changes: list[CascadeChange] = []
        current = await self._task_store.find_task(task_id)

        for _ in range(MAX_TASK_DEPTH):
            if current is None or current.status != TaskStatus.IN_PROGRESS:
                break
            if not current.parent_id:
                break
            parent = await self._task_store.find_task(current.parent_id)
            if parent is None or parent.status != TaskStatus.TODO:
                break
            current = await self._apply(
                parent, TaskStatus.IN_PROGRESS, actor_id, REASON_AUTO_START, changes
            )

        return changes

    async def propagate_revert(self, task_id: str, actor_id: str) -> list[CascadeChange]:
        """子任务离开已完成状态后，审核中的祖先退回进行中

        只做审核中检查，不重新计算"全部子任务完成"。
        """
        changes: list[CascadeChange] = []
        task = await self._task_store.find_task(task_id)
        if task is None or task.status == TaskStatus.DONE:
            return changes

        for ancestor in await ancestors(self._task_store, task):
            if ancestor.status == TaskStatus.REVIEW:
                await self._apply(
                    ancestor, TaskStatus.IN_PROGRESS, actor_id, REASON_AUTO_REVERT, changes
                )

        return changes

    async def _apply(
        self,
        task: Task,
        new_status: TaskStatus,
        actor_id: str,
        reason: str,
        changes: list[CascadeChange],
    ) -> Task:
        updated = await write_status(
            self._task_store,
            self._event_log,
            task,
            new_status,
            actor_id,
            auto_triggered=True,
            description=reason,
        )
        changes.append(
            CascadeChange(
                task_id=task.task_id,
                old_status=task.status,
                new_status=new_status,
                reason=reason,
            )
        )
        log.info(
            "cascade_applied",
            task_id=task.task_id,
            old_status=task.status.value,
            new_status=new_status.value,
            reason=reason,
        )
        return updated
