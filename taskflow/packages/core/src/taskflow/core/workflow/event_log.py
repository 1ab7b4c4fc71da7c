"""EventLog -- 任务审计轨迹

每个变更操作都追加一条事件；事件只追加，从不更新或删除。
写入发生在调用方的 unit of work 内，与状态变更一起提交。
"""

from datetime import UTC, datetime

import structlog
from pydantic import BaseModel
from ulid import ULID

from ..models.enums import STATUS_LABELS, TaskEventType, TaskStatus, TransitionAction
from ..models.event import TaskEvent
from ..models.payloads import StatusChangedPayload
from ..store.protocols import EventStore

log = structlog.get_logger()


class EventLog:
    """基于 EventStore 的追加式事件日志"""

    def __init__(self, event_store: EventStore, history_limit: int = 20) -> None:
        self._event_store = event_store
        self._history_limit = history_limit

    async def append(
        self,
        task_id: str,
        actor_id: str,
        event_type: TaskEventType,
        payload: BaseModel,
    ) -> TaskEvent:
        """追加一条事件"""
        event = TaskEvent(
            event_id=str(ULID()),
            task_id=task_id,
            actor_id=actor_id,
            type=event_type,
            payload=payload.model_dump(mode="json"),
            created_at=datetime.now(UTC),
        )
        await self._event_store.create_event(event)
        return event

    async def append_status_change(
        self,
        task_id: str,
        actor_id: str,
        old_status: TaskStatus,
        new_status: TaskStatus,
        *,
        prefix: str = "",
        action: TransitionAction | None = None,
        auto_triggered: bool = False,
        reject_reason: str | None = None,
        description: str | None = None,
    ) -> TaskEvent:
        """追加 status_changed 事件"""
        if description is None:
            description = (
                f"{prefix}将状态从「{STATUS_LABELS[old_status]}」"
                f"变更为「{STATUS_LABELS[new_status]}」"
            )
            if reject_reason:
                description += f"，原因: {reject_reason}"

        event = await self.append(
            task_id,
            actor_id,
            TaskEventType.STATUS_CHANGED,
            StatusChangedPayload(
                description=description,
                old_value=old_status,
                new_value=new_status,
                action=action,
                auto_triggered=auto_triggered,
                reject_reason=reject_reason,
            ),
        )
        log.info(
            "task_status_changed",
            task_id=task_id,
            actor_id=actor_id,
            old_status=old_status.value,
            new_status=new_status.value,
            auto_triggered=auto_triggered,
        )
        return event

    async def history(self, task_id: str, limit: int | None = None) -> list[TaskEvent]:
        """查询事件历史，最新的在前"""
        return await self._event_store.find_events(
            task_id, self._history_limit if limit is None else limit
        )
