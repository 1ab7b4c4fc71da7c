"""TaskEvent Domain Model

事件表 append-only，不允许更新或删除。
event_id 使用 ULID 格式，时间有序；任务被删除后事件仍保留。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import TaskEventType


class TaskEvent(BaseModel):
    """TaskEvent 数据模型"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    task_id: str = Field(description="关联的 Task ID")
    actor_id: str = Field(description="操作者 ID")
    type: TaskEventType = Field(description="事件类型")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")
    created_at: datetime = Field(description="事件时间戳")

    @property
    def auto_triggered(self) -> bool:
        """是否由状态联动自动触发"""
        return bool(self.payload.get("auto_triggered", False))
