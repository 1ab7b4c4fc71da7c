"""Event Payload 子类型

所有事件的结构化 payload 定义。
"""

from pydantic import BaseModel, Field

from .enums import TaskStatus, TransitionAction


class TaskCreatedPayload(BaseModel):
    """created 事件 payload"""

    description: str
    title: str
    parent_id: str | None = None


class TaskUpdatedPayload(BaseModel):
    """updated 事件 payload"""

    description: str
    changed_fields: list[str] = Field(default_factory=list)


class StatusChangedPayload(BaseModel):
    """status_changed 事件 payload

    auto_triggered 区分状态联动产生的事件和用户操作产生的事件。
    """

    description: str
    old_value: TaskStatus
    new_value: TaskStatus
    action: TransitionAction | None = None
    auto_triggered: bool = False
    reject_reason: str | None = None
