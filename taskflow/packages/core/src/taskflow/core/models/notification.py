"""Notification 模型 -- 通知投递的最小契约

投递通道（站内信/邮件/推送）在引擎之外实现。
"""

from pydantic import BaseModel, Field

from .enums import NotificationType


class Notification(BaseModel):
    """待投递的通知"""

    user_id: str = Field(description="接收者 ID")
    type: NotificationType
    title: str
    message: str
    task_id: str | None = None
    project_id: str | None = None
