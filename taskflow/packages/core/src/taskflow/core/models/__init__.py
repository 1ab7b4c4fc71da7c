"""taskflow Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    ADMIN_ROLES,
    STATE_TRANSITIONS,
    STATUS_LABELS,
    NotificationType,
    TaskEventType,
    TaskPriority,
    TaskStatus,
    TransitionAction,
    WorkspaceRole,
    available_transitions,
    can_transition,
    has_minimum_role,
    parse_priority,
    parse_role,
    parse_status,
)
from .event import TaskEvent
from .notification import Notification
from .payloads import StatusChangedPayload, TaskCreatedPayload, TaskUpdatedPayload
from .project import Project, ProjectMember, WorkspaceMember, is_project_leader
from .results import (
    BatchCompleteResult,
    BatchDeleteResult,
    BatchFailure,
    CascadeChange,
    DeleteResult,
    NoopTransition,
    PlannedTransition,
    RejectedTransition,
    TaskView,
    TransitionPlan,
    TransitionResult,
)
from .task import Task, TaskContext, TaskCreate, TaskSummary, TaskUpdate

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "WorkspaceRole",
    "TaskEventType",
    "TransitionAction",
    "NotificationType",
    "ADMIN_ROLES",
    "STATUS_LABELS",
    # 状态机
    "STATE_TRANSITIONS",
    "can_transition",
    "available_transitions",
    # 规范化
    "parse_status",
    "parse_priority",
    "parse_role",
    "has_minimum_role",
    # Task
    "Task",
    "TaskContext",
    "TaskCreate",
    "TaskSummary",
    "TaskUpdate",
    # Project / 成员
    "Project",
    "ProjectMember",
    "WorkspaceMember",
    "is_project_leader",
    # Event
    "TaskEvent",
    "TaskCreatedPayload",
    "TaskUpdatedPayload",
    "StatusChangedPayload",
    # Notification
    "Notification",
    # 结果
    "TransitionPlan",
    "PlannedTransition",
    "RejectedTransition",
    "NoopTransition",
    "TransitionResult",
    "CascadeChange",
    "BatchCompleteResult",
    "BatchDeleteResult",
    "BatchFailure",
    "DeleteResult",
    "TaskView",
]
