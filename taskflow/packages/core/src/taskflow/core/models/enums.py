"""枚举定义 -- 任务状态、优先级、工作区角色、事件类型

包含 TaskStatus 状态机流转表 STATE_TRANSITIONS、带全序的 WorkspaceRole，
以及状态/优先级/角色的规范化函数（兼容大小写与旧角色代码）。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """任务状态（与数据库保持一致，使用小写）"""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class TaskPriority(StrEnum):
    """任务优先级"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# 状态流转规则：有向表，不对称
# todo 不能直接到 review/done，done 不能直接回 todo/review，必须经过 in_progress
STATE_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.TODO: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.TODO, TaskStatus.REVIEW, TaskStatus.DONE}
    ),
    TaskStatus.REVIEW: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.DONE}),
    TaskStatus.DONE: frozenset({TaskStatus.IN_PROGRESS}),
}

STATUS_LABELS: dict[TaskStatus, str] = {
    TaskStatus.TODO: "待办",
    TaskStatus.IN_PROGRESS: "进行中",
    TaskStatus.REVIEW: "审核中",
    TaskStatus.DONE: "已完成",
}

PRIORITY_LABELS: dict[TaskPriority, str] = {
    TaskPriority.LOW: "低",
    TaskPriority.MEDIUM: "中",
    TaskPriority.HIGH: "高",
    TaskPriority.CRITICAL: "紧急",
}


class WorkspaceRole(StrEnum):
    """工作区角色 -- 显式全序：owner > director > manager > member > observer"""

    OWNER = "owner"
    DIRECTOR = "director"
    MANAGER = "manager"
    MEMBER = "member"
    OBSERVER = "observer"

    @property
    def rank(self) -> int:
        """权限等级，数字越大权限越高"""
        return _ROLE_RANK[self]

    @property
    def is_admin_tier(self) -> bool:
        """owner/director/manager 统称管理层"""
        return self in ADMIN_ROLES


_ROLE_RANK: dict[WorkspaceRole, int] = {
    WorkspaceRole.OWNER: 4,
    WorkspaceRole.DIRECTOR: 3,
    WorkspaceRole.MANAGER: 2,
    WorkspaceRole.MEMBER: 1,
    WorkspaceRole.OBSERVER: 0,
}

ADMIN_ROLES: frozenset[WorkspaceRole] = frozenset(
    {WorkspaceRole.OWNER, WorkspaceRole.DIRECTOR, WorkspaceRole.MANAGER}
)

# 旧角色代码 -> 当前角色（兼容历史数据）
LEGACY_ROLE_ALIASES: dict[str, WorkspaceRole] = {
    "admin": WorkspaceRole.DIRECTOR,
    "leader": WorkspaceRole.MANAGER,
    "guest": WorkspaceRole.OBSERVER,
}


class TaskEventType(StrEnum):
    """任务事件类型"""

    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    COMMENTED = "commented"


class TransitionAction(StrEnum):
    """智能状态转换解析出的规范操作"""

    START = "start"
    REVERT_TO_TODO = "revert_to_todo"
    SUBMIT_REVIEW = "submit_review"
    COMPLETE = "complete"
    REJECT = "reject"
    APPROVE = "approve"
    REOPEN = "reopen"


class NotificationType(StrEnum):
    """通知类型"""

    TASK_REVIEW_REQUEST = "task_review_request"
    TASK_APPROVED = "task_approved"
    TASK_REJECTED = "task_rejected"


def can_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """检查状态转换是否合法（相同状态视为合法的空操作）"""
    if from_status == to_status:
        return True
    return to_status in STATE_TRANSITIONS.get(from_status, frozenset())


def available_transitions(status: TaskStatus) -> frozenset[TaskStatus]:
    """获取可转换的目标状态集合"""
    return STATE_TRANSITIONS.get(status, frozenset())


def parse_status(value: str | None) -> TaskStatus | None:
    """规范化状态值（兼容大小写），无效值返回 None"""
    if value is None:
        return None
    try:
        return TaskStatus(value.strip().lower())
    except ValueError:
        return None


def parse_priority(value: str | None) -> TaskPriority | None:
    """规范化优先级值（兼容大小写），无效值返回 None"""
    if value is None:
        return None
    try:
        return TaskPriority(value.strip().lower())
    except ValueError:
        return None


def parse_role(value: str | None) -> WorkspaceRole | None:
    """规范化角色代码，支持旧角色代码映射，未知角色返回 None"""
    if not value:
        return None
    normalized = value.strip().lower()
    if normalized in LEGACY_ROLE_ALIASES:
        return LEGACY_ROLE_ALIASES[normalized]
    try:
        return WorkspaceRole(normalized)
    except ValueError:
        return None


def has_minimum_role(role: WorkspaceRole | None, minimum: WorkspaceRole) -> bool:
    """角色是否达到最低要求（无角色视为不满足）"""
    if role is None:
        return False
    return role.rank >= minimum.rank
