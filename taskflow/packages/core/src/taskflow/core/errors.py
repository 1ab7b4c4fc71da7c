"""工作流引擎异常体系

所有业务异常携带机器可读的 code 和面向用户的 message，
HTTP 层（不在本包内）负责把 code 映射为状态码。
权限与校验失败不会自动重试。
"""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """错误码"""

    NOT_FOUND = "NOT_FOUND"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    PARENT_TASK_NOT_FOUND = "PARENT_TASK_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_STATUS = "INVALID_STATUS"
    INVALID_PRIORITY = "INVALID_PRIORITY"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_INITIAL_STATUS = "INVALID_INITIAL_STATUS"
    INVALID_PARENT = "INVALID_PARENT"
    MEMBER_CANNOT_ASSIGN_OTHERS = "MEMBER_CANNOT_ASSIGN_OTHERS"
    CANNOT_ASSIGN_TO_OBSERVER = "CANNOT_ASSIGN_TO_OBSERVER"
    MAX_DEPTH_EXCEEDED = "MAX_DEPTH_EXCEEDED"
    SUBTASK_NO_REVIEW = "SUBTASK_NO_REVIEW"
    USE_STATUS_ENDPOINT = "USE_STATUS_ENDPOINT"
    MISSING_FIELDS = "MISSING_FIELDS"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class TaskflowError(Exception):
    """引擎基础异常"""

    default_code: ErrorCode = ErrorCode.NOT_FOUND

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Args:
            message: 面向用户的错误描述
            code: 错误码，缺省使用子类的 default_code
            details: 附加的结构化信息
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """结构化输出，供上层序列化"""
        data: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class NotFoundError(TaskflowError):
    """任务/项目不存在"""

    default_code = ErrorCode.NOT_FOUND


class ForbiddenError(TaskflowError):
    """权限检查失败"""

    default_code = ErrorCode.FORBIDDEN

    def __init__(self, message: str = "无权限执行此操作", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class InvalidStatusError(TaskflowError):
    """状态值不在固定枚举内"""

    default_code = ErrorCode.INVALID_STATUS


class InvalidPriorityError(TaskflowError):
    """优先级值不在固定枚举内"""

    default_code = ErrorCode.INVALID_PRIORITY


class InvalidTransitionError(TaskflowError):
    """状态机或智能转换规则不允许"""

    default_code = ErrorCode.INVALID_TRANSITION


class InvalidInitialStatusError(TaskflowError):
    """创建任务时指定了非 todo 状态"""

    default_code = ErrorCode.INVALID_INITIAL_STATUS

    def __init__(
        self,
        message: str = "新创建的任务状态必须为「待办」，请使用状态转换接口修改状态",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)


class InvalidParentError(TaskflowError):
    """父任务不属于同一项目"""

    default_code = ErrorCode.INVALID_PARENT


class MemberCannotAssignOthersError(TaskflowError):
    """member 试图把任务分配给他人"""

    default_code = ErrorCode.MEMBER_CANNOT_ASSIGN_OTHERS

    def __init__(self, message: str = "您只能创建分配给自己的任务", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class CannotAssignToObserverError(TaskflowError):
    """不能把任务分配给观察者"""

    default_code = ErrorCode.CANNOT_ASSIGN_TO_OBSERVER

    def __init__(self, message: str = "不能将任务分配给观察者", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class MaxDepthExceededError(TaskflowError):
    """父任务已在第 3 级"""

    default_code = ErrorCode.MAX_DEPTH_EXCEEDED

    def __init__(
        self,
        message: str = "最多支持3级任务嵌套，无法创建更深层级的子任务",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)


class SubtaskNoReviewError(TaskflowError):
    """子任务（第 2/3 级）不进入审核流程"""

    default_code = ErrorCode.SUBTASK_NO_REVIEW

    def __init__(self, message: str = "子任务无需审核，请直接完成", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class UseStatusEndpointError(TaskflowError):
    """通过通用更新接口修改状态"""

    default_code = ErrorCode.USE_STATUS_ENDPOINT

    def __init__(
        self,
        message: str = "请使用状态转换接口变更状态",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)


class MissingFieldsError(TaskflowError):
    """缺少必填字段"""

    default_code = ErrorCode.MISSING_FIELDS


def task_not_found(task_id: str) -> NotFoundError:
    return NotFoundError(
        "任务不存在", code=ErrorCode.TASK_NOT_FOUND, details={"task_id": task_id}
    )


def project_not_found(project_id: str) -> NotFoundError:
    return NotFoundError(
        "项目不存在", code=ErrorCode.PROJECT_NOT_FOUND, details={"project_id": project_id}
    )
