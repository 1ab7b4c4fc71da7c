"""操作结果模型 -- 智能状态转换、状态联动、批量操作的返回结构

TransitionPlan 是显式的结果变体（planned / rejected / noop），
解析表查表得到变体，而不是依赖异常分支。
"""

from typing import Literal

from pydantic import BaseModel, Field

from .enums import TaskStatus, TransitionAction
from .task import Task


class PlannedTransition(BaseModel):
    """解析成功：执行某个规范操作"""

    kind: Literal["planned"] = "planned"
    action: TransitionAction


class RejectedTransition(BaseModel):
    """解析失败：该意图不被允许"""

    kind: Literal["rejected"] = "rejected"
    reason: str


class NoopTransition(BaseModel):
    """目标状态与当前状态相同"""

    kind: Literal["noop"] = "noop"


TransitionPlan = PlannedTransition | RejectedTransition | NoopTransition


class CascadeChange(BaseModel):
    """一次由状态联动自动触发的状态变化"""

    task_id: str
    old_status: TaskStatus
    new_status: TaskStatus
    reason: str


class TransitionResult(BaseModel):
    """智能状态转换结果"""

    task: Task
    actual_status: TaskStatus
    message: str
    status_changed: bool
    action: TransitionAction | None = None
    cascaded: list[CascadeChange] = Field(default_factory=list)


class BatchFailure(BaseModel):
    """批量操作中的单项失败"""

    task_id: str
    reason: str
    code: str


class BatchCompleteResult(BaseModel):
    """批量完成结果"""

    success: list[str] = Field(default_factory=list)
    auto_reviewed: list[str] = Field(default_factory=list)
    failed: list[BatchFailure] = Field(default_factory=list)


class BatchDeleteResult(BaseModel):
    """批量删除结果"""

    success: list[str] = Field(default_factory=list)
    failed: list[BatchFailure] = Field(default_factory=list)
    subtask_count: int = 0


class DeleteResult(BaseModel):
    """单任务删除结果"""

    deleted_count: int
    subtask_count: int


class TaskView(BaseModel):
    """任务详情视图 -- 附带当前可转换的目标状态"""

    task: Task
    available_transitions: list[TaskStatus] = Field(default_factory=list)
