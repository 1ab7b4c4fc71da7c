"""Task Domain Model

tasks 表以 parent_id 反向引用组成扁平的任务树（最多 3 级）。
completed_at 非空当且仅当 status == done。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import TaskPriority, TaskStatus
from .project import Project, ProjectMember, is_project_leader


class Task(BaseModel):
    """Task 数据模型"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    project_id: str = Field(description="所属项目 ID")
    title: str = Field(description="任务标题")
    description: str = Field(default="", description="任务描述")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="当前状态")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="优先级")
    parent_id: str | None = Field(default=None, description="父任务 ID")
    assignee_id: str | None = Field(default=None, description="负责人 ID")
    creator_id: str = Field(description="创建者 ID")
    due_date: datetime | None = Field(default=None, description="截止日期")
    completed_at: datetime | None = Field(default=None, description="完成时间")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")


class TaskSummary(BaseModel):
    """关联任务摘要（父任务/子任务）"""

    task_id: str
    title: str
    status: TaskStatus


class TaskContext(BaseModel):
    """任务详情 -- 包含项目、项目成员、父任务与直接子任务

    状态转换和权限判断都基于这份快照进行。
    """

    task: Task
    project: Project
    project_members: list[ProjectMember] = Field(default_factory=list)
    parent: TaskSummary | None = None
    children: list[TaskSummary] = Field(default_factory=list)

    @property
    def workspace_id(self) -> str:
        return self.project.workspace_id

    def is_project_leader(self, user_id: str) -> bool:
        return is_project_leader(self.project, self.project_members, user_id)


class TaskCreate(BaseModel):
    """创建任务输入"""

    project_id: str = Field(default="", description="所属项目 ID")
    title: str = Field(default="", description="任务标题")
    description: str = Field(default="")
    status: str | None = Field(default=None, description="初始状态，只允许 todo")
    priority: str | None = Field(default=None, description="优先级，默认 medium")
    assignee_id: str | None = None
    parent_id: str | None = None
    due_date: datetime | None = None


class TaskUpdate(BaseModel):
    """更新任务非状态字段输入

    未显式传入的字段不会被修改（通过 model_fields_set 区分）；
    assignee_id/due_date 显式传入 None 表示清空。
    """

    title: str | None = None
    description: str | None = None
    priority: str | None = None
    assignee_id: str | None = None
    due_date: datetime | None = None
    status: str | None = Field(
        default=None,
        description="仅用于检测误用，状态变更必须走状态转换接口",
    )
