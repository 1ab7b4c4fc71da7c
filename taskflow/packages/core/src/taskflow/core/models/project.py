"""Workspace / Project 成员关系模型"""

from pydantic import BaseModel, Field

from .enums import WorkspaceRole


class Project(BaseModel):
    """项目 -- 工作区内的任务容器，可指定一名负责人"""

    project_id: str
    workspace_id: str
    name: str = ""
    leader_id: str | None = Field(default=None, description="项目负责人 ID")


class ProjectMember(BaseModel):
    """项目成员记录"""

    project_id: str
    user_id: str
    is_leader: bool = False


class WorkspaceMember(BaseModel):
    """工作区成员资格"""

    workspace_id: str
    user_id: str
    role: WorkspaceRole


def is_project_leader(
    project: Project,
    members: list[ProjectMember],
    user_id: str,
) -> bool:
    """项目负责人：项目 leader_id 或标记为 is_leader 的项目成员"""
    if project.leader_id == user_id:
        return True
    return any(m.user_id == user_id and m.is_leader for m in members)
