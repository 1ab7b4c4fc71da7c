"""集成测试共享 fixture -- 一个完整的团队工作区"""

from dataclasses import dataclass

import pytest_asyncio
from taskflow.core.models import Project, ProjectMember
from taskflow.core.notifications import NotificationHub
from taskflow.core.service import TaskService
from taskflow.core.store import StoreGroup


@dataclass
class Team:
    """集成测试中的工作区成员"""

    workspace_id: str = "ws-team"
    project_id: str = "proj-launch"
    owner: str = "alice"
    manager: str = "bob"
    leader: str = "carol"
    dev: str = "dave"
    qa: str = "erin"
    guest: str = "frank"


async def seed_team(group: StoreGroup, team: Team) -> None:
    roles = {
        team.owner: "owner",
        team.manager: "manager",
        team.leader: "member",
        team.dev: "member",
        team.qa: "member",
        team.guest: "observer",
    }
    for user_id, role in roles.items():
        await group.membership_store.add_member(team.workspace_id, user_id, role)
    await group.project_store.create_project(
        Project(
            project_id=team.project_id,
            workspace_id=team.workspace_id,
            name="版本发布",
            leader_id=team.leader,
        )
    )
    for user_id in (team.dev, team.qa):
        await group.project_store.add_member(
            ProjectMember(project_id=team.project_id, user_id=user_id)
        )


@pytest_asyncio.fixture
async def team(store_group: StoreGroup) -> Team:
    team = Team()
    await seed_team(store_group, team)
    return team


@pytest_asyncio.fixture
async def hub() -> NotificationHub:
    return NotificationHub()


@pytest_asyncio.fixture
async def service(store_group: StoreGroup, team: Team, hub: NotificationHub) -> TaskService:
    return TaskService(store_group, hub)
