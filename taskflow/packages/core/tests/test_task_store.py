"""TaskStore / MembershipStore 单元测试"""

from datetime import UTC, datetime, timedelta

from seed_data import (
    CO_LEADER,
    LEADER,
    MANAGER,
    MEMBER,
    PROJECT_ID,
    WORKSPACE_ID,
)
from taskflow.core.models import Task, TaskPriority, TaskStatus, WorkspaceRole
from taskflow.core.store import StoreGroup
from taskflow.core.workflow import leaf_first


def _task(task_id: str, parent_id: str | None = None, **overrides) -> Task:
    now = overrides.pop("now", datetime.now(UTC))
    data = {
        "task_id": task_id,
        "project_id": PROJECT_ID,
        "title": f"任务 {task_id}",
        "creator_id": MANAGER,
        "parent_id": parent_id,
        "created_at": now,
        "updated_at": now,
    }
    data.update(overrides)
    return Task(**data)


async def _create_tree(stores: StoreGroup) -> None:
    """root -> (a -> (a1, a2), b)"""
    async with stores.unit_of_work():
        for task in (
            _task("root"),
            _task("a", "root"),
            _task("b", "root"),
            _task("a1", "a"),
            _task("a2", "a"),
        ):
            await stores.task_store.create_task(task)


class TestTaskQueries:
    """任务查询"""

    async def test_find_task_with_relations(self, stores: StoreGroup):
        await _create_tree(stores)

        ctx = await stores.task_store.find_task_with_relations("a")

        assert ctx is not None
        assert ctx.project.leader_id == LEADER
        assert ctx.parent is not None and ctx.parent.task_id == "root"
        assert [c.task_id for c in ctx.children] == ["a1", "a2"]
        assert ctx.is_project_leader(CO_LEADER)

    async def test_find_task_missing(self, stores: StoreGroup):
        assert await stores.task_store.find_task("nope") is None
        assert await stores.task_store.find_task_with_relations("nope") is None

    async def test_find_descendants_breadth_first(self, stores: StoreGroup):
        await _create_tree(stores)

        descendants = await stores.task_store.find_descendants("root")

        assert [t.task_id for t in descendants] == ["a", "b", "a1", "a2"]
        assert await stores.task_store.find_descendants("a1") == []

    async def test_list_root_tasks_order_and_filters(self, stores: StoreGroup):
        base = datetime.now(UTC)
        async with stores.unit_of_work():
            await stores.task_store.create_task(
                _task("low", priority=TaskPriority.LOW, now=base)
            )
            await stores.task_store.create_task(
                _task("crit", priority=TaskPriority.CRITICAL, now=base)
            )
            await stores.task_store.create_task(
                _task("med-old", now=base - timedelta(days=1))
            )
            await stores.task_store.create_task(_task("med-new", now=base, assignee_id=MEMBER))
            await stores.task_store.create_task(_task("child", "crit"))

        tasks = await stores.task_store.list_root_tasks(PROJECT_ID)
        assert [t.task_id for t in tasks] == ["crit", "med-new", "med-old", "low"]

        mine = await stores.task_store.list_root_tasks(PROJECT_ID, assignee_id=MEMBER)
        assert [t.task_id for t in mine] == ["med-new"]

        todo = await stores.task_store.list_root_tasks(PROJECT_ID, status=TaskStatus.DONE)
        assert todo == []

    async def test_count_by_status_has_every_key(self, stores: StoreGroup):
        await _create_tree(stores)

        counts = await stores.task_store.count_by_status(PROJECT_ID)

        assert set(counts) == set(TaskStatus)
        assert counts[TaskStatus.TODO] == 5
        assert counts[TaskStatus.DONE] == 0


class TestLeafFirst:
    """叶子优先删除顺序"""

    async def test_children_before_parents(self, stores: StoreGroup):
        await _create_tree(stores)
        tasks = [await stores.task_store.find_task("root")]
        tasks += await stores.task_store.find_descendants("root")

        ordered = [t.task_id for t in leaf_first(tasks)]

        for task in tasks:
            if task.parent_id:
                assert ordered.index(task.task_id) < ordered.index(task.parent_id)

    async def test_delete_in_leaf_first_order(self, stores: StoreGroup):
        await _create_tree(stores)
        tasks = [await stores.task_store.find_task("root")]
        tasks += await stores.task_store.find_descendants("root")

        async with stores.unit_of_work():
            for task in leaf_first(tasks):
                await stores.task_store.delete_task(task.task_id)

        assert await stores.task_store.list_all_tasks() == []


class TestMembership:
    """工作区角色查询"""

    async def test_roles(self, stores: StoreGroup):
        assert await stores.membership_store.get_user_role(WORKSPACE_ID, MEMBER) == (
            WorkspaceRole.MEMBER
        )
        assert await stores.membership_store.get_user_role(WORKSPACE_ID, "nobody") is None

    async def test_legacy_role_mapped(self, stores: StoreGroup):
        await stores.membership_store.add_member(WORKSPACE_ID, "u-legacy", "admin")
        assert await stores.membership_store.get_user_role(WORKSPACE_ID, "u-legacy") == (
            WorkspaceRole.DIRECTOR
        )

    async def test_unknown_role_treated_as_non_member(self, stores: StoreGroup):
        await stores.membership_store.add_member(WORKSPACE_ID, "u-weird", "superuser")
        assert await stores.membership_store.get_membership(WORKSPACE_ID, "u-weird") is None

    async def test_has_any_role(self, stores: StoreGroup):
        admin = {WorkspaceRole.OWNER, WorkspaceRole.DIRECTOR, WorkspaceRole.MANAGER}
        assert await stores.membership_store.has_any_role(WORKSPACE_ID, MANAGER, admin)
        assert not await stores.membership_store.has_any_role(WORKSPACE_ID, MEMBER, admin)
