"""PermissionResolver 单元测试

覆盖编辑规则（首个命中的规则生效）、删除/审核/操作执行人规则，
以及创建和更新时的分配约束。
"""

from datetime import UTC, datetime

import pytest
import pytest_asyncio
from seed_data import (
    CO_LEADER,
    DIRECTOR,
    LEADER,
    MANAGER,
    MEMBER,
    MEMBER_2,
    OBSERVER,
    OUTSIDER,
    OWNER,
    PROJECT_ID,
    WORKSPACE_ID,
)
from taskflow.core.errors import (
    CannotAssignToObserverError,
    ForbiddenError,
    MemberCannotAssignOthersError,
)
from taskflow.core.models import Task, TaskContext
from taskflow.core.store import StoreGroup
from taskflow.core.workflow import PermissionResolver


@pytest_asyncio.fixture
async def resolver(stores: StoreGroup) -> PermissionResolver:
    return PermissionResolver(stores.membership_store)


async def _ctx(
    stores: StoreGroup,
    creator_id: str = MANAGER,
    assignee_id: str | None = MEMBER_2,
) -> TaskContext:
    now = datetime.now(UTC)
    task = Task(
        task_id="t-perm",
        project_id=PROJECT_ID,
        title="权限测试",
        creator_id=creator_id,
        assignee_id=assignee_id,
        created_at=now,
        updated_at=now,
    )
    async with stores.unit_of_work():
        await stores.task_store.create_task(task)
    ctx = await stores.task_store.find_task_with_relations("t-perm")
    assert ctx is not None
    return ctx


class TestEditRules:
    """编辑权限"""

    @pytest.mark.parametrize("user_id", [OWNER, DIRECTOR, MANAGER])
    async def test_admin_tier_edits_any_task(self, stores, resolver, user_id):
        ctx = await _ctx(stores)
        assert await resolver.can_edit_task(ctx, user_id)

    @pytest.mark.parametrize("user_id", [LEADER, CO_LEADER])
    async def test_project_leader_edits_any_task(self, stores, resolver, user_id):
        ctx = await _ctx(stores)
        assert await resolver.can_edit_task(ctx, user_id)

    async def test_observer_cannot_edit_even_as_creator(self, stores, resolver):
        ctx = await _ctx(stores, creator_id=OBSERVER, assignee_id=None)
        assert not await resolver.can_edit_task(ctx, OBSERVER)

    async def test_non_member_denied(self, stores, resolver):
        ctx = await _ctx(stores)
        assert not await resolver.can_edit_task(ctx, OUTSIDER)

    async def test_member_edits_own_or_assigned(self, stores, resolver):
        ctx = await _ctx(stores, creator_id=MEMBER, assignee_id=MEMBER_2)
        assert await resolver.can_edit_task(ctx, MEMBER)
        assert await resolver.can_edit_task(ctx, MEMBER_2)

    async def test_member_cannot_edit_others(self, stores, resolver):
        ctx = await _ctx(stores, creator_id=MANAGER, assignee_id=MEMBER_2)
        assert not await resolver.can_edit_task(ctx, MEMBER)
        with pytest.raises(ForbiddenError):
            await resolver.require_edit_task(ctx, MEMBER)

    async def test_member_can_create(self, stores, resolver):
        ctx = await _ctx(stores)
        assert await resolver.can_edit(
            ctx.project, ctx.project_members, MEMBER, is_creating=True
        )
        assert not await resolver.can_edit(
            ctx.project, ctx.project_members, OBSERVER, is_creating=True
        )


class TestDeleteAndReview:
    """删除与审核权限"""

    @pytest.mark.parametrize("user_id", [OWNER, DIRECTOR, MANAGER, LEADER, CO_LEADER])
    async def test_can_delete(self, stores, resolver, user_id):
        ctx = await _ctx(stores)
        assert await resolver.can_delete(ctx, user_id)

    async def test_creator_member_cannot_delete(self, stores, resolver):
        """删除权限严格窄于编辑权限"""
        ctx = await _ctx(stores, creator_id=MEMBER, assignee_id=MEMBER)
        assert await resolver.can_edit_task(ctx, MEMBER)
        assert not await resolver.can_delete(ctx, MEMBER)

    @pytest.mark.parametrize(
        "user_id,expected",
        [
            (OWNER, True),
            (MANAGER, True),
            (LEADER, True),
            (CO_LEADER, True),
            (MEMBER_2, False),
            (OBSERVER, False),
        ],
    )
    async def test_can_review(self, stores, resolver, user_id, expected):
        ctx = await _ctx(stores)
        assert await resolver.can_review(ctx, user_id) is expected


class TestOperatorRules:
    """具体状态操作的执行人"""

    async def test_assignee_and_creator(self, stores, resolver):
        ctx = await _ctx(stores, creator_id=MEMBER, assignee_id=MEMBER_2)
        assert await resolver.can_operate(ctx, MEMBER_2)
        assert await resolver.can_operate(ctx, MEMBER)

    async def test_reopen_excludes_creator(self, stores, resolver):
        ctx = await _ctx(stores, creator_id=MEMBER, assignee_id=MEMBER_2)
        assert not await resolver.can_operate(ctx, MEMBER, allow_creator=False)
        assert await resolver.can_operate(ctx, MEMBER_2, allow_creator=False)
        assert await resolver.can_operate(ctx, LEADER, allow_creator=False)

    async def test_observer_cannot_operate(self, stores, resolver):
        ctx = await _ctx(stores)
        assert not await resolver.can_operate(ctx, OBSERVER)


class TestAssignment:
    """分配约束"""

    async def test_member_create_defaults_to_self(self, resolver):
        assert await resolver.resolve_create_assignee(WORKSPACE_ID, MEMBER, None) == MEMBER
        assert await resolver.resolve_create_assignee(WORKSPACE_ID, MEMBER, MEMBER) == MEMBER

    async def test_member_create_for_other_rejected(self, resolver):
        with pytest.raises(MemberCannotAssignOthersError):
            await resolver.resolve_create_assignee(WORKSPACE_ID, MEMBER, MEMBER_2)

    async def test_manager_may_leave_unassigned(self, resolver):
        assert await resolver.resolve_create_assignee(WORKSPACE_ID, MANAGER, None) is None
        assert await resolver.resolve_create_assignee(WORKSPACE_ID, MANAGER, MEMBER) == MEMBER

    async def test_observer_never_assignable(self, resolver):
        with pytest.raises(CannotAssignToObserverError):
            await resolver.resolve_create_assignee(WORKSPACE_ID, MANAGER, OBSERVER)

    async def test_member_update_rules(self, stores, resolver):
        ctx = await _ctx(stores, creator_id=MEMBER, assignee_id=MEMBER_2)
        # 保持原负责人、改为自己、清空都允许
        await resolver.check_update_assignee(ctx, MEMBER, MEMBER_2)
        await resolver.check_update_assignee(ctx, MEMBER, MEMBER)
        await resolver.check_update_assignee(ctx, MEMBER, None)
        with pytest.raises(MemberCannotAssignOthersError):
            await resolver.check_update_assignee(ctx, MEMBER, LEADER)

    async def test_update_to_observer_rejected(self, stores, resolver):
        ctx = await _ctx(stores)
        with pytest.raises(CannotAssignToObserverError):
            await resolver.check_update_assignee(ctx, MANAGER, OBSERVER)
