"""批量操作单元测试

测试内容：
1. 批量完成：成功 / 审核中 / 失败（带错误码）分类，单项失败不影响其他项
2. 批量删除：逐项检查删除权限，连带删除后代，统计后代数量
"""

import pytest
from seed_data import MANAGER, MEMBER, MEMBER_2, force_status, make_task, status_of
from taskflow.core.errors import ErrorCode, MissingFieldsError
from taskflow.core.models import TaskStatus, TransitionResult
from taskflow.core.service import TaskService
from taskflow.core.store import StoreGroup


class TestBatchComplete:
    """批量完成"""

    async def test_empty_list_rejected(self, service: TaskService):
        with pytest.raises(MissingFieldsError):
            await service.batch_complete(MANAGER, [])

    async def test_mixed_outcomes(self, service: TaskService, stores: StoreGroup):
        started = await make_task(service, "进行中")
        reviewing = await make_task(service, "审核中")
        todo = await make_task(service, "待办")
        await service.start(MEMBER, started.task_id)
        await force_status(stores, reviewing.task_id, TaskStatus.REVIEW)

        result = await service.batch_complete(
            MANAGER, [started.task_id, todo.task_id, "missing", reviewing.task_id]
        )

        assert result.success == [started.task_id, reviewing.task_id]
        assert result.auto_reviewed == []
        assert [(f.task_id, f.code) for f in result.failed] == [
            (todo.task_id, ErrorCode.INVALID_TRANSITION.value),
            ("missing", ErrorCode.TASK_NOT_FOUND.value),
        ]
        assert await status_of(stores, todo.task_id) == TaskStatus.TODO

    async def test_forbidden_item_reported(self, service: TaskService):
        task = await make_task(service, assignee_id=MEMBER)
        await service.start(MEMBER, task.task_id)

        result = await service.batch_complete(MEMBER_2, [task.task_id])

        assert result.success == []
        assert result.failed[0].code == ErrorCode.FORBIDDEN.value

    async def test_children_complete_root_to_review(
        self, service: TaskService, stores: StoreGroup
    ):
        root = await make_task(service, "R")
        c1 = await make_task(service, "C1", parent_id=root.task_id)
        c2 = await make_task(service, "C2", parent_id=root.task_id)
        await service.start(MEMBER, c1.task_id)
        await service.start(MEMBER, c2.task_id)

        result = await service.batch_complete(MEMBER, [c1.task_id, c2.task_id])

        assert result.success == [c1.task_id, c2.task_id]
        assert await status_of(stores, root.task_id) == TaskStatus.REVIEW

    async def test_review_landing_classified(
        self, service: TaskService, monkeypatch: pytest.MonkeyPatch
    ):
        """转换结果停在审核中的任务计入 auto_reviewed"""
        task = await make_task(service)
        view = await service.get_task(MANAGER, task.task_id)

        async def land_in_review(user_id, task_id, requested):
            return TransitionResult(
                task=view.task,
                actual_status=TaskStatus.REVIEW,
                message="任务已提交审核",
                status_changed=True,
            )

        monkeypatch.setattr(service._orchestrator, "resolve", land_in_review)

        result = await service.batch_complete(MANAGER, [task.task_id])

        assert result.auto_reviewed == [task.task_id]
        assert result.success == []

    async def test_unexpected_error_isolated(
        self, service: TaskService, monkeypatch: pytest.MonkeyPatch
    ):
        first = await make_task(service, "A")
        second = await make_task(service, "B")
        await service.start(MEMBER, second.task_id)
        original = service._orchestrator.resolve

        async def flaky(user_id, task_id, requested):
            if task_id == first.task_id:
                raise RuntimeError("db hiccup")
            return await original(user_id, task_id, requested)

        monkeypatch.setattr(service._orchestrator, "resolve", flaky)

        result = await service.batch_complete(MANAGER, [first.task_id, second.task_id])

        assert result.success == [second.task_id]
        assert result.failed[0].task_id == first.task_id
        assert result.failed[0].code == ErrorCode.UNKNOWN_ERROR.value


class TestBatchDelete:
    """批量删除"""

    async def test_empty_list_rejected(self, service: TaskService):
        with pytest.raises(MissingFieldsError):
            await service.batch_delete(MANAGER, [])

    async def test_deletes_with_descendants(self, service: TaskService, stores: StoreGroup):
        root = await make_task(service, "R")
        sub = await make_task(service, "S", parent_id=root.task_id)
        await make_task(service, "S2", parent_id=root.task_id)
        await make_task(service, "G", parent_id=sub.task_id)
        other = await make_task(service, "O")

        result = await service.batch_delete(
            MANAGER, [root.task_id, sub.task_id, root.task_id, "missing"]
        )

        assert result.success == [root.task_id, sub.task_id]
        # S2 与 G 被连带删除，S 是请求本身
        assert result.subtask_count == 2
        assert [(f.task_id, f.code) for f in result.failed] == [
            ("missing", ErrorCode.TASK_NOT_FOUND.value)
        ]
        remaining = await stores.task_store.list_all_tasks()
        assert [t.task_id for t in remaining] == [other.task_id]

    async def test_creator_member_cannot_delete(self, service: TaskService, stores: StoreGroup):
        """创建者身份不足以批量删除"""
        own = await make_task(service, "自建", user_id=MEMBER)
        managed = await make_task(service, "管理员创建")

        result = await service.batch_delete(MEMBER, [own.task_id, managed.task_id])

        assert result.success == []
        assert {f.code for f in result.failed} == {ErrorCode.FORBIDDEN.value}
        assert len(await stores.task_store.list_all_tasks()) == 2

    async def test_events_survive_deletion(self, service: TaskService, stores: StoreGroup):
        task = await make_task(service)

        await service.batch_delete(MANAGER, [task.task_id])

        events = await stores.event_store.find_events(task.task_id)
        assert len(events) == 1
