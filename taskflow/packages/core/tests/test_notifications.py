"""通知投递单元测试

测试内容：
1. NotificationHub 订阅/取消订阅、按用户分发、满队列清理
2. NotificationDispatcher 后台投递、drain、失败只记录日志
"""

import asyncio

from seed_data import MEMBER, MEMBER_2, RecordingNotifier
from structlog.testing import capture_logs
from taskflow.core.models import Notification, NotificationType
from taskflow.core.notifications import NotificationDispatcher, NotificationHub


def _notification(user_id: str = MEMBER) -> Notification:
    return Notification(
        user_id=user_id,
        type=NotificationType.TASK_APPROVED,
        title="任务审核通过",
        message="您的任务「发布」已审核通过",
        task_id="t-1",
        project_id="proj-1",
    )


class TestNotificationHub:
    """进程内通知广播"""

    async def test_subscribe_and_notify(self):
        hub = NotificationHub()
        queue = await hub.subscribe(MEMBER)
        other = await hub.subscribe(MEMBER_2)

        await hub.notify(_notification(MEMBER))

        received = await asyncio.wait_for(queue.get(), timeout=1.0)
        assert received.user_id == MEMBER
        assert other.empty()

    async def test_unsubscribe(self):
        hub = NotificationHub()
        queue = await hub.subscribe(MEMBER)
        assert hub.subscriber_count(MEMBER) == 1

        await hub.unsubscribe(MEMBER, queue)

        assert hub.subscriber_count(MEMBER) == 0
        await hub.notify(_notification(MEMBER))

    async def test_full_queue_dropped(self):
        hub = NotificationHub(queue_maxsize=1)
        await hub.subscribe(MEMBER)

        with capture_logs() as logs:
            await hub.notify(_notification())
            await hub.notify(_notification())

        assert hub.subscriber_count(MEMBER) == 0
        assert [e["event"] for e in logs] == ["notification_queue_full"]


class TestNotificationDispatcher:
    """提交后投递"""

    async def test_dispatch_and_drain(self):
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier)

        dispatcher.dispatch([_notification(MEMBER), _notification(MEMBER_2)])
        await dispatcher.drain()

        assert sorted(n.user_id for n in notifier.sent) == sorted([MEMBER, MEMBER_2])

    async def test_failure_logged_not_raised(self):
        dispatcher = NotificationDispatcher(RecordingNotifier(fail=True))

        with capture_logs() as logs:
            dispatcher.dispatch([_notification()])
            await dispatcher.drain()

        failures = [e for e in logs if e["event"] == "notification_failed"]
        assert len(failures) == 1
        assert failures[0]["error_type"] == "RuntimeError"
        assert failures[0]["log_level"] == "error"

    async def test_without_notifier(self):
        dispatcher = NotificationDispatcher()
        dispatcher.dispatch([_notification()])
        await dispatcher.drain()

    async def test_hub_as_notifier(self):
        hub = NotificationHub()
        queue = await hub.subscribe(MEMBER)
        dispatcher = NotificationDispatcher(hub)

        dispatcher.dispatch([_notification()])
        await dispatcher.drain()

        assert queue.qsize() == 1
