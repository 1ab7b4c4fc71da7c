"""通知投递 -- NotificationHub 与 NotificationDispatcher

NotificationHub 是进程内的通知器：每个订阅者持有一个 asyncio.Queue，
支持 subscribe/unsubscribe/notify，队列已满的订阅者会被移除。

NotificationDispatcher 在事务提交之后以 fire-and-forget 方式投递通知：
每条通知一个后台任务，投递失败只记录日志，永远不会影响状态转换结果。
"""

import asyncio
from collections import defaultdict

import structlog

from .config import load_workflow_config
from .models.notification import Notification
from .store.protocols import Notifier

log = structlog.get_logger()


class NotificationHub:
    """按用户分发的内存通知广播器"""

    def __init__(self, queue_maxsize: int | None = None) -> None:
        if queue_maxsize is None:
            queue_maxsize = load_workflow_config().notification_queue_size
        # user_id -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, user_id: str) -> asyncio.Queue:
        """订阅指定用户的通知

        Returns:
            asyncio.Queue 实例，新通知会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[user_id].add(queue)
        return queue

    async def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        self._subscribers[user_id].discard(queue)
        if not self._subscribers[user_id]:
            del self._subscribers[user_id]

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, set()))

    async def notify(self, notification: Notification) -> None:
        """向接收者的所有订阅队列推送通知"""
        user_id = notification.user_id
        dead_queues = []
        for queue in self._subscribers.get(user_id, set()):
            try:
                queue.put_nowait(notification)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers[user_id].discard(q)
            log.warning("notification_queue_full", user_id=user_id)
        if user_id in self._subscribers and not self._subscribers[user_id]:
            del self._subscribers[user_id]


class NotificationDispatcher:
    """事务提交后的后台通知投递"""

    def __init__(self, notifier: Notifier | None = None) -> None:
        self._notifier = notifier
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, notifications: list[Notification]) -> None:
        """为每条通知调度一个后台投递任务，立即返回"""
        if self._notifier is None:
            return
        for notification in notifications:
            task = asyncio.create_task(self._deliver(notification))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """等待所有已调度的投递完成"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self._notifier.notify(notification)
        except Exception as e:
            log.error(
                "notification_failed",
                user_id=notification.user_id,
                notification_type=notification.type.value,
                task_id=notification.task_id,
                error_type=type(e).__name__,
            )
        else:
            log.debug(
                "notification_sent",
                user_id=notification.user_id,
                notification_type=notification.type.value,
                task_id=notification.task_id,
            )
