"""AlertHub -- 内存中告警广播器

每个订阅者持有一个 asyncio.Queue，按 user_id 分组。
每次广播推送该用户当前完整告警列表（按时间倒序）。
"""

import asyncio
from collections import defaultdict

from taskpulse.core.models import Alert


class AlertHub:
    """告警广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # user_id -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, user_id: str) -> asyncio.Queue:
        """订阅指定用户的告警流

        Args:
            user_id: 要订阅的用户 ID

        Returns:
            asyncio.Queue 实例，告警列表会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[user_id].add(queue)
        return queue

    async def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        """取消订阅

        Args:
            user_id: 用户 ID
            queue: 之前订阅时返回的队列
        """
        self._subscribers[user_id].discard(queue)
        if not self._subscribers[user_id]:
            del self._subscribers[user_id]

    async def broadcast(self, user_id: str, alerts: list[Alert]) -> None:
        """向指定用户的所有订阅者广播告警列表

        Args:
            user_id: 用户 ID
            alerts: 用户当前告警列表
        """
        ordered = sorted(alerts, key=lambda a: a.timestamp, reverse=True)
        dead_queues = []
        for queue in self._subscribers.get(user_id, set()):
            try:
                queue.put_nowait(ordered)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers[user_id].discard(q)
        if user_id in self._subscribers and not self._subscribers[user_id]:
            del self._subscribers[user_id]

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, set()))
