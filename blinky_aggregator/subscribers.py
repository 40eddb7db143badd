"""
订阅者管理

每个 GET /metrics 长连接对应一个 Subscriber，由推送任务写入、由请求处理器读出。
订阅者集合使用独立的锁，与主机表的锁互不嵌套。

订阅者状态：ACTIVE -> CLOSING -> CLOSED
"""

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Optional, Set

from .config import get_config

logger = logging.getLogger(__name__)


class SubscriberState(str, Enum):
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class Subscriber:
    """
    单个流式订阅者

    内部为有界缓冲区：推送任务只做非阻塞写入，缓冲区写满说明该连接在
    flush_timeout 内没有把数据写出去，此时进入 CLOSING。
    """

    def __init__(self, hub: "SubscriberHub", remote_address: str, max_pending: int):
        self.remote_address = remote_address
        self.state = SubscriberState.ACTIVE
        self._hub = hub
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue(maxsize=max_pending)

    def offer(self, line: str) -> bool:
        """
        非阻塞地放入一行快照

        Returns:
            是否放入成功；订阅者非 ACTIVE 或缓冲区已满时返回 False
        """
        if self.state is not SubscriberState.ACTIVE:
            return False
        try:
            self._queue.put_nowait(line)
        except asyncio.QueueFull:
            return False
        return True

    def close(self):
        """进入 CLOSING：丢弃未发送的数据，并唤醒正在等待的 stream()"""
        if self.state is not SubscriberState.ACTIVE:
            return
        self.state = SubscriberState.CLOSING
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def stream(self) -> AsyncIterator[str]:
        """
        响应体迭代器

        连接断开时 Starlette 会取消该迭代器，finally 中释放订阅者。
        """
        try:
            while True:
                line = await self._queue.get()
                if line is None:
                    break
                yield line
        finally:
            if self.state is SubscriberState.ACTIVE:
                self.state = SubscriberState.CLOSING
            await self._hub.unsubscribe(self)


class SubscriberHub:
    """所有活跃订阅者的集合"""

    def __init__(self, max_pending: Optional[int] = None):
        self.max_pending = max_pending
        self._subscribers: Set[Subscriber] = set()
        self._lock = asyncio.Lock()

    async def subscribe(self, remote_address: str) -> Subscriber:
        """注册新的订阅者"""
        max_pending = self.max_pending or get_config().max_pending
        subscriber = Subscriber(self, remote_address, max_pending)
        async with self._lock:
            self._subscribers.add(subscriber)
        logger.info(f"Client connected: {remote_address}")
        return subscriber

    async def unsubscribe(self, subscriber: Subscriber):
        """移除订阅者（可重复调用）"""
        async with self._lock:
            removed = subscriber in self._subscribers
            self._subscribers.discard(subscriber)
        subscriber.state = SubscriberState.CLOSED
        if removed:
            logger.info(f"Client disconnected: {subscriber.remote_address}")

    async def publish(self, line: str) -> int:
        """
        向所有订阅者推送一行快照

        写入失败的订阅者被单独关闭，不影响其他订阅者。

        Returns:
            成功写入的订阅者数量
        """
        async with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for subscriber in subscribers:
            if subscriber.offer(line):
                delivered += 1
                continue
            if subscriber.state is SubscriberState.ACTIVE:
                logger.warning(
                    f"Dropping client {subscriber.remote_address}: "
                    f"{subscriber.pending} snapshots not flushed"
                )
            subscriber.close()
            await self.unsubscribe(subscriber)
        return delivered

    async def close_all(self):
        """关闭所有订阅者（进程退出时使用）"""
        async with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            subscriber.close()

    async def count(self) -> int:
        async with self._lock:
            return len(self._subscribers)


# 全局订阅者集合
hub = SubscriberHub()
