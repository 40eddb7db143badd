"""
快照推送循环

每 BROADCAST_PERIOD 构造一次快照，并写入所有订阅者。
主机集合为空时同样推送 {"hosts": []}，兼作连接保活。
"""

import asyncio
import logging

from .config import get_config
from .models import HostRegistry, registry
from .subscribers import SubscriberHub, hub

logger = logging.getLogger(__name__)


async def broadcast_once(
    host_registry: HostRegistry,
    subscriber_hub: SubscriberHub,
    window: float
) -> str:
    """
    构造并推送一次快照

    Returns:
        推送的 NDJSON 行
    """
    snapshot = await host_registry.snapshot(window)
    line = snapshot.to_line()
    delivered = await subscriber_hub.publish(line)
    logger.debug(f"Broadcast {len(snapshot.hosts)} hosts to {delivered} clients")
    return line


async def run_broadcaster():
    """
    运行推送循环

    按固定节拍推送，单次推送耗时不会累积成漂移。
    """
    config = get_config()
    period = config.broadcast.period
    window = config.pruner.window

    logger.info(f"Starting broadcast loop (period={period}s)")

    loop = asyncio.get_running_loop()
    next_tick = loop.time()
    while True:
        try:
            await broadcast_once(registry, hub, window)
        except asyncio.CancelledError:
            logger.info("Broadcast task cancelled")
            raise
        except Exception as e:
            logger.error(f"Broadcast loop error: {e}", exc_info=True)

        next_tick += period
        delay = next_tick - loop.time()
        if delay < 0:
            # 落后超过一个周期，从当前时间重新对齐
            next_tick = loop.time()
            delay = 0
        await asyncio.sleep(delay)
