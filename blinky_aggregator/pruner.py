"""
主机清理任务

每 PRUNE_PERIOD 移除超过 PRUNE_WINDOW 未上报的主机。
"""

import asyncio
import logging
from typing import List

from .config import get_config
from .models import HostRegistry, registry

logger = logging.getLogger(__name__)


async def prune_once(host_registry: HostRegistry, window: float) -> List[str]:
    """执行一次清理，每个被移除的主机记录一行日志"""
    removed = await host_registry.prune(window)
    for host_name in removed:
        logger.info(f"Removing inactive host: {host_name}")
    return removed


async def run_pruner():
    """运行清理循环"""
    config = get_config()
    period = config.pruner.period
    window = config.pruner.window

    logger.info(f"Starting pruner task (period={period}s, window={window}s)")

    while True:
        try:
            await prune_once(registry, window)
        except asyncio.CancelledError:
            logger.info("Pruner task cancelled")
            raise
        except Exception as e:
            logger.error(f"Pruner error: {e}", exc_info=True)

        await asyncio.sleep(period)
