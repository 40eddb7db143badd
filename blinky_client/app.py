"""
客户端主流程

接收循环与渲染循环并发运行，通过 MetricsState 共享数据。
"""

import asyncio

from .config import ClientConfig
from .ingest import MetricsIngest
from .models import MetricsState
from .renderer import LedRenderer


async def run_client(config: ClientConfig):
    """运行客户端，直到被取消"""
    state = MetricsState()
    ingest = MetricsIngest(config, state)
    renderer = LedRenderer(config, state)

    await asyncio.gather(ingest.run(), renderer.run())
