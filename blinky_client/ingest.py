"""
快照接收循环

保持一条到聚合服务的 GET /metrics 长连接，逐行解析快照并发布到共享状态。
任何读取或解析错误都会关闭连接，等待 reconnect_delay 后重连。
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from .config import ClientConfig
from .models import MetricsState, SnapshotMessage, cpu_to_color

logger = logging.getLogger(__name__)


class TransportFailure(Exception):
    """连接失败、非 2xx 响应或连接被关闭"""


class ProtocolViolation(Exception):
    """收到的快照格式不正确"""


def parse_snapshot(line: str) -> Dict[str, Union[int, float]]:
    """
    解析一行快照

    Args:
        line: {"hosts": [{"hostName": "...", "cpuUsage": 0.4}, ...]}

    Returns:
        hostName -> cpuUsage，保持快照中的顺序

    Raises:
        ProtocolViolation: JSON 格式错误或字段不合法
    """
    try:
        message = SnapshotMessage.model_validate_json(line)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ProtocolViolation(f"{location}: {first.get('msg')}" if location else first.get("msg")) from e

    return {host.host_name: host.cpu_usage for host in message.hosts}


class MetricsIngest:
    """快照接收器"""

    def __init__(
        self,
        config: ClientConfig,
        state: MetricsState,
        clock: Callable[[], float] = time.monotonic
    ):
        self.config = config
        self.state = state
        self.connected = False
        self._clock = clock
        self._host_count: Optional[int] = None

    def handle_line(self, line: str):
        """处理一行快照：解析、转换颜色并整体替换共享状态"""
        metrics = parse_snapshot(line)

        if len(metrics) != self._host_count:
            self._host_count = len(metrics)
            logger.info(f"Receiving data for {self._host_count} hosts")

        self.state.publish(
            [cpu_to_color(cpu_usage) for cpu_usage in metrics.values()],
            self._clock()
        )

    def _set_connected(self, connected: bool, error: Optional[Exception] = None):
        """记录连接状态变化（状态不变时不输出日志）"""
        if connected and not self.connected:
            logger.info(f"Successfully connected to: {self.config.server}")
        elif not connected and self.connected:
            logger.warning(
                f"Attempting to automatically reconnect to {self.config.server} due to: {error}"
            )
        self.connected = connected

    async def consume(self, client: httpx.AsyncClient):
        """
        打开一次快照流并读到连接结束

        Raises:
            TransportFailure: 连接失败、非 2xx 响应或服务端关闭连接
            ProtocolViolation: 收到格式错误的快照
        """
        async with client.stream(
            "GET",
            self.config.metrics_url,
            headers={"Accept": "application/x-ndjson"}
        ) as response:
            if not response.is_success:
                raise TransportFailure(f"HTTP {response.status_code}")

            self._set_connected(True)
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    self.handle_line(line)
                except ProtocolViolation:
                    logger.debug(f"Dropping malformed snapshot: {line!r}")
                    raise

        raise TransportFailure("connection closed by server")

    async def run(self, client: Optional[httpx.AsyncClient] = None):
        """运行接收循环（不会主动退出）"""
        logger.info(f"Attempting to connect to: {self.config.metrics_url}")

        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.read_timeout, connect=self.config.connect_timeout)
            )

        try:
            while True:
                try:
                    await self.consume(client)
                except asyncio.CancelledError:
                    raise
                except (TransportFailure, ProtocolViolation, httpx.HTTPError) as e:
                    self._on_disconnect(e)
                except Exception as e:
                    logger.error(f"Ingest loop error: {e}", exc_info=True)
                    self._on_disconnect(e)

                await asyncio.sleep(self.config.reconnect_delay)
        finally:
            if owns_client:
                await client.aclose()

    def _on_disconnect(self, error: Exception):
        # 断线后不再显示旧颜色，由状态灯接管
        self.state.clear_colors()
        self._host_count = None
        self._set_connected(False, error)
