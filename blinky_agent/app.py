"""
采集上报循环

每个采样周期：采集 CPU -> POST 到聚合服务 -> 休眠到下一个周期。
采样或上报失败都不会终止进程，只在状态切换时记录一行日志。
"""

import asyncio
import logging
import socket
from typing import Optional

import httpx

from .collectors import SamplingUnavailable, get_cpu_fraction
from .config import AgentConfig
from .models import HostSample

logger = logging.getLogger(__name__)


class TransportFailure(Exception):
    """上报失败（连接错误、超时或非 2xx 响应）"""


def resolve_host_name() -> str:
    """获取本机主机名，失败时返回 "Unknown" """
    try:
        host_name = socket.gethostname()
    except OSError:
        return "Unknown"
    return host_name or "Unknown"


async def post_sample(
    client: httpx.AsyncClient,
    url: str,
    sample: HostSample,
    timeout: float
):
    """
    上报一次采样

    Args:
        client: HTTP 客户端
        url: 上报地址
        sample: 采样结果
        timeout: 总超时（秒）

    Raises:
        TransportFailure: 上报失败
    """
    try:
        response = await asyncio.wait_for(
            client.post(url, json=sample.to_payload()),
            timeout=timeout
        )
    except asyncio.TimeoutError as e:
        raise TransportFailure(f"timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise TransportFailure(str(e) or type(e).__name__) from e

    if not response.is_success:
        raise TransportFailure(f"HTTP {response.status_code}: {response.text.strip()}")


class MetricsAgent:
    """CPU 指标上报代理"""

    def __init__(self, config: AgentConfig, host_name: Optional[str] = None):
        self.config = config
        self.host_name = host_name or resolve_host_name()
        self.connected = False
        self.sampling_ok = True

    async def sample(self) -> float:
        """采集一次 CPU 使用率，失败时返回 0.0"""
        try:
            value = await get_cpu_fraction()
        except SamplingUnavailable as e:
            if self.sampling_ok:
                logger.warning(f"CPU sampling failed, reporting 0.0: {e}")
                self.sampling_ok = False
            return 0.0

        if not self.sampling_ok:
            logger.info("CPU sampling recovered")
            self.sampling_ok = True
        return value

    def _set_connected(self, connected: bool, error: Optional[Exception] = None):
        """记录连接状态变化（状态不变时不输出日志）"""
        if connected and not self.connected:
            logger.info(f"Successfully connected to {self.config.server}")
        elif not connected and self.connected:
            logger.warning(f"Attempting to reconnect to {self.config.server} due to: {error}")
        self.connected = connected

    async def tick(self, client: httpx.AsyncClient):
        """执行一个采样周期的工作"""
        sample = HostSample(host_name=self.host_name, cpu_usage=await self.sample())
        try:
            await post_sample(client, self.config.metrics_url, sample, self.config.timeout)
        except TransportFailure as e:
            self._set_connected(False, e)
        else:
            self._set_connected(True)

    async def run(self, client: Optional[httpx.AsyncClient] = None):
        """运行上报循环（不会主动退出）"""
        logger.info(
            f"Reporting CPU usage of {self.host_name} to {self.config.metrics_url} "
            f"every {self.config.sample_period}s"
        )

        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=self.config.timeout)

        loop = asyncio.get_running_loop()
        try:
            while True:
                started = loop.time()
                try:
                    await self.tick(client)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Agent loop error: {e}", exc_info=True)
                    self._set_connected(False, e)
                elapsed = loop.time() - started
                await asyncio.sleep(max(self.config.sample_period - elapsed, 0))
        finally:
            if owns_client:
                await client.aclose()
