"""
数据模型定义

包括：
- Pydantic 请求/响应模型（POST /metrics 请求体、快照推送格式）
- 内存中的主机指标表
- 全局状态管理
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, field_validator

logger = logging.getLogger(__name__)

# JSON 数字原样保留：整数仍为整数，浮点数不做舍入
CpuUsage = Union[StrictInt, StrictFloat]


# =============================================================================
# Pydantic 模型（用于 API 和数据验证）
# =============================================================================

class HostSample(BaseModel):
    """Agent 上报的单条 CPU 指标"""

    model_config = ConfigDict(populate_by_name=True)

    host_name: StrictStr = Field(..., alias="hostName", min_length=1)
    cpu_usage: CpuUsage = Field(..., alias="cpuUsage")

    @field_validator("cpu_usage", mode="before")
    @classmethod
    def _reject_bool(cls, value):
        # JSON 的 true/false 不是数字
        if isinstance(value, bool):
            raise ValueError("cpuUsage must be a number")
        return value

    @field_validator("cpu_usage")
    @classmethod
    def _check_range(cls, value):
        if not 0 <= value <= 1:
            raise ValueError("cpuUsage must be within [0, 1]")
        return value


class HostMetric(BaseModel):
    """快照中的单个主机条目"""

    model_config = ConfigDict(populate_by_name=True)

    host_name: str = Field(..., alias="hostName")
    cpu_usage: CpuUsage = Field(..., alias="cpuUsage")


class SnapshotMessage(BaseModel):
    """推送给订阅者的快照（GET /metrics 每行一条）"""
    hosts: List[HostMetric] = Field(default_factory=list)

    def to_line(self) -> str:
        """序列化为一行 NDJSON（含换行符）"""
        return self.model_dump_json(by_alias=True) + "\n"


# =============================================================================
# 内存主机表（全局状态）
# =============================================================================

@dataclass
class HostRecord:
    """主机的最新指标"""
    host_name: str
    cpu_usage: Union[int, float]
    last_updated: float             # 单调时钟，用于存活判断
    last_updated_at: datetime       # 墙上时间，仅用于展示


class HostRegistry:
    """
    主机指标表（metricsPerHost）

    - 以 hostName 为键，每个主机只有一条记录
    - 主机顺序为首次注册顺序，主机集合不变时快照顺序保持稳定
    - 所有读写在同一把锁下完成，清理与上报、快照构造之间互斥
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._records: Dict[str, HostRecord] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, sample: HostSample) -> bool:
        """
        写入一条上报数据

        Returns:
            是否为新注册的主机
        """
        async with self._lock:
            now = self._clock()
            record = self._records.get(sample.host_name)
            if record is None:
                self._records[sample.host_name] = HostRecord(
                    host_name=sample.host_name,
                    cpu_usage=sample.cpu_usage,
                    last_updated=now,
                    last_updated_at=datetime.now(),
                )
                created = True
            else:
                record.cpu_usage = sample.cpu_usage
                record.last_updated = now
                record.last_updated_at = datetime.now()
                created = False

        if created:
            logger.info(f"Registering new host: {sample.host_name}")
        return created

    async def prune(self, window: float) -> List[str]:
        """
        移除超过存活窗口未上报的主机

        Args:
            window: 存活窗口（秒）

        Returns:
            被移除的主机名列表
        """
        async with self._lock:
            now = self._clock()
            expired = [
                name for name, record in self._records.items()
                if now - record.last_updated > window
            ]
            for name in expired:
                del self._records[name]
        return expired

    async def snapshot(self, window: Optional[float] = None) -> SnapshotMessage:
        """
        构造一致的时间点快照

        Args:
            window: 存活窗口（秒）；给定时，已过期但尚未被清理的主机不会出现在快照中
        """
        async with self._lock:
            now = self._clock()
            hosts = [
                HostMetric(host_name=record.host_name, cpu_usage=record.cpu_usage)
                for record in self._records.values()
                if window is None or now - record.last_updated <= window
            ]
        return SnapshotMessage(hosts=hosts)

    async def records(self) -> List[HostRecord]:
        """获取所有主机记录的副本（按注册顺序）"""
        async with self._lock:
            return [
                HostRecord(r.host_name, r.cpu_usage, r.last_updated, r.last_updated_at)
                for r in self._records.values()
            ]

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)


# 全局主机表实例
registry = HostRegistry()
