"""
数据模型定义

- 聚合服务推送的快照格式
- LED 颜色
- 渲染循环与接收循环共享的显示状态
"""

from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, field_validator


class HostMetric(BaseModel):
    """快照中的单个主机条目"""

    model_config = ConfigDict(populate_by_name=True)

    host_name: StrictStr = Field(..., alias="hostName")
    cpu_usage: Union[StrictInt, StrictFloat] = Field(..., alias="cpuUsage")

    @field_validator("cpu_usage", mode="before")
    @classmethod
    def _reject_bool(cls, value):
        if isinstance(value, bool):
            raise ValueError("cpuUsage must be a number")
        return value

    @field_validator("cpu_usage")
    @classmethod
    def _check_range(cls, value):
        # NaN 不满足任何比较，同样在此被拒绝
        if not 0 <= value <= 1:
            raise ValueError("cpuUsage must be within [0, 1]")
        return value


class SnapshotMessage(BaseModel):
    """GET /metrics 流中的一行"""
    hosts: List[HostMetric]


class RGB(NamedTuple):
    """颜色，各分量取值 0~1"""
    r: float
    g: float
    b: float


BLACK = RGB(0.0, 0.0, 0.0)
RED = RGB(1.0, 0.0, 0.0)
GREEN = RGB(0.0, 1.0, 0.0)


def cpu_to_color(cpu_usage: float) -> RGB:
    """CPU 使用率映射为颜色：负载越高越红，越低越绿"""
    x = min(max(float(cpu_usage), 0.0), 1.0)
    return RGB(x, 1.0 - x, 0.0)


@dataclass(frozen=True)
class DisplayData:
    """某一时刻的显示数据（不可变，整体替换）"""
    colors: Tuple[RGB, ...] = ()
    last_metrics_at: Optional[float] = None


class MetricsState:
    """
    接收循环与渲染循环之间的共享状态

    接收循环整体替换 DisplayData（单次属性赋值），渲染循环每帧读取一次，无需加锁。
    """

    def __init__(self):
        self._data = DisplayData()

    def publish(self, colors, received_at: float):
        """发布一份新快照对应的颜色"""
        self._data = DisplayData(colors=tuple(colors), last_metrics_at=received_at)

    def clear_colors(self):
        """连接断开：清空颜色，保留最后一次收到数据的时间"""
        self._data = DisplayData(colors=(), last_metrics_at=self._data.last_metrics_at)

    def current(self) -> DisplayData:
        return self._data
