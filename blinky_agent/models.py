"""
数据模型定义

使用 Pydantic 定义上报数据结构
"""

from pydantic import BaseModel, ConfigDict, Field


class HostSample(BaseModel):
    """单次采样结果（POST /metrics 请求体）"""

    model_config = ConfigDict(populate_by_name=True)

    host_name: str = Field(..., alias="hostName", description="主机名")
    cpu_usage: float = Field(..., alias="cpuUsage", ge=0.0, le=1.0, description="CPU 使用率 (0-1)")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)
