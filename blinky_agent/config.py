"""
配置管理模块

从 YAML 文件加载配置，支持环境变量覆盖；聚合服务地址通常由命令行给出
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PORT = 7272


def with_default_port(address: str, default_port: int = DEFAULT_PORT) -> str:
    """为不带端口的 server 地址补上默认端口（支持 [IPv6] 形式）"""
    if not address:
        return address
    _, sep, port = address.rpartition(":")
    if sep and port.isdigit():
        return address
    return f"{address}:{default_port}"


class AgentConfig(BaseSettings):
    """Agent 配置模型"""

    model_config = SettingsConfigDict(env_prefix="BLINKY_AGENT_", extra="ignore")

    server: str = Field(default="", description="聚合服务地址 host[:port]")
    sample_period: float = Field(default=0.5, gt=0, description="采样周期（秒）")
    post_timeout: Optional[float] = Field(default=None, gt=0, description="上报总超时（秒），默认等于采样周期")
    log_level: str = Field(default="INFO", description="日志级别")

    @field_validator("server")
    @classmethod
    def _normalize_server(cls, value: str) -> str:
        return with_default_port(value.strip())

    @property
    def metrics_url(self) -> str:
        """上报地址"""
        return f"http://{self.server}/metrics"

    @property
    def timeout(self) -> float:
        """单次上报的总超时，不超过采样周期"""
        if self.post_timeout is None:
            return self.sample_period
        return min(self.post_timeout, self.sample_period)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # 环境变量优先于 YAML 文件中的值
        return env_settings, init_settings


def load_config(config_path: Optional[str] = None) -> AgentConfig:
    """
    加载配置文件

    Args:
        config_path: 配置文件路径，默认取环境变量 BLINKY_AGENT_CONFIG，
            文件不存在时使用默认配置

    Returns:
        AgentConfig 实例
    """
    if config_path is None:
        config_path = os.getenv(
            "BLINKY_AGENT_CONFIG",
            "blinky-agent.yaml"
        )

    config_data = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    return AgentConfig(**config_data)


# 全局配置实例（延迟加载）
_config: Optional[AgentConfig] = None


def get_config() -> AgentConfig:
    """获取全局配置实例"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
