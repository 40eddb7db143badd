"""
配置加载模块

从 YAML 加载配置，支持 Pydantic 验证和环境变量覆盖。
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PORT = 7272


class APIConfig(BaseModel):
    """HTTP 服务配置"""
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT


class BroadcastConfig(BaseModel):
    """快照推送配置"""
    period: float = Field(default=0.5, gt=0, description="推送周期（秒）")
    flush_timeout: float = Field(default=2.0, gt=0, description="单个订阅者允许积压的最长时间（秒）")


class PrunerConfig(BaseModel):
    """主机清理配置"""
    period: float = Field(default=2.0, gt=0, description="清理任务周期（秒）")
    window: float = Field(default=5.0, gt=0, description="主机存活窗口（秒）")


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseSettings):
    """应用配置（完整配置）"""

    model_config = SettingsConfigDict(
        env_prefix="BLINKY_AGGREGATOR_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    api: APIConfig = Field(default_factory=APIConfig)
    broadcast: BroadcastConfig = Field(default_factory=BroadcastConfig)
    pruner: PrunerConfig = Field(default_factory=PrunerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def max_pending(self) -> int:
        """订阅者缓冲区容量：flush_timeout 内最多能积压的快照数"""
        return max(1, int(self.broadcast.flush_timeout / self.broadcast.period))

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


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 环境变量 BLINKY_AGGREGATOR_<SECTION>__<KEY>
    2. 参数指定的 YAML 路径
    3. 环境变量 BLINKY_AGGREGATOR_CONFIG 指定的 YAML 路径
    4. 默认配置
    """
    if config_path is None:
        config_path = os.environ.get(
            "BLINKY_AGGREGATOR_CONFIG",
            "blinky-aggregator.yaml"
        )

    raw_config = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}

    return AppConfig(**raw_config)


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
