"""
配置管理模块

从 YAML 文件加载配置，支持环境变量覆盖；聚合服务地址通常由命令行给出
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PORT = 7272

# 灯带上实际可用的 LED 编号（3、8 号灯珠损坏）
DEFAULT_VALID_SLOTS = [0, 1, 2, 4, 5, 6, 7, 9, 10, 11, 12, 13]


def with_default_port(address: str, default_port: int = DEFAULT_PORT) -> str:
    """为不带端口的 server 地址补上默认端口（支持 [IPv6] 形式）"""
    if not address:
        return address
    _, sep, port = address.rpartition(":")
    if sep and port.isdigit():
        return address
    return f"{address}:{default_port}"


class SerialConfig(BaseModel):
    """串口设备配置"""
    port_pattern: str = Field(default="COM3", description="串口名需包含的字符串")
    baudrate: int = Field(default=115200, gt=0)
    write_timeout: float = Field(default=0.5, gt=0, description="单帧写入超时（秒）")
    led_count: int = Field(default=60, gt=0, description="灯带 LED 数量（帧长度）")


class ClientConfig(BaseSettings):
    """Client 配置模型"""

    model_config = SettingsConfigDict(
        env_prefix="BLINKY_CLIENT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    server: str = Field(default="", description="聚合服务地址 host[:port]")

    frame_period: float = Field(default=0.25, gt=0, description="渲染周期（秒）")
    stale_window: float = Field(default=2.0, gt=0, description="数据过期时间（秒）")
    reachable_window: float = Field(default=1.0, gt=0, description="判定聚合服务可达的最长静默（秒）")
    status_blink_period: float = Field(default=0.75, gt=0, description="状态灯亮/灭时长（秒）")
    status_slot: int = Field(default=0, ge=0, description="状态灯位置")

    reconnect_delay: float = Field(default=1.0, ge=0, description="断线重连等待（秒）")
    connect_timeout: float = Field(default=2.0, gt=0)
    read_timeout: float = Field(default=5.0, gt=0, description="两次快照之间允许的最长间隔（秒）")

    valid_slots: List[int] = Field(default_factory=lambda: list(DEFAULT_VALID_SLOTS))
    serial: SerialConfig = Field(default_factory=SerialConfig)

    log_level: str = Field(default="INFO", description="日志级别")

    @field_validator("server")
    @classmethod
    def _normalize_server(cls, value: str) -> str:
        return with_default_port(value.strip())

    @model_validator(mode="after")
    def _check_slots(self):
        led_count = self.serial.led_count
        for slot in self.valid_slots + [self.status_slot]:
            if not 0 <= slot < led_count:
                raise ValueError(f"LED slot {slot} outside strip of {led_count} LEDs")
        if len(set(self.valid_slots)) != len(self.valid_slots):
            raise ValueError("valid_slots must not contain duplicates")
        return self

    @property
    def metrics_url(self) -> str:
        """快照流地址"""
        return f"http://{self.server}/metrics"

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


def load_config(config_path: Optional[str] = None) -> ClientConfig:
    """
    加载配置文件

    Args:
        config_path: 配置文件路径，默认取环境变量 BLINKY_CLIENT_CONFIG，
            文件不存在时使用默认配置
    """
    if config_path is None:
        config_path = os.getenv(
            "BLINKY_CLIENT_CONFIG",
            "blinky-client.yaml"
        )

    config_data = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    return ClientConfig(**config_data)


# 全局配置实例（延迟加载）
_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """获取全局配置实例"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
