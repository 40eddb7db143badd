"""
依赖注入模块

提供 FastAPI 依赖项，测试中可通过 dependency_overrides 替换。
"""

from ..config import AppConfig, get_config
from ..models import HostRegistry, registry
from ..subscribers import SubscriberHub, hub


async def get_registry() -> HostRegistry:
    """获取主机表实例"""
    return registry


async def get_hub() -> SubscriberHub:
    """获取订阅者集合实例"""
    return hub


async def get_app_config() -> AppConfig:
    """获取应用配置"""
    return get_config()
