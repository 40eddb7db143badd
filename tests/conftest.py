"""
公共测试夹具
"""

import os
import sys
from pathlib import Path

import pytest

# 添加项目路径到 sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from blinky_agent import config as agent_config
from blinky_aggregator import config as aggregator_config
from blinky_client import config as client_config


class FakeClock:
    """可手动推进的单调时钟"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """每个测试使用默认配置，不受本机环境变量和配置文件影响"""
    for name in list(os.environ):
        if name.startswith("BLINKY_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)

    agent_config.reset_config()
    aggregator_config.reset_config()
    client_config.reset_config()
    yield
    agent_config.reset_config()
    aggregator_config.reset_config()
    client_config.reset_config()
