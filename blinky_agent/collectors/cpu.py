"""
CPU 采集器

通过 psutil 计算两次调用之间的整机 CPU 使用率
"""

import psutil


class SamplingUnavailable(Exception):
    """CPU 采样不可用"""


def init_cpu_sampler():
    """
    初始化采样器

    psutil 首次调用 cpu_percent(interval=None) 只记录基线，返回值无意义。

    Raises:
        SamplingUnavailable: 当前平台无法采集 CPU 数据
    """
    try:
        psutil.cpu_percent(interval=None)
    except Exception as e:
        raise SamplingUnavailable(f"Unable to initialize CPU sampling: {e}") from e


async def get_cpu_fraction() -> float:
    """
    采集 CPU 使用率

    Returns:
        0~1 的浮点数（自上次调用以来的平均值）

    Raises:
        SamplingUnavailable: 采样失败
    """
    try:
        percent = psutil.cpu_percent(interval=None)
    except Exception as e:
        raise SamplingUnavailable(str(e)) from e

    return min(max(percent / 100.0, 0.0), 1.0)
