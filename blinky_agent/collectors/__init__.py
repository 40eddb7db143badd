"""
数据采集器模块
"""

from .cpu import SamplingUnavailable, get_cpu_fraction, init_cpu_sampler

__all__ = [
    "SamplingUnavailable",
    "get_cpu_fraction",
    "init_cpu_sampler",
]
