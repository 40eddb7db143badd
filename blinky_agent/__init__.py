"""
Blinky Metrics Agent - 主机 CPU 采集代理

每 500ms 采集一次本机 CPU 使用率，并 POST 到聚合服务。
"""

__version__ = "1.0.0"
