"""
Blinky Metrics Client - LED 灯带显示端

订阅聚合服务的快照流，把每台主机的 CPU 负载画到 BlinkyTape 灯带上。
"""

__version__ = "1.0.0"
