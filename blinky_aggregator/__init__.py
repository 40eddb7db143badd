"""
Blinky Metrics Aggregator - 中心聚合服务

负责：
- 接收 Agent 上报的 CPU 指标（POST /metrics）
- 维护带存活窗口的 主机 -> 最新指标 映射
- 每 500ms 向所有订阅的客户端推送快照（GET /metrics，NDJSON 流）
- 定期清理长时间未上报的主机
"""

__version__ = "1.0.0"
