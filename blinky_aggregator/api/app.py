"""
FastAPI 应用配置

注册路由：首页、指标上报与指标流。
"""

import logging

from fastapi import FastAPI

from .. import __version__
from .routers import home, metrics

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    创建 FastAPI 应用实例

    后台任务（推送、清理）由 main.py 与 HTTP 服务并发启动，不在应用内部创建。
    """
    app = FastAPI(
        title="Blinky Metrics Aggregator",
        description="主机 CPU 指标聚合与推送服务",
        version=__version__,
        docs_url=None,
        redoc_url=None,
    )

    app.include_router(home.router)
    app.include_router(metrics.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Blinky Metrics Aggregator starting up...")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Blinky Metrics Aggregator shutting down...")

    return app
