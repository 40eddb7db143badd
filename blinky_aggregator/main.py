"""
主程序入口

并发运行三个任务：
1. HTTP 服务（首页、指标上报、指标流）
2. 快照推送循环
3. 主机清理任务
"""

import asyncio
import logging
import sys
from pathlib import Path

import uvicorn

from . import __version__
from .broadcaster import run_broadcaster
from .config import get_config
from .pruner import run_pruner
from .subscribers import hub

logger = logging.getLogger(__name__)


def setup_logging():
    """配置日志"""
    config = get_config()

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class BlinkyServer(uvicorn.Server):
    """
    uvicorn 服务

    退出时先关闭所有快照流，再进入 uvicorn 的优雅关闭
    """

    async def shutdown(self, sockets=None):
        await hub.close_all()
        await super().shutdown(sockets=sockets)


async def run_api_server():
    """运行 HTTP 服务"""
    from .api.app import create_app

    config = get_config()
    app = create_app()

    server_config = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False,
        # 快照流关闭后仍未结束的连接最多再等待这么久
        timeout_graceful_shutdown=1,
    )
    server = BlinkyServer(server_config)
    logger.info(f"BlinkyMetricsServer started, accepting connections on port {config.api.port}")
    await server.serve()


async def main():
    """主函数：启动所有任务"""
    setup_logging()
    logger.info("=" * 60)
    logger.info(f"Blinky Metrics Aggregator v{__version__}")
    logger.info("=" * 60)

    config = get_config()
    logger.info(
        f"Config loaded: API={config.api.host}:{config.api.port}, "
        f"broadcast={config.broadcast.period}s, "
        f"prune every {config.pruner.period}s after {config.pruner.window}s"
    )

    background = [
        asyncio.create_task(run_broadcaster()),
        asyncio.create_task(run_pruner()),
    ]

    try:
        await run_api_server()
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise
    finally:
        await hub.close_all()
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)


def cli():
    """命令行入口"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli()
