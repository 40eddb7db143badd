"""
Blinky Metrics Client 主程序入口

使用方式:
    blinky-client <server[:port]>
    或
    python -m blinky_client <server[:port]>
"""

import asyncio
import logging
import sys
from typing import List, Optional

from blinky_client.app import run_client
from blinky_client.config import ClientConfig, get_config, with_default_port

USAGE = "Usage: blinky-client <server[:port]>"


def setup_logging(config: ClientConfig):
    """配置日志"""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main(argv: Optional[List[str]] = None):
    """主程序入口"""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(USAGE, file=sys.stderr)
        sys.exit(1)

    # 命令行参数优先于配置文件与环境变量
    config = get_config().model_copy(update={"server": with_default_port(args[0].strip())})
    setup_logging(config)

    logging.getLogger("blinky_client").info(
        f"BlinkyMetricsClient started, attempting to connect to: {config.server}"
    )

    try:
        asyncio.run(run_client(config))
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
