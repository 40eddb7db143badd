"""
Blinky Metrics Agent 主程序入口

使用方式:
    blinky-agent <server[:port]>
    或
    python -m blinky_agent <server[:port]>
"""

import asyncio
import logging
import sys
from typing import List, Optional

from blinky_agent.app import MetricsAgent
from blinky_agent.collectors import SamplingUnavailable, init_cpu_sampler
from blinky_agent.config import AgentConfig, get_config, with_default_port

USAGE = "Usage: blinky-agent <server[:port]>"


def setup_logging(config: AgentConfig):
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

    logger = logging.getLogger("blinky_agent")
    logger.info("Starting Blinky Agent...")

    try:
        init_cpu_sampler()
    except SamplingUnavailable as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        asyncio.run(MetricsAgent(config).run())
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
