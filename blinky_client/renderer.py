"""
LED 渲染循环

每 frame_period 读取一次共享状态并输出一帧，与接收循环互不阻塞：
即使接收循环卡住，状态灯也照常闪烁。串口句柄只由本循环持有，
任何写入错误都会关闭句柄，下一帧重新打开。

串口状态：DISCONNECTED -> CONNECTED -> DISCONNECTED
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from .config import ClientConfig
from .device import DeviceUnavailable, LedController, open_blinky_tape
from .frames import build_frame
from .models import MetricsState

logger = logging.getLogger(__name__)


class LedRenderer:
    """LED 渲染器"""

    def __init__(
        self,
        config: ClientConfig,
        state: MetricsState,
        opener: Optional[Callable[[], LedController]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.config = config
        self.state = state
        self.connected = False
        self._opener = opener or (lambda: open_blinky_tape(config.serial))
        self._clock = clock
        self._controller: Optional[LedController] = None
        self._failure_logged = False

    async def _ensure_controller(self) -> bool:
        """按需打开设备，失败时跳过本帧"""
        if self._controller is not None:
            return True
        try:
            self._controller = await asyncio.to_thread(self._opener)
        except DeviceUnavailable as e:
            self._on_failure(e)
            return False
        return True

    def _on_failure(self, error: Exception):
        """
        设备不可用：关闭句柄，下一帧重新打开

        每次从可用变为不可用只记录一行日志；从未连上时只记录第一次失败。
        """
        if self.connected:
            logger.warning(f"Blinky device appears to have disconnected: {error}")
        elif not self._failure_logged:
            logger.warning(f"Blinky device unavailable: {error}")
        self._failure_logged = True
        self.connected = False
        self.close()

    async def draw_once(self):
        """渲染一帧"""
        if not await self._ensure_controller():
            return

        frame = build_frame(self.state.current(), self._clock(), self.config)
        try:
            await asyncio.to_thread(self._controller.render_frame, frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # 帧长度不符、编码失败等同样按设备故障处理
            self._on_failure(e)
            return

        if not self.connected:
            logger.info("Found connection to Blinky device")
            self.connected = True
            self._failure_logged = False

    def close(self):
        """关闭并丢弃设备句柄"""
        if self._controller is not None:
            self._controller.close()
            self._controller = None

    async def run(self):
        """运行渲染循环（不会主动退出）"""
        period = self.config.frame_period
        logger.info(f"Starting LED render loop (frame_period={period}s)")

        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        try:
            while True:
                try:
                    await self.draw_once()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if not self._failure_logged:
                        logger.error(f"Render loop error: {e}", exc_info=True)
                        self._failure_logged = True
                    self.connected = False
                    self.close()

                next_tick += period
                delay = next_tick - loop.time()
                if delay < 0:
                    next_tick = loop.time()
                    delay = 0
                await asyncio.sleep(delay)
        finally:
            self.close()
