"""
BlinkyTape 串口设备

帧编码：每个 LED 依次写 R、G、B 三个字节（0~254），最后写一个 0xFF 提交整帧。
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import serial
from serial.tools import list_ports

from .config import SerialConfig
from .models import RGB

logger = logging.getLogger(__name__)

# 0xFF 是帧结束标记，颜色分量最大只能到 254
FRAME_END = 0xFF
MAX_CHANNEL = 254


class DeviceUnavailable(Exception):
    """串口打开或写入失败"""


class LedController(ABC):
    """LED 设备边界：接收固定长度的帧，成功返回或抛出 DeviceUnavailable"""

    @abstractmethod
    def render_frame(self, frame: Sequence[RGB]):
        ...

    @abstractmethod
    def close(self):
        ...


def encode_frame(frame: Sequence[RGB]) -> bytes:
    """把帧编码为 BlinkyTape 串口数据"""
    data = bytearray()
    for color in frame:
        for channel in color:
            value = round(min(max(channel, 0.0), 1.0) * 255)
            data.append(min(value, MAX_CHANNEL))
    data.append(FRAME_END)
    return bytes(data)


def find_blinky_port(pattern: str) -> Optional[str]:
    """返回第一个设备名包含 pattern 的串口，没有则返回 None"""
    for port in list_ports.comports():
        if pattern in port.device:
            return port.device
    return None


class SerialBlinkyTape(LedController):
    """通过串口驱动的 BlinkyTape"""

    def __init__(self, port: str, led_count: int, baudrate: int = 115200, write_timeout: float = 0.5):
        self.port = port
        self.led_count = led_count
        try:
            self._serial = serial.Serial(port, baudrate=baudrate, write_timeout=write_timeout)
        except (serial.SerialException, OSError, ValueError) as e:
            raise DeviceUnavailable(f"Failure to connect to blinky on port {port} due to: {e}") from e

    def render_frame(self, frame: Sequence[RGB]):
        if len(frame) != self.led_count:
            raise ValueError(f"Frame has {len(frame)} lights, device expects {self.led_count}")
        try:
            self._serial.write(encode_frame(frame))
            self._serial.flush()
        except (serial.SerialException, OSError) as e:
            raise DeviceUnavailable(f"Write to {self.port} failed: {e}") from e

    def close(self):
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as e:
            logger.debug(f"Error closing {self.port}: {e}")


def open_blinky_tape(config: SerialConfig) -> SerialBlinkyTape:
    """
    查找并打开 BlinkyTape

    Raises:
        DeviceUnavailable: 没有匹配的串口或打开失败
    """
    port = find_blinky_port(config.port_pattern)
    if port is None:
        raise DeviceUnavailable(f"No serial port matching '{config.port_pattern}'")
    return SerialBlinkyTape(
        port,
        led_count=config.led_count,
        baudrate=config.baudrate,
        write_timeout=config.write_timeout
    )
