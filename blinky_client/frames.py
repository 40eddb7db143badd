"""
帧构造

一帧是长度固定的 RGB 序列，下标即 LED 编号。
"""

from typing import List, Tuple

from .config import ClientConfig
from .models import BLACK, GREEN, RED, RGB, DisplayData

Frame = Tuple[RGB, ...]


class FrameBuilder:
    """按 LED 编号设置颜色，最后生成不可变的帧"""

    def __init__(self, led_count: int):
        self._lights: List[RGB] = [BLACK] * led_count

    def with_all_lights_set_to(self, color: RGB) -> "FrameBuilder":
        self._lights = [color] * len(self._lights)
        return self

    def with_light_set_to(self, index: int, color: RGB) -> "FrameBuilder":
        self._lights[index] = color
        return self

    def build(self) -> Frame:
        return tuple(self._lights)


def status_color(data: DisplayData, now: float, config: ClientConfig) -> RGB:
    """状态灯颜色：最近收到过数据为绿（服务可达），否则为红"""
    if data.last_metrics_at is not None and now - data.last_metrics_at <= config.reachable_window:
        return GREEN
    return RED


def is_stale(data: DisplayData, now: float, config: ClientConfig) -> bool:
    """数据是否已过期（从未收到也算过期）"""
    return data.last_metrics_at is None or now - data.last_metrics_at > config.stale_window


def build_frame(data: DisplayData, now: float, config: ClientConfig) -> Frame:
    """
    根据当前显示数据构造一帧

    - 数据过期或没有任何主机：只在状态灯位置闪烁，亮 status_blink_period、灭 status_blink_period
    - 否则按 valid_slots 顺序依次点亮各主机颜色，多出的主机不显示
    """
    builder = FrameBuilder(config.serial.led_count).with_all_lights_set_to(BLACK)

    if is_stale(data, now, config) or not data.colors:
        blink_on = int(now // config.status_blink_period) % 2 == 0
        if blink_on:
            builder.with_light_set_to(config.status_slot, status_color(data, now, config))
        return builder.build()

    for slot, color in zip(config.valid_slots, data.colors):
        builder.with_light_set_to(slot, color)
    return builder.build()
