"""
测试 LED 帧构造与渲染循环

覆盖：
- 主机颜色按 valid_slots 排布
- 状态灯（绿：服务可达无数据；红：服务不可达）
- BlinkyTape 串口编码
- 设备打开失败、写入失败后的恢复
"""

import logging
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import serial

from blinky_client.config import ClientConfig
from blinky_client.device import (
    DeviceUnavailable,
    LedController,
    SerialBlinkyTape,
    encode_frame,
    find_blinky_port,
    open_blinky_tape,
)
from blinky_client.frames import FrameBuilder, build_frame
from blinky_client.models import BLACK, GREEN, RED, RGB, DisplayData, MetricsState, cpu_to_color
from blinky_client.renderer import LedRenderer

# now // 0.75 为偶数时状态灯亮
BLINK_ON = 1.5
BLINK_OFF = 2.25


@pytest.fixture
def config():
    return ClientConfig(server="aggregator")


def lit(frame):
    return {index: color for index, color in enumerate(frame) if color != BLACK}


# =============================================================================
# 帧构造
# =============================================================================

def test_frame_builder():
    frame = (
        FrameBuilder(4)
        .with_all_lights_set_to(RED)
        .with_light_set_to(2, GREEN)
        .build()
    )
    assert frame == (RED, RED, GREEN, RED)


def test_hosts_fill_valid_slots_in_order(config):
    colors = [cpu_to_color(0.4), cpu_to_color(0), cpu_to_color(1), cpu_to_color(0.5)]
    data = DisplayData(colors=tuple(colors), last_metrics_at=BLINK_ON - 0.1)

    frame = build_frame(data, BLINK_ON, config)

    assert len(frame) == config.serial.led_count
    assert lit(frame) == {
        0: RGB(0.4, 0.6, 0.0),
        1: RGB(0.0, 1.0, 0.0),
        2: RGB(1.0, 0.0, 0.0),
        4: RGB(0.5, 0.5, 0.0),
    }


def test_extra_hosts_are_not_displayed(config):
    colors = tuple(cpu_to_color(i / 20) for i in range(20))
    data = DisplayData(colors=colors, last_metrics_at=BLINK_ON)

    frame = build_frame(data, BLINK_ON, config)

    for slot, color in zip(config.valid_slots, colors):
        assert frame[slot] == color
    lit_slots = {i for i, c in enumerate(frame) if c != BLACK}
    assert lit_slots <= set(config.valid_slots)
    assert frame[3] == BLACK and frame[8] == BLACK and frame[14] == BLACK


def test_no_hosts_server_reachable_blinks_green(config):
    data = DisplayData(colors=(), last_metrics_at=BLINK_ON - 0.4)

    assert lit(build_frame(data, BLINK_ON, config)) == {0: GREEN}
    assert lit(build_frame(data, BLINK_OFF, config)) == {}


def test_never_connected_blinks_red(config):
    data = DisplayData()

    assert lit(build_frame(data, BLINK_ON, config)) == {0: RED}
    assert lit(build_frame(data, BLINK_OFF, config)) == {}


def test_disconnected_without_colors_blinks_red_after_reachable_window(config):
    data = DisplayData(colors=(), last_metrics_at=BLINK_ON - 1.2)

    assert lit(build_frame(data, BLINK_ON, config)) == {0: RED}


def test_recent_colors_survive_brief_stall(config):
    data = DisplayData(colors=(cpu_to_color(0.3),), last_metrics_at=BLINK_ON - 1.5)

    assert lit(build_frame(data, BLINK_ON, config)) == {0: cpu_to_color(0.3)}


def test_stale_colors_replaced_by_heartbeat(config):
    data = DisplayData(colors=(cpu_to_color(0.3), cpu_to_color(0.6)), last_metrics_at=BLINK_ON - 2.5)

    assert lit(build_frame(data, BLINK_ON, config)) == {0: RED}


def test_custom_status_slot_and_strip_length():
    config = ClientConfig(server="h", valid_slots=[1, 2], status_slot=3, serial={"led_count": 4})

    frame = build_frame(DisplayData(), BLINK_ON, config)

    assert frame == (BLACK, BLACK, BLACK, RED)


# =============================================================================
# 串口设备
# =============================================================================

def test_encode_frame():
    data = encode_frame([RGB(1.0, 0.0, 0.0), RGB(0.5, 0.5, 0.0), RGB(0.0, 0.0, 2.0)])

    assert data == bytes([254, 0, 0, 128, 128, 0, 0, 0, 254, 0xFF])


def test_find_blinky_port():
    ports = [SimpleNamespace(device="/dev/ttyS0"), SimpleNamespace(device="COM3")]
    with patch("blinky_client.device.list_ports.comports", return_value=ports):
        assert find_blinky_port("COM3") == "COM3"
        assert find_blinky_port("ttyACM") is None


def test_open_without_matching_port():
    with patch("blinky_client.device.list_ports.comports", return_value=[]):
        with pytest.raises(DeviceUnavailable, match="COM3"):
            open_blinky_tape(ClientConfig(server="h").serial)


def test_serial_open_failure():
    with patch("blinky_client.device.serial.Serial", side_effect=serial.SerialException("busy")):
        with pytest.raises(DeviceUnavailable, match="busy"):
            SerialBlinkyTape("COM3", led_count=2)


def test_serial_render_and_write_failure():
    port = MagicMock()
    with patch("blinky_client.device.serial.Serial", return_value=port):
        tape = SerialBlinkyTape("COM3", led_count=2)

    tape.render_frame((RED, GREEN))
    port.write.assert_called_once_with(bytes([254, 0, 0, 0, 254, 0, 0xFF]))

    port.write.side_effect = serial.SerialTimeoutException("write timeout")
    with pytest.raises(DeviceUnavailable):
        tape.render_frame((RED, GREEN))

    with pytest.raises(ValueError):
        tape.render_frame((RED,))

    tape.close()
    port.close.assert_called_once()


# =============================================================================
# 渲染循环
# =============================================================================

class FakeController(LedController):
    def __init__(self, fail=False):
        self.fail = fail
        self.frames = []
        self.closed = False

    def render_frame(self, frame):
        if self.fail:
            raise DeviceUnavailable("unplugged")
        self.frames.append(frame)

    def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_renderer_skips_tick_when_device_missing(config, caplog):
    opener = MagicMock(side_effect=DeviceUnavailable("No serial port matching 'COM3'"))
    renderer = LedRenderer(config, MetricsState(), opener=opener, clock=lambda: BLINK_ON)

    with caplog.at_level(logging.INFO, logger="blinky_client.renderer"):
        await renderer.draw_once()
        await renderer.draw_once()

    assert opener.call_count == 2
    assert renderer.connected is False
    assert caplog.text.count("Blinky device unavailable") == 1


@pytest.mark.asyncio
async def test_renderer_draws_current_state(config, caplog):
    controller = FakeController()
    state = MetricsState()
    state.publish([cpu_to_color(0.4)], BLINK_ON)
    renderer = LedRenderer(config, state, opener=lambda: controller, clock=lambda: BLINK_ON)

    with caplog.at_level(logging.INFO, logger="blinky_client.renderer"):
        await renderer.draw_once()
        await renderer.draw_once()

    assert len(controller.frames) == 2
    assert lit(controller.frames[0]) == {0: RGB(0.4, 0.6, 0.0)}
    assert caplog.text.count("Found connection to Blinky device") == 1


@pytest.mark.asyncio
async def test_renderer_reopens_after_write_failure(config, caplog):
    broken = FakeController(fail=True)
    healthy = FakeController()
    controllers = iter([FakeController(), broken, healthy])
    renderer = LedRenderer(config, MetricsState(), opener=lambda: next(controllers), clock=lambda: BLINK_ON)

    with caplog.at_level(logging.INFO, logger="blinky_client.renderer"):
        await renderer.draw_once()
        renderer.close()
        await renderer.draw_once()
        assert broken.closed is True
        assert renderer.connected is False
        await renderer.draw_once()

    assert renderer.connected is True
    assert lit(healthy.frames[0]) == {0: RED}
    assert caplog.text.count("appears to have disconnected") == 1


def test_client_main_without_server_prints_usage(capsys):
    from blinky_client.__main__ import main

    with pytest.raises(SystemExit) as exc:
        main([])

    assert exc.value.code == 1
    assert "Usage: blinky-client" in capsys.readouterr().err


class FaultyController(FakeController):
    """写入时抛出非串口类错误"""

    def render_frame(self, frame):
        raise ValueError("cannot convert float NaN to integer")


@pytest.mark.asyncio
async def test_renderer_treats_frame_errors_as_device_failure(config, caplog):
    first = FakeController()
    faulty = [FaultyController(), FaultyController(), FaultyController()]
    healthy = FakeController()
    controllers = iter([first, *faulty, healthy])
    renderer = LedRenderer(config, MetricsState(), opener=lambda: next(controllers), clock=lambda: BLINK_ON)

    with caplog.at_level(logging.INFO, logger="blinky_client.renderer"):
        await renderer.draw_once()
        for controller in faulty:
            await renderer.draw_once()
            assert controller.closed is True
            assert renderer.connected is False
        await renderer.draw_once()

    failures = [r for r in caplog.records if r.levelno >= logging.WARNING]
    assert len(failures) == 1
    assert "appears to have disconnected" in failures[0].getMessage()
    assert caplog.text.count("Found connection to Blinky device") == 2
    assert renderer.connected is True
    assert len(healthy.frames) == 1
