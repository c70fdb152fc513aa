# tlbridge/protocol/codes.py
from __future__ import annotations

from dataclasses import dataclass

TERMINATOR = "\r"

DEFAULT_EXCHANGE_TIMEOUT_MS = 1000
DEFAULT_POLL_INTERVAL_MS = 10

# A timed-out line is still owed an answer for this many timeouts past its
# deadline; later than that it is assumed lost.
LATE_REPLY_WINDOW_FACTOR = 4

# Lamp controller command codes. The device echoes the code on success.
LAMP_SELECT = "77025"      # <lamp>             0 = TL lamp
MANUAL_CONTROL = "77005"   # <0|1>              front-panel control off/on
SET_INTENSITY = "77020"    # <level> <unused>
SHUTTER = "77032"          # <unused> <0|1>     only ever sent as "0 1"

TL_LAMP = 0
MAX_INTENSITY = 255


@dataclass(frozen=True)
class DeviceExchange:
    """One request line and the echo code that acknowledges it."""
    code: str
    args: tuple[int, ...] = ()

    @property
    def line(self) -> str:
        return " ".join([self.code, *(str(a) for a in self.args)])

    @property
    def expected(self) -> str:
        return self.code


def select_tl_lamp() -> DeviceExchange:
    return DeviceExchange(LAMP_SELECT, (TL_LAMP,))


def manual_control(enabled: bool) -> DeviceExchange:
    return DeviceExchange(MANUAL_CONTROL, (1 if enabled else 0,))


def set_intensity(level: int) -> DeviceExchange:
    return DeviceExchange(SET_INTENSITY, (int(level), 0))


def open_device_shutter() -> DeviceExchange:
    return DeviceExchange(SHUTTER, (0, 1))
