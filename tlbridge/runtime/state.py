# tlbridge/runtime/state.py
from __future__ import annotations

import threading
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class LampState:
    """
    Logical lamp state: what the device should currently be doing.

    The shutter is emulated, so the intensity pushed to the device is derived
    from both fields.
    """
    shutter_open: bool = False
    intensity: int = 0

    @property
    def device_intensity(self) -> int:
        return self.intensity if self.shutter_open else 0


class StateStore:
    """
    Holder of the current LampState snapshot.

    Setters swap in a new frozen snapshot; readers never see a partial update.
    Values are not validated here.
    """

    def __init__(self, initial: LampState | None = None):
        self._lock = threading.Lock()
        self._state = initial or LampState()

    def get(self) -> LampState:
        with self._lock:
            return self._state

    def set_intensity(self, level: int) -> LampState:
        with self._lock:
            self._state = replace(self._state, intensity=int(level))
            return self._state

    def set_shutter(self, open_: bool) -> LampState:
        with self._lock:
            self._state = replace(self._state, shutter_open=bool(open_))
            return self._state
