# tlbridge/transport/sim.py
"""
In-process simulation of the TL lamp controller.

Lets the bridge run (and be tested end to end) without hardware. Each
CR-terminated line written to the transport is interpreted like the real
controller would, internal state is updated, and the echo code is queued as
the reply. Replies can be delayed, replaced by an error token, or suppressed
per code to exercise mismatch and timeout paths.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Iterable, List, Optional

from .base import Transport
from .errors import TransportIOError, TransportOpenError

TERMINATOR = b"\r"


class SimLampTransport(Transport):
    def __init__(
        self,
        *,
        timeout: float = 0.01,
        response_delay_s: float = 0.0,
        fault_codes: Optional[Iterable[str]] = None,
        silent_codes: Optional[Iterable[str]] = None,
        fault_reply: str = "E01",
        logger: Optional[logging.Logger] = None,
    ):
        self.timeout = float(timeout)
        self.response_delay_s = float(response_delay_s)
        self.fault_codes = set(fault_codes or ())
        self.silent_codes = set(silent_codes or ())
        self.fault_reply = str(fault_reply)

        self._log = logger or logging.getLogger(__name__)
        self._cond = threading.Condition()
        self._open = False
        self._rx_partial = b""
        # (due_monotonic, payload)
        self._outbox: List[tuple[float, bytes]] = []

        self.received: List[str] = []
        self.registers: Dict[str, object] = {
            "lamp": None,
            "manual": True,
            "intensity": 0,
            "shutter": False,
        }

    # ---------------- lifecycle ----------------
    def open(self) -> None:
        with self._cond:
            if self._open:
                raise TransportOpenError("simulated port already open")
            self._open = True
            self._rx_partial = b""
            self._outbox.clear()

    def close(self) -> None:
        with self._cond:
            self._open = False
            self._outbox.clear()
            self._cond.notify_all()

    def is_open(self) -> bool:
        with self._cond:
            return self._open

    # ---------------- I/O ----------------
    def write(self, data: bytes) -> int:
        with self._cond:
            if not self._open:
                raise TransportIOError("write while transport not open")
            self._rx_partial += bytes(data)
            while TERMINATOR in self._rx_partial:
                raw, _, self._rx_partial = self._rx_partial.partition(TERMINATOR)
                self._handle_line(raw.decode("ascii", errors="replace").strip())
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        deadline = time.monotonic() + self.timeout
        with self._cond:
            while True:
                if not self._open:
                    raise TransportIOError("read while transport not open")
                now = time.monotonic()
                if self._outbox and self._outbox[0][0] <= now:
                    due, payload = self._outbox.pop(0)
                    if len(payload) > n:
                        self._outbox.insert(0, (due, payload[n:]))
                    return payload[:n]
                if now >= deadline:
                    return b""
                wake = deadline
                if self._outbox:
                    wake = min(wake, self._outbox[0][0])
                self._cond.wait(max(0.0, wake - now))

    def flush(self) -> None:
        if not self.is_open():
            raise TransportIOError("flush while transport not open")

    # ---------------- device model ----------------
    def _handle_line(self, line: str) -> None:
        if not line:
            return
        self.received.append(line)
        code, *args = line.split(" ")

        if code in self.silent_codes:
            self._log.debug("SIM_SILENT line=%s", line)
            return
        if code in self.fault_codes:
            self._reply(self.fault_reply)
            return

        try:
            if code == "77025" and len(args) == 1:
                self.registers["lamp"] = int(args[0])
            elif code == "77005" and len(args) == 1:
                self.registers["manual"] = args[0] == "1"
            elif code == "77020" and len(args) == 2:
                self.registers["intensity"] = int(args[0])
            elif code == "77032" and len(args) == 2:
                self.registers["shutter"] = args[1] == "1"
            else:
                raise ValueError(line)
        except ValueError:
            self._log.debug("SIM_REJECTED line=%s", line)
            self._reply(self.fault_reply)
            return

        self._reply(code)

    def _reply(self, text: str) -> None:
        due = time.monotonic() + self.response_delay_s
        self._outbox.append((due, text.encode("ascii") + TERMINATOR))
