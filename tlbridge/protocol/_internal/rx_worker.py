# tlbridge/protocol/_internal/rx_worker.py
from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tlbridge.protocol.engine import LineEngine


class RxWorker(threading.Thread):
    """Thread that continuously reads from the transport and feeds LineEngine."""

    def __init__(self, engine: "LineEngine", idle_s: float = 0.01):
        super().__init__(daemon=True, name="tlbridge-rx")
        self.engine = engine
        self.idle_s = float(idle_s)
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                got = self.engine._pump_rx()
            except Exception:
                self.engine._log.exception(
                    "RX_WORKER_EXCEPTION queued=%d",
                    self.engine.waiter.pending(),
                )
                self._stop_event.wait(self.idle_s)
            else:
                if not got:
                    self._stop_event.wait(self.idle_s)

    def stop(self) -> None:
        self._stop_event.set()
