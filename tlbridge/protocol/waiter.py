# tlbridge/protocol/waiter.py
from __future__ import annotations

import queue
from typing import List

from .codes import DEFAULT_EXCHANGE_TIMEOUT_MS
from .errors import ExchangeTimeout


class ResponseWaiter:
    """
    Consumer side of the response queue.

    wait() returns immediately when a line is already queued, otherwise blocks
    on the queue until one arrives or the deadline passes.
    """

    def __init__(self, responses: "queue.Queue[str]"):
        self._responses = responses

    def wait(self, timeout_ms: int = DEFAULT_EXCHANGE_TIMEOUT_MS) -> str:
        try:
            return self._responses.get_nowait()
        except queue.Empty:
            pass

        if timeout_ms <= 0:
            raise ExchangeTimeout(timeout_ms)

        try:
            return self._responses.get(timeout=timeout_ms / 1000.0)
        except queue.Empty:
            raise ExchangeTimeout(timeout_ms) from None

    def drain(self) -> List[str]:
        """Discard and return every line currently queued."""
        stale: List[str] = []
        while True:
            try:
                stale.append(self._responses.get_nowait())
            except queue.Empty:
                return stale

    def pending(self) -> int:
        return self._responses.qsize()
