# tlbridge/protocol/engine.py
from __future__ import annotations

import logging
import queue
import time
from collections import deque
from datetime import datetime, timezone
from typing import Optional, Protocol as TypingProtocol

from tlbridge.interfaces.exchange_sink import ExchangeEvent, ExchangeSink
from ._internal.rx_worker import RxWorker
from .codes import (
    DEFAULT_EXCHANGE_TIMEOUT_MS,
    DEFAULT_POLL_INTERVAL_MS,
    LATE_REPLY_WINDOW_FACTOR,
    TERMINATOR,
)
from .errors import EchoMismatch, ExchangeTimeout
from .framing import LineSplitter
from .waiter import ResponseWaiter


class TransportIO(TypingProtocol):
    """Minimal I/O interface for LineEngine."""
    def write(self, data: bytes) -> int: ...
    def read(self, size: int) -> bytes: ...
    def flush(self) -> None: ...
    def is_open(self) -> bool: ...


class LineEngine:
    """
    Line-oriented request/response engine for the lamp controller.

    Outgoing lines get a CR terminator. A background RxWorker splits the
    incoming byte stream on CR and queues every completed line, independently
    of any particular send. exchange() pairs one send with the next queued
    line and checks it against the expected echo code.

    Callers must not run exchanges concurrently; the queue carries no
    correlation beyond arrival order.
    """

    def __init__(
        self,
        transport: TransportIO,
        *,
        timeout_ms: int = DEFAULT_EXCHANGE_TIMEOUT_MS,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        sink: Optional[ExchangeSink] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self.timeout_ms = int(timeout_ms)
        self.poll_interval_ms = int(poll_interval_ms)

        self._log = logger or logging.getLogger(__name__)
        self._sink = sink

        self._splitter = LineSplitter(logger=self._log)
        self._responses: "queue.Queue[str]" = queue.Queue()
        self.waiter = ResponseWaiter(self._responses)

        self._rx_thread: Optional[RxWorker] = None
        self._exchange_count = 0
        # Expiry times (monotonic) of answers still owed by timed-out lines
        self._owed: "deque[float]" = deque()

    # ---------------- Send ----------------
    def send_line(self, line: str) -> None:
        """Write one command line. Transport errors propagate."""
        raw = (line + TERMINATOR).encode("ascii")
        self._log.debug("SENDING_LINE line=%s", line)
        self.transport.write(raw)
        self.transport.flush()

    def exchange(self, line: str, expected: str, *, timeout_ms: Optional[int] = None) -> str:
        """
        Send `line` and wait for its echo.

        The device answers every line exactly once, also after its deadline.
        Each timeout therefore leaves one answer owed; owed answers are
        discarded as stale, before the send and while waiting, so a late echo
        is never taken for the reply to a later line. An owed answer expires
        LATE_REPLY_WINDOW_FACTOR timeouts after its deadline.

        Raises EchoMismatch if the response differs from `expected`,
        ExchangeTimeout if nothing arrives in time, TransportError if the
        write fails.
        """
        timeout_ms = self.timeout_ms if timeout_ms is None else int(timeout_ms)
        self._exchange_count += 1
        request_id = str(self._exchange_count)

        stale = self.waiter.drain()
        if stale:
            self._settle_owed(len(stale))
            self._log.warning("STALE_RESPONSES_DROPPED count=%d lines=%s", len(stale), stale)
            self._emit(line, "stale", request_id, {"dropped": stale})

        start = time.perf_counter()
        deadline = time.monotonic() + timeout_ms / 1000.0
        self._log.info('Sending "%s" to device.', line)
        try:
            self.send_line(line)
        except Exception as e:
            self._log.exception("EXCHANGE_SEND_FAILED line=%s", line)
            self._emit(line, "send_failed", request_id, {"error": str(e)})
            raise

        while True:
            remaining_ms = max(0.0, (deadline - time.monotonic()) * 1000.0)
            try:
                response = self.waiter.wait(remaining_ms)
            except ExchangeTimeout:
                self._owed.append(time.monotonic() + LATE_REPLY_WINDOW_FACTOR * timeout_ms / 1000.0)
                self._log.warning(
                    "EXCHANGE_TIMEOUT line=%s timeout_ms=%d owed=%d", line, timeout_ms, len(self._owed)
                )
                self._emit(line, "timeout", request_id, {"timeout_ms": timeout_ms})
                raise ExchangeTimeout(timeout_ms, line) from None

            if not self._settle_owed(1):
                break
            self._log.warning("LATE_RESPONSE_DROPPED line=%s response=%s", line, response)
            self._emit(line, "stale", request_id, {"dropped": [response]})

        rtt_ms = (time.perf_counter() - start) * 1000.0
        self._log.info('Received "%s" from device.', response)

        if response != expected:
            self._log.warning("ECHO_MISMATCH line=%s expected=%s got=%s", line, expected, response)
            self._emit(line, "mismatch", request_id, {"expected": expected, "response": response, "rtt_ms": rtt_ms})
            raise EchoMismatch(line, expected, response)

        self._emit(line, "ok", request_id, {"response": response, "rtt_ms": rtt_ms})
        return response

    @property
    def owed_responses(self) -> int:
        self._expire_owed()
        return len(self._owed)

    def _expire_owed(self) -> None:
        now = time.monotonic()
        while self._owed and self._owed[0] <= now:
            self._owed.popleft()
            self._log.info("OWED_RESPONSE_EXPIRED")

    def _settle_owed(self, count: int) -> int:
        """Credit `count` received lines against owed answers; returns how many were owed."""
        self._expire_owed()
        settled = min(count, len(self._owed))
        for _ in range(settled):
            self._owed.popleft()
        return settled

    # ---------------- RX Thread ----------------
    def start_rx_thread(self) -> None:
        if self._rx_thread is None or not self._rx_thread.is_alive():
            self._splitter.reset()
            self._rx_thread = RxWorker(self, idle_s=self.poll_interval_ms / 1000.0)
            self._rx_thread.start()
            self._log.info("RX_THREAD_STARTED")

    def stop_rx_thread(self) -> None:
        if self._rx_thread:
            self._rx_thread.stop()
            self._rx_thread.join()
            self._rx_thread = None
            self._log.info("RX_THREAD_STOPPED")

    @property
    def rx_running(self) -> bool:
        return self._rx_thread is not None and self._rx_thread.is_alive()

    # ---------------- RX Pump ----------------
    def _pump_rx(self) -> bool:
        """Read once and queue completed lines. Returns True if bytes arrived."""
        if not self.transport.is_open():
            return False

        data = self.transport.read(256)
        if data:
            self._splitter.feed(data)

        while True:
            line = self._splitter.get_line()
            if line is None:
                break
            self._log.debug("RX_LINE line=%s", line)
            self._responses.put(line)

        return bool(data)

    # ---------------- Trace ----------------
    def _emit(self, name: str, kind: str, request_id: str, payload: dict) -> None:
        if self._sink is None:
            return
        try:
            self._sink.on_exchange(
                ExchangeEvent(
                    name=name,
                    kind=kind,
                    request_id=request_id,
                    payload=payload,
                    ts_utc=datetime.now(timezone.utc).isoformat(),
                )
            )
        except Exception:
            self._log.exception("EXCHANGE_SINK_ERROR")

    # ---------------- Factory ----------------
    @classmethod
    def create(
        cls,
        transport: TransportIO,
        *,
        timeout_ms: int = DEFAULT_EXCHANGE_TIMEOUT_MS,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        sink: Optional[ExchangeSink] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "LineEngine":
        engine = cls(
            transport,
            timeout_ms=timeout_ms,
            poll_interval_ms=poll_interval_ms,
            sink=sink,
            logger=logger,
        )
        engine.start_rx_thread()
        return engine
