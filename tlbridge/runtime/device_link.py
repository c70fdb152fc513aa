# tlbridge/runtime/device_link.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from tlbridge.interfaces.exchange_sink import ExchangeSink
from tlbridge.protocol.codes import DEFAULT_EXCHANGE_TIMEOUT_MS, DEFAULT_POLL_INTERVAL_MS
from tlbridge.protocol.engine import LineEngine
from tlbridge.transport.base import Transport
from tlbridge.transport.errors import TransportError, TransportIOError
from tlbridge.core.errors import DeviceConnectError


@dataclass
class DeviceLink:
    """
    Serial link to the lamp controller.

    Responsibilities:
      - open/close the underlying transport
      - run the LineEngine RX thread while open
      - send lines and run echo-checked exchanges
      - translate open failures into operator-safe errors
    """

    transport: Transport
    timeout_ms: int = DEFAULT_EXCHANGE_TIMEOUT_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    sink: Optional[ExchangeSink] = None
    logger: Optional[logging.Logger] = None

    def __post_init__(self) -> None:
        self._log = self.logger or logging.getLogger(__name__)
        self._engine: Optional[LineEngine] = None

    @property
    def is_open(self) -> bool:
        # A transport that dropped its handle (I/O failure) no longer counts
        return self._engine is not None and self.transport.is_open()

    @property
    def engine(self) -> LineEngine:
        if self._engine is None:
            raise TransportIOError("Trying to write to uninitialized port.")
        return self._engine

    def open(self) -> None:
        if self.is_open:
            return
        if self._engine is not None:
            self._log.warning("LINK_LOST driver=%s; reopening", type(self.transport).__name__)
            self.close()

        try:
            self.transport.open()
        except TransportError as e:
            self._log.exception("TRANSPORT_OPEN_FAILED")
            raise DeviceConnectError(
                "Could not open lamp controller transport.",
                hint=str(e),
                details={"driver": type(self.transport).__name__},
            ) from None

        self._engine = LineEngine.create(
            self.transport,
            timeout_ms=self.timeout_ms,
            poll_interval_ms=self.poll_interval_ms,
            sink=self.sink,
            logger=self._log,
        )
        self._log.info("LINK_OPEN driver=%s", type(self.transport).__name__)

    def close(self) -> None:
        if self._engine is None and not self.transport.is_open():
            return
        if self._engine is not None:
            try:
                self._engine.stop_rx_thread()
            except Exception:
                self._log.exception("Failed to stop RX thread")
            self._engine = None

        try:
            self.transport.close()
        except Exception:
            self._log.exception("Failed to close transport")
        self._log.info("LINK_CLOSED")

    def send(self, line: str) -> None:
        self.engine.send_line(line)

    def exchange(self, line: str, expected: str) -> str:
        return self.engine.exchange(line, expected)

    def __enter__(self) -> "DeviceLink":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
