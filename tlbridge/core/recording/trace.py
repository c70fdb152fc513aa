# tlbridge/core/recording/trace.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from tlbridge.interfaces.exchange_sink import ExchangeEvent, ExchangeSink
from tlbridge.core.recording.async_writer import AsyncWriter


@dataclass
class ExchangeTraceLogger(ExchangeSink):
    """
    ExchangeSink that appends device exchanges and client commands to a
    JSONL file, one object per event. Fields that are None are left out.
    Without a file_path the sink accepts events and discards them.
    """

    logger: logging.Logger
    file_path: Optional[Path] = None
    flush_interval_s: float = 0.5

    def __post_init__(self) -> None:
        self._writer: Optional[AsyncWriter] = None
        if self.file_path is not None:
            self.file_path = Path(self.file_path)
            self._writer = AsyncWriter(
                self.file_path,
                flush_interval=self.flush_interval_s,
                logger=self.logger,
            )
            self.logger.info("TRACE_OPEN path=%s", self.file_path)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None

    def on_exchange(self, event: ExchangeEvent) -> None:
        if self._writer is None:
            return

        record = {
            "ts_utc": event.ts_utc or datetime.now(timezone.utc).isoformat(),
            "kind": event.kind,
            "name": event.name,
            "request_id": event.request_id,
            "payload": dict(event.payload) if event.payload is not None else None,
        }
        self._writer.write({k: v for k, v in record.items() if v is not None})
