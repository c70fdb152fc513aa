# tlbridge/core/recording/async_writer.py
from __future__ import annotations

import json
import logging
import queue
import threading
import time
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

_STOP = object()


class AsyncWriter:
    """
    Background appender for a JSON-lines file.

    write() never blocks the caller: records go into a bounded queue and are
    dropped (and counted) when it is full, so a slow disk cannot stall device
    exchanges. A worker thread encodes records and appends them in batches,
    at most `flush_interval` seconds after the first record of a batch.
    """

    def __init__(
        self,
        path: Path,
        *,
        flush_interval: float = 0.5,
        max_pending: int = 10_000,
        append_func: Optional[Callable[[Path, List[str]], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._path = Path(path)
        self._flush_interval = max(0.0, float(flush_interval))
        self._append = append_func or _append_lines
        self._log = logger or logging.getLogger(__name__)

        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=max_pending)
        self._closed = threading.Event()
        self._dropped = 0

        self._thread = threading.Thread(target=self._worker, daemon=True, name="tlbridge-trace")
        self._thread.start()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def dropped(self) -> int:
        return self._dropped

    def write(self, record: Mapping[str, Any]) -> bool:
        """Queue one record. Returns False if it was dropped."""
        if self._closed.is_set():
            return False
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            self._dropped += 1
            if self._dropped == 1:
                self._log.warning("TRACE_QUEUE_FULL path=%s; dropping records", self._path)
            return False
        return True

    def close(self) -> None:
        """Write out everything queued so far and stop the worker."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(_STOP)
        self._thread.join()
        if self._dropped:
            self._log.warning("TRACE_RECORDS_DROPPED path=%s count=%d", self._path, self._dropped)

    # ---------------- worker ----------------
    def _worker(self) -> None:
        batch: List[str] = []
        deadline = 0.0
        while True:
            if batch:
                try:
                    item = self._queue.get(timeout=max(0.0, deadline - time.monotonic()))
                except queue.Empty:
                    item = None
            else:
                item = self._queue.get()
                deadline = time.monotonic() + self._flush_interval

            if item is _STOP:
                break
            if item is not None:
                line = self._encode(item)
                if line is not None:
                    batch.append(line)

            if batch and time.monotonic() >= deadline:
                self._flush_safe(batch)
                batch = []

        if batch:
            self._flush_safe(batch)

    def _encode(self, record: Mapping[str, Any]) -> Optional[str]:
        try:
            return json.dumps(record, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            self._log.exception("TRACE_RECORD_UNSERIALIZABLE")
            return None

    def _flush_safe(self, batch: List[str]) -> None:
        # A failed batch is logged and dropped; the worker keeps running.
        try:
            self._append(self._path, batch)
        except Exception:
            self._log.exception("ASYNC_WRITER_FLUSH_FAILED path=%s batch_len=%d", self._path, len(batch))


def _append_lines(path: Path, batch: List[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write("".join(line + "\n" for line in batch))
