# tlbridge/interfaces/exchange_sink.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol


@dataclass(frozen=True, slots=True)
class ExchangeEvent:
    """
    Trace event for a device exchange or a client command.
    Keep this small + stable; put details into payload.
    """
    name: str                   # e.g. "77020 100 0" or "TL_INTENSITY"
    kind: str                   # "ok" | "mismatch" | "timeout" | "send_failed" | "stale" | "command"
    payload: Optional[Mapping[str, Any]] = None
    request_id: Optional[str] = None
    ts_utc: Optional[str] = None


class ExchangeSink(Protocol):
    def on_exchange(self, event: ExchangeEvent) -> None: ...
    def close(self) -> None: ...
