# tlbridge/app/executor.py
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from tlbridge.commands import (
    ERROR,
    Command,
    CommandParseError,
    Initialize,
    Reply,
    SetIntensity,
    SetShutter,
    Shutdown,
    parse_command,
)
from tlbridge.core.errors import BridgeError
from tlbridge.interfaces.exchange_sink import ExchangeEvent, ExchangeSink
from tlbridge.protocol.lamp import LampProtocol
from tlbridge.transport.errors import TransportError


class CommandExecutor:
    """
    Runs client commands against the lamp, one at a time.

    Every command from every connection goes through a single worker thread,
    so device exchanges of two commands never interleave on the response queue.
    """

    def __init__(
        self,
        protocol: LampProtocol,
        *,
        sink: Optional[ExchangeSink] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._protocol = protocol
        self._sink = sink
        self._log = logger or logging.getLogger(__name__)
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tlbridge-cmd")
        self._closed = False

    @property
    def protocol(self) -> LampProtocol:
        return self._protocol

    # ---------------- dispatch ----------------
    def _dispatch(self, command: Command) -> Reply:
        if isinstance(command, Initialize):
            return self._protocol.initialize()
        if isinstance(command, SetIntensity):
            return self._protocol.set_intensity(command.level)
        if isinstance(command, SetShutter):
            return self._protocol.set_shutter(command.state)
        raise TypeError(f"Got unknown command {command!r}")

    def _run(self, command: Command) -> Reply:
        # Device control is handed back; nothing left to sync.
        if isinstance(command, Shutdown):
            return self._protocol.shutdown()

        result = self._dispatch(command)
        sync_result = self._protocol.sync_to_state()
        return ERROR if sync_result == ERROR else result

    # ---------------- public API ----------------
    def submit(self, command: Command) -> "Future[Reply]":
        if self._closed:
            raise RuntimeError("CommandExecutor is closed")
        return self._pool.submit(self._run, command)

    def execute(self, command: Command) -> Reply:
        """Run a command on the worker and wait. Transport errors propagate."""
        return self.submit(command).result()

    def handle_line(self, line: str) -> Reply:
        """Parse + execute one client line; never raises for command failures."""
        self._log.info('Received command: "%s"', line.strip())
        try:
            command = parse_command(line)
        except CommandParseError as e:
            self._log.info("COMMAND_PARSE_FAILED reason=%s", e)
            self._trace(line.strip(), ERROR, {"parse_error": str(e)})
            return ERROR

        try:
            reply = self.execute(command)
        except (TransportError, BridgeError) as e:
            self._log.error("COMMAND_ABORTED command=%s error=%s", command.type, e)
            reply = ERROR

        self._trace(line.strip(), reply, {"command": command.type})
        return reply

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pool.shutdown(wait=True)

    def __enter__(self) -> "CommandExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _trace(self, name: str, reply: Reply, payload: dict) -> None:
        if self._sink is None:
            return
        try:
            self._sink.on_exchange(
                ExchangeEvent(name=name, kind="command", payload={**payload, "reply": reply})
            )
        except Exception:
            self._log.exception("EXCHANGE_SINK_ERROR")
