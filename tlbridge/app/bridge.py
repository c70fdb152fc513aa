# tlbridge/app/bridge.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from tlbridge.app.config import BridgeConfig
from tlbridge.app.executor import CommandExecutor
from tlbridge.app.server import CommandServer
from tlbridge.core.errors import ConfigError
from tlbridge.core.recording.trace import ExchangeTraceLogger
from tlbridge.interfaces.exchange_sink import ExchangeSink
from tlbridge.protocol.lamp import LampProtocol, LinkState
from tlbridge.runtime.device_link import DeviceLink
from tlbridge.runtime.state import LampState, StateStore
from tlbridge.transport.base import Transport
from tlbridge.transport.errors import TransportError
from tlbridge.transport.registry import TransportDriverRegistry


class Bridge:
    """
    App-level owner of one lamp bridge: state, serial link, protocol,
    command executor and TCP listener.

    The serial transport is not opened here; INITIALIZE opens it and
    SHUTDOWN releases it.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        transport: Optional[Transport] = None,
        drivers: Optional[TransportDriverRegistry] = None,
        sink: Optional[ExchangeSink] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._log = logger or logging.getLogger(__name__)

        self._transport = transport or self._create_transport(config, drivers)

        self._owns_sink = False
        if sink is None and config.trace_path:
            sink = ExchangeTraceLogger(
                logger=logging.getLogger("tlbridge.trace"),
                file_path=Path(config.trace_path),
            )
            self._owns_sink = True
        self._sink = sink

        self._store = StateStore()
        self._link = DeviceLink(
            transport=self._transport,
            timeout_ms=config.exchange_timeout_ms,
            poll_interval_ms=config.poll_interval_ms,
            sink=self._sink,
            logger=self._log,
        )
        self._protocol = LampProtocol(self._link, self._store, logger=self._log)
        self._executor = CommandExecutor(self._protocol, sink=self._sink, logger=self._log)
        self._server = CommandServer(
            self._executor.handle_line,
            host=config.host,
            port=config.port,
            logger=self._log,
        )

    @staticmethod
    def _create_transport(config: BridgeConfig, drivers: Optional[TransportDriverRegistry]) -> Transport:
        drivers = drivers or TransportDriverRegistry.default()
        try:
            return drivers.create(config.transport_driver, **dict(config.transport_params))
        except TransportError as e:
            raise ConfigError(
                f"Failed to construct transport (driver='{config.transport_driver}').",
                hint=str(e),
                details={
                    "driver": config.transport_driver,
                    "params": dict(config.transport_params),
                },
            ) from None

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def executor(self) -> CommandExecutor:
        return self._executor

    @property
    def server(self) -> CommandServer:
        return self._server

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def state(self) -> LampState:
        return self._store.get()

    @property
    def link_state(self) -> LinkState:
        return self._protocol.state

    @property
    def is_running(self) -> bool:
        return self._server.is_running

    def start(self) -> None:
        self._log.info(
            "BRIDGE_START driver=%s params=%s listen=%s:%d",
            self._config.transport_driver,
            self._config.transport_params,
            self._config.host,
            self._config.port,
        )
        try:
            self._server.start()
        except Exception:
            try:
                self.stop()
            except Exception:
                self._log.exception("BRIDGE_STOP_AFTER_START_FAIL")
            raise

    def stop(self) -> None:
        self._log.info("BRIDGE_STOP link_state=%s", self._protocol.state.value)
        try:
            self._server.stop()
        except Exception:
            self._log.exception("SERVER_STOP_ERROR")

        try:
            self._executor.close()
        except Exception:
            self._log.exception("EXECUTOR_CLOSE_ERROR")

        # Release the port without handing control back; that is SHUTDOWN's job.
        self._link.close()

        if self._owns_sink and self._sink is not None:
            try:
                self._sink.close()
            except Exception:
                self._log.exception("TRACE_CLOSE_ERROR")

    def __enter__(self) -> "Bridge":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
