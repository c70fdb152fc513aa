# tlbridge/app/config.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from tlbridge.app.server import DEFAULT_HOST, DEFAULT_PORT
from tlbridge.core.errors import ConfigError
from tlbridge.protocol.codes import DEFAULT_EXCHANGE_TIMEOUT_MS, DEFAULT_POLL_INTERVAL_MS
from tlbridge.transport.registry import TransportDriverRegistry

DEFAULT_TRANSPORT_PARAMS: Dict[str, Any] = {
    "port": "COM4",
    "baudrate": 19200,
    "bytesize": 8,
    "parity": "N",
    "stopbits": 1,
    "xonxoff": True,
}


def default_params_for(driver: str) -> Dict[str, Any]:
    # Serial defaults only apply to the UART driver
    return dict(DEFAULT_TRANSPORT_PARAMS) if driver.lower() == "uart" else {}


_SECTIONS = {
    "server": {"host": str, "port": int},
    "device": {"exchange_timeout_ms": int, "poll_interval_ms": int},
    "transport": {"driver": str, "params": dict},
    "trace": {"path": str},
}


@dataclass(frozen=True)
class BridgeConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    exchange_timeout_ms: int = DEFAULT_EXCHANGE_TIMEOUT_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    transport_driver: str = "uart"
    transport_params: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_TRANSPORT_PARAMS))
    trace_path: Optional[str] = None

    def with_overrides(self, **overrides: Any) -> "BridgeConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        driver = changes.get("transport_driver")
        if driver is not None and driver.lower() != self.transport_driver.lower():
            changes.setdefault("transport_params", default_params_for(driver))
        return replace(self, **changes)

    def validate(self, drivers: Optional[TransportDriverRegistry] = None) -> "BridgeConfig":
        drivers = drivers or TransportDriverRegistry.default()
        if not drivers.has(self.transport_driver):
            raise ConfigError(
                f"Unknown transport driver '{self.transport_driver}'.",
                hint=f"Valid drivers: {drivers.names()}",
                details={"driver": self.transport_driver},
            )
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"Invalid TCP port {self.port}.", hint="Use 0..65535.")
        if self.exchange_timeout_ms <= 0:
            raise ConfigError(
                f"Invalid exchange timeout {self.exchange_timeout_ms}ms.",
                hint="Must be a positive number of milliseconds.",
            )
        if self.poll_interval_ms <= 0:
            raise ConfigError(
                f"Invalid poll interval {self.poll_interval_ms}ms.",
                hint="Must be a positive number of milliseconds.",
            )
        return self


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}", details={"path": str(path)})
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Config file is not valid YAML: {path}",
            hint=str(e),
            details={"path": str(path)},
        ) from None
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}", details={"path": str(path)})
    return data


def _check_section(name: str, section: Any) -> Mapping[str, Any]:
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping.")

    schema = _SECTIONS[name]
    for key, value in section.items():
        if key not in schema:
            raise ConfigError(
                f"Unknown key '{key}' in config section '{name}'.",
                hint=f"Valid keys: {sorted(schema)}",
            )
        expected = schema[key]
        if value is None:
            continue
        if isinstance(value, bool) and expected is not bool:
            ok = False
        else:
            ok = isinstance(value, expected)
        if not ok:
            raise ConfigError(
                f"Invalid value for '{name}.{key}': expected {expected.__name__}, got {type(value).__name__}.",
                details={"section": name, "key": key, "value": value},
            )
    return section


def _pick(section: Mapping[str, Any], key: str, default: Any) -> Any:
    value = section.get(key)
    return default if value is None else value


def config_from_mapping(data: Mapping[str, Any]) -> BridgeConfig:
    for name in data:
        if name not in _SECTIONS:
            raise ConfigError(
                f"Unknown config section '{name}'.",
                hint=f"Valid sections: {sorted(_SECTIONS)}",
            )

    server = _check_section("server", data.get("server"))
    device = _check_section("device", data.get("device"))
    transport = _check_section("transport", data.get("transport"))
    trace = _check_section("trace", data.get("trace"))

    defaults = BridgeConfig()
    driver = _pick(transport, "driver", defaults.transport_driver)

    params = default_params_for(driver)
    params.update(transport.get("params") or {})

    cfg = BridgeConfig(
        host=_pick(server, "host", defaults.host),
        port=_pick(server, "port", defaults.port),
        exchange_timeout_ms=_pick(device, "exchange_timeout_ms", defaults.exchange_timeout_ms),
        poll_interval_ms=_pick(device, "poll_interval_ms", defaults.poll_interval_ms),
        transport_driver=driver,
        transport_params=params,
        trace_path=trace.get("path"),
    )
    return cfg.validate()


def load_config(path: str | Path) -> BridgeConfig:
    return config_from_mapping(_load_yaml(Path(path)))
