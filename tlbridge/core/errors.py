# tlbridge/core/errors.py
from __future__ import annotations


class BridgeError(Exception):
    """
    Base class for all expected operational errors in tlbridge.
    """

    #: Stable machine-readable identifier (for CLI exit mapping, logs, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration / setup errors (no hardware access yet)
# ---------------------------------------------------------------------------

class ConfigError(BridgeError):
    """
    Bridge configuration is invalid.

    Examples:
      - config file missing or not valid YAML
      - unknown section / key, wrong value type
      - unknown transport driver or bad driver params
    """
    code = "config_error"


# ---------------------------------------------------------------------------
# Device / server lifecycle errors
# ---------------------------------------------------------------------------

class DeviceConnectError(BridgeError):
    """
    Serial transport could not be opened.

    Examples:
      - COM port not found
      - permission denied
      - port already in use
    """
    code = "device_connect_error"


class ServerStartError(BridgeError):
    """
    TCP command listener could not be started.

    Examples:
      - port already bound by another process
      - invalid listen address
    """
    code = "server_start_error"
