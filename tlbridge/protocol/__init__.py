# tlbridge/protocol/__init__.py

from .codes import DeviceExchange
from .errors import ProtocolError, EchoMismatch, ExchangeTimeout
from .engine import LineEngine

__all__ = [
    "DeviceExchange",
    "ProtocolError", "EchoMismatch", "ExchangeTimeout",
    "LineEngine"]
