# tlbridge/protocol/errors.py

class ProtocolError(Exception):
    """Base for device-exchange failures (echo/timeout semantics)."""

class EchoMismatch(ProtocolError):
    def __init__(self, line: str, expected: str, got: str):
        super().__init__(f"{line!r}: expected echo {expected!r}, got {got!r}")
        self.line = line
        self.expected = expected
        self.got = got

class ExchangeTimeout(ProtocolError):
    def __init__(self, timeout_ms: int, line: str | None = None):
        what = repr(line) if line is not None else "response"
        super().__init__(f"{what} timed out after {timeout_ms}ms")
        self.line = line
        self.timeout_ms = timeout_ms
