from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Transport(ABC):
    """
    Abstract byte transport to the lamp controller (UART, simulator, ...).

    Contract:
      - open()/close() manage the underlying connection.
      - read(n) returns 0..n bytes. It returns b"" when nothing arrived within
        the transport's own read timeout; callers poll it from a worker thread.
      - write(data) returns the number of bytes written.
      - flush() forces pending output to be transmitted.
      - is_open() reports whether the connection is usable.
    """

    @abstractmethod
    def open(self) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def is_open(self) -> bool: ...

    @abstractmethod
    def read(self, n: int) -> bytes: ...

    @abstractmethod
    def write(self, data: bytes) -> int: ...

    @abstractmethod
    def flush(self) -> None: ...

    def __enter__(self) -> "Transport":
        self.open()
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()
