# tlbridge/protocol/framing.py
from __future__ import annotations

import logging
from typing import Optional

from .codes import TERMINATOR


class LineSplitter:
    """
    Incremental splitter for CR-terminated ASCII response lines.

    feed() accepts arbitrary byte chunks; get_line() returns completed lines
    one at a time (oldest first) or None when only a partial line is buffered.
    """

    def __init__(self, terminator: str = TERMINATOR, logger: Optional[logging.Logger] = None):
        self._term = terminator.encode("ascii")
        self.buffer = bytearray()
        self._log = logger or logging.getLogger(__name__)

    def feed(self, data: bytes) -> None:
        self.buffer.extend(data)
        self._log.debug("Splitter fed %d bytes, buffer_len=%d", len(data), len(self.buffer))

    def get_line(self) -> Optional[str]:
        while True:
            idx = self.buffer.find(self._term)
            if idx < 0:
                return None

            raw = bytes(self.buffer[:idx])
            del self.buffer[: idx + len(self._term)]

            # CRLF devices leave the LF at the head of the next line
            line = raw.decode("ascii", errors="replace").strip("\n")
            if not line:
                continue
            return line

    def reset(self) -> None:
        self.buffer.clear()
