# tlbridge/app/server.py
from __future__ import annotations

import logging
import socketserver
import threading
from typing import Callable, Optional, Tuple

from tlbridge.core.errors import ServerStartError

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 31104

LineHandler = Callable[[str], str]  # request line (with "\n") -> reply token


class _ClientHandler(socketserver.StreamRequestHandler):
    """One thread per client; one reply line per request line."""

    server: "_ThreadingServer"

    def handle(self) -> None:
        log = self.server.log
        peer = "%s:%s" % self.client_address[:2]
        log.info("CLIENT_CONNECTED peer=%s", peer)
        try:
            while True:
                raw = self.rfile.readline()
                if not raw:
                    break
                line = raw.decode("ascii", errors="replace")
                try:
                    reply = self.server.on_line(line)
                except Exception:
                    log.exception("LINE_HANDLER_ERROR peer=%s", peer)
                    reply = "ERROR"
                self.wfile.write((reply + "\n").encode("ascii"))
                self.wfile.flush()
        except (ConnectionError, OSError) as e:
            log.info("CLIENT_IO_ERROR peer=%s error=%s", peer, e)
        finally:
            log.info("CLIENT_DISCONNECTED peer=%s", peer)


class _ThreadingServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: Tuple[str, int], on_line: LineHandler, log: logging.Logger):
        self.on_line = on_line
        self.log = log
        super().__init__(address, _ClientHandler)


class CommandServer:
    """
    TCP listener for the newline-delimited ASCII command protocol.

    Connections are accepted concurrently; serializing the actual command
    execution is the line handler's job.
    """

    def __init__(
        self,
        on_line: LineHandler,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        logger: Optional[logging.Logger] = None,
    ):
        self._on_line = on_line
        self.host = host
        self.port = int(port)
        self._log = logger or logging.getLogger(__name__)
        self._server: Optional[_ThreadingServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); port is the real one when 0 was requested."""
        if self._server is None:
            return self.host, self.port
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        if self.is_running:
            return
        try:
            self._server = _ThreadingServer((self.host, self.port), self._on_line, self._log)
        except OSError as e:
            raise ServerStartError(
                f"Could not listen on {self.host}:{self.port}.",
                hint=str(e),
                details={"host": self.host, "port": self.port},
            ) from None

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.1},
            daemon=True,
            name="tlbridge-server",
        )
        self._thread.start()
        self._log.info("Listening on port %d", self.address[1])

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
        self._server = None
        self._thread = None
        self._log.info("SERVER_STOPPED")

    def __enter__(self) -> "CommandServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
