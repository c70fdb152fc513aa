# tlbridge/transport/uart.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import serial
from serial import SerialException

from .base import Transport
from .errors import TransportIOError, TransportOpenError

# Controller's fixed line settings
DEFAULT_PORT = "COM4"
DEFAULT_BAUDRATE = 19200


class UARTTransport(Transport):
    """
    RS-232 link to the lamp controller via pyserial.

    read(n) blocks up to `timeout` for the first byte, then returns it together
    with whatever else the driver already buffered (at most n bytes). Short
    reads are normal; the line engine reassembles lines.

    Any SerialException after open drops the handle: the port is considered
    gone and must be reopened.
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baudrate: int = DEFAULT_BAUDRATE,
        bytesize: int = serial.EIGHTBITS,
        parity: str = serial.PARITY_NONE,
        stopbits: float = serial.STOPBITS_ONE,
        xonxoff: bool = True,
        timeout: float = 0.01,
        write_timeout: float = 1.0,
    ):
        self.port = port
        self.settings = {
            "baudrate": int(baudrate),
            "bytesize": int(bytesize),
            "parity": str(parity),
            "stopbits": stopbits,
            "xonxoff": bool(xonxoff),
            "timeout": float(timeout),
            "write_timeout": float(write_timeout),
        }
        self.ser: Optional[serial.Serial] = None

    def open(self) -> None:
        try:
            ser = serial.Serial(self.port, **self.settings)
            # Drop anything the controller sent before we were listening
            ser.reset_input_buffer()
            ser.reset_output_buffer()
        except (SerialException, ValueError) as e:
            self.ser = None
            raise TransportOpenError(f"could not open {self.port!r}: {e}") from None
        self.ser = ser

    def close(self) -> None:
        ser, self.ser = self.ser, None
        if ser is not None:
            ser.close()

    def is_open(self) -> bool:
        return self.ser is not None and self.ser.is_open

    @contextmanager
    def _io(self, op: str) -> Iterator[serial.Serial]:
        if self.ser is None:
            raise TransportIOError(f"{op} while transport not open")
        try:
            yield self.ser
        except SerialException as e:
            self.ser = None
            raise TransportIOError(f"UART {op} failed on {self.port!r}: {e}") from None

    def read(self, n: int) -> bytes:
        with self._io("read") as ser:
            first = ser.read(1)
            if not first or n <= 1:
                return first
            more = min(ser.in_waiting, n - 1)
            return first + ser.read(more) if more else first

    def write(self, data: bytes) -> int:
        with self._io("write") as ser:
            return ser.write(data)

    def flush(self) -> None:
        with self._io("flush") as ser:
            ser.flush()
