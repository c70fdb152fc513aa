from __future__ import annotations

import time

import pytest

from tlbridge.transport.errors import TransportIOError
from tlbridge.transport.sim import SimLampTransport


def _read_reply(t: SimLampTransport, deadline_s: float = 1.0) -> bytes:
    buf = b""
    end = time.monotonic() + deadline_s
    while not buf.endswith(b"\r") and time.monotonic() < end:
        buf += t.read(256)
    return buf


def test_echoes_known_codes_and_tracks_registers():
    t = SimLampTransport()
    t.open()

    for line, echo in [
        ("77025 0", b"77025\r"),
        ("77005 0", b"77005\r"),
        ("77020 120 0", b"77020\r"),
        ("77032 0 1", b"77032\r"),
    ]:
        t.write(line.encode("ascii") + b"\r")
        assert _read_reply(t) == echo

    assert t.received == ["77025 0", "77005 0", "77020 120 0", "77032 0 1"]
    assert t.registers == {"lamp": 0, "manual": False, "intensity": 120, "shutter": True}


def test_write_may_split_lines_across_chunks():
    t = SimLampTransport()
    t.open()

    t.write(b"7702")
    assert t.read(256) == b""
    t.write(b"0 5 0\r")
    assert _read_reply(t) == b"77020\r"


def test_fault_and_unknown_codes_reply_error_token():
    t = SimLampTransport(fault_codes=["77005"])
    t.open()

    t.write(b"77005 0\r")
    assert _read_reply(t) == b"E01\r"

    t.write(b"12345\r")
    assert _read_reply(t) == b"E01\r"


def test_silent_codes_never_reply():
    t = SimLampTransport(silent_codes=["77020"])
    t.open()

    t.write(b"77020 0 0\r")
    assert _read_reply(t, deadline_s=0.1) == b""


def test_response_delay_holds_reply_back():
    t = SimLampTransport(response_delay_s=0.2)
    t.open()

    t.write(b"77025 0\r")
    assert t.read(256) == b""
    assert _read_reply(t) == b"77025\r"


def test_closed_transport_rejects_io():
    t = SimLampTransport()
    with pytest.raises(TransportIOError):
        t.write(b"77025 0\r")
    with pytest.raises(TransportIOError):
        t.read(1)

    t.open()
    t.close()
    assert t.is_open() is False
    with pytest.raises(TransportIOError):
        t.flush()


def test_non_numeric_argument_is_rejected():
    t = SimLampTransport()
    t.open()

    t.write(b"77020 abc 0\r")
    assert _read_reply(t) == b"E01\r"
    assert t.registers["intensity"] == 0
