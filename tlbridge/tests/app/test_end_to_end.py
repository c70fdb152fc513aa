from __future__ import annotations

import logging
import socket
import threading
import time

import pytest

from tlbridge.app.bridge import Bridge
from tlbridge.app.config import BridgeConfig
from tlbridge.protocol.lamp import LinkState
from tlbridge.transport.sim import SimLampTransport

INIT_SEQUENCE = ["77025 0", "77005 0", "77020 0 0", "77032 0 1"]


class Client:
    def __init__(self, address):
        self.sock = socket.create_connection(address, timeout=5.0)
        self.f = self.sock.makefile("rwb")

    def send(self, line: str) -> str:
        self.f.write((line + "\n").encode("ascii"))
        self.f.flush()
        return self.f.readline().decode("ascii").rstrip("\n")

    def close(self) -> None:
        self.f.close()
        self.sock.close()


@pytest.fixture
def run_bridge():
    bridges = []

    def _run(sim: SimLampTransport, timeout_ms: int = 500) -> Bridge:
        cfg = BridgeConfig(host="127.0.0.1", port=0, exchange_timeout_ms=timeout_ms, poll_interval_ms=1)
        bridge = Bridge(cfg, transport=sim, logger=logging.getLogger("test"))
        bridge.start()
        bridges.append(bridge)
        return bridge

    yield _run
    for b in bridges:
        b.stop()


@pytest.fixture
def client_for():
    clients = []

    def _connect(bridge: Bridge) -> Client:
        c = Client(bridge.server.address)
        clients.append(c)
        return c

    yield _connect
    for c in clients:
        c.close()


def test_full_session(run_bridge, client_for):
    sim = SimLampTransport()
    bridge = run_bridge(sim)
    c = client_for(bridge)

    assert c.send("INITIALIZE") == "OK"
    # initialize() ends with its own sync, then the executor syncs again
    assert sim.received == INIT_SEQUENCE + ["77020 0 0", "77020 0 0"]
    assert sim.registers == {"lamp": 0, "manual": False, "intensity": 0, "shutter": True}

    sim.received.clear()
    assert c.send("TL_INTENSITY 100") == "OK"
    assert c.send("SHUTTER_OPEN 1") == "OK"
    assert c.send("SHUTTER_OPEN 0") == "OK"
    assert sim.received == ["77020 0 0", "77020 100 0", "77020 0 0"]
    assert bridge.state.intensity == 100
    assert bridge.state.shutter_open is False

    sim.received.clear()
    assert c.send("SHUTDOWN") == "OK"
    assert sim.received == ["77005 1"]
    assert sim.registers["manual"] is True
    assert sim.is_open() is False


def test_invalid_lines_do_no_device_io(run_bridge, client_for):
    sim = SimLampTransport()
    c = client_for(run_bridge(sim))
    assert c.send("INITIALIZE") == "OK"
    sim.received.clear()

    for line in ["TL_INTENSITY 300", "TL_INTENSITY abc", "SHUTTER_OPEN 2", "LAMP_ON", ""]:
        assert c.send(line) == "ERROR"

    assert sim.received == []
    # Connection stays usable
    assert c.send("TL_INTENSITY 1") == "OK"


def test_commands_before_initialize_are_errors(run_bridge, client_for):
    sim = SimLampTransport()
    bridge = run_bridge(sim)
    c = client_for(bridge)

    assert c.send("TL_INTENSITY 50") == "ERROR"
    assert sim.received == []
    # Logical state is kept and pushed once the link is up
    assert bridge.state.intensity == 50
    assert c.send("SHUTTER_OPEN 1") == "ERROR"
    assert c.send("INITIALIZE") == "OK"
    assert sim.received[-1] == "77020 50 0"


def test_shutdown_before_initialize_is_ok(run_bridge, client_for):
    sim = SimLampTransport()
    c = client_for(run_bridge(sim))

    assert c.send("SHUTDOWN") == "OK"
    assert sim.received == []


def test_device_fault_is_reported_as_error(run_bridge, client_for):
    sim = SimLampTransport(fault_codes=["77032"])
    c = client_for(run_bridge(sim))

    assert c.send("INITIALIZE") == "ERROR"
    # Sequence stopped at the shutter step; the post-command sync still ran
    assert sim.received == INIT_SEQUENCE + ["77020 0 0"]


def test_silent_device_times_out(run_bridge, client_for):
    sim = SimLampTransport(silent_codes=["77020"])
    c = client_for(run_bridge(sim, timeout_ms=50))
    assert c.send("INITIALIZE") == "ERROR"

    sim.silent_codes.clear()
    # The unanswered lines stay owed for a few timeouts before they count as lost
    time.sleep(0.3)
    assert c.send("TL_INTENSITY 3") == "OK"


def test_late_response_is_not_credited_to_next_command(run_bridge, client_for):
    sim = SimLampTransport(response_delay_s=0.3)
    bridge = run_bridge(sim, timeout_ms=100)
    c = client_for(bridge)

    # 77025 and the follow-up sync both time out; their echoes arrive later
    assert c.send("INITIALIZE") == "ERROR"
    time.sleep(0.5)

    sim.response_delay_s = 0.0
    sim.received.clear()
    assert c.send("TL_INTENSITY 9") == "OK"
    assert sim.received == ["77020 0 0"]


def test_concurrent_clients_are_serialized(run_bridge, client_for):
    sim = SimLampTransport()
    bridge = run_bridge(sim)
    assert client_for(bridge).send("INITIALIZE") == "OK"

    clients = [client_for(bridge) for _ in range(4)]
    replies = []
    lock = threading.Lock()

    def worker(c: Client, level: int) -> None:
        for line in (f"TL_INTENSITY {level}", "SHUTTER_OPEN 1", "SHUTTER_OPEN 0"):
            r = c.send(line)
            with lock:
                replies.append(r)

    threads = [threading.Thread(target=worker, args=(c, i * 10)) for i, c in enumerate(clients)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10.0)

    assert replies == ["OK"] * 12
    assert all(line.startswith("77020 ") for line in sim.received[len(INIT_SEQUENCE) + 2:])


def test_reconnect_after_disconnect(run_bridge, client_for):
    sim = SimLampTransport()
    bridge = run_bridge(sim)

    first = client_for(bridge)
    assert first.send("INITIALIZE") == "OK"
    first.close()

    second = client_for(bridge)
    assert second.send("SHUTTER_OPEN 1") == "OK"


def test_trace_file_records_commands_and_exchanges(tmp_path):
    trace = tmp_path / "trace.jsonl"
    cfg = BridgeConfig(host="127.0.0.1", port=0, poll_interval_ms=1, trace_path=str(trace))
    sim = SimLampTransport()

    with Bridge(cfg, transport=sim, logger=logging.getLogger("test")) as bridge:
        c = Client(bridge.server.address)
        try:
            assert c.send("INITIALIZE") == "OK"
        finally:
            c.close()

    text = trace.read_text(encoding="utf-8")
    assert '"kind": "ok"' in text
    assert '"kind": "command"' in text


def test_slow_device_echo_never_acknowledges_the_next_command(run_bridge, client_for):
    sim = SimLampTransport()
    bridge = run_bridge(sim, timeout_ms=100)
    c = client_for(bridge)
    assert c.send("INITIALIZE") == "OK"

    # Every echo now comes 50 ms after the deadline
    sim.response_delay_s = 0.15
    assert c.send("TL_INTENSITY 1") == "ERROR"
    assert c.send("TL_INTENSITY 2") == "ERROR"

    time.sleep(0.3)
    sim.response_delay_s = 0.0
    assert c.send("TL_INTENSITY 3") == "OK"


def test_initialize_reopens_a_dropped_transport(run_bridge, client_for):
    sim = SimLampTransport()
    bridge = run_bridge(sim)
    c = client_for(bridge)
    assert c.send("INITIALIZE") == "OK"
    assert bridge.link_state is LinkState.READY

    # Port vanishes underneath the bridge
    sim.close()
    assert c.send("TL_INTENSITY 5") == "ERROR"

    sim.received.clear()
    assert c.send("INITIALIZE") == "OK"
    assert sim.is_open() is True
    assert sim.received[: len(INIT_SEQUENCE)] == INIT_SEQUENCE
    assert bridge.link_state is LinkState.READY

    assert c.send("SHUTDOWN") == "OK"
    assert bridge.link_state is LinkState.UNINITIALIZED
