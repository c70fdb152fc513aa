from __future__ import annotations

import logging

from tlbridge.app.bridge import Bridge
from tlbridge.app.config import BridgeConfig
from tlbridge.cli.args import parse_args
from tlbridge.cli.commands import resolve_config
from tlbridge.cli.main import main
from tlbridge.transport.sim import SimLampTransport


def test_serve_flags_override_config_file(tmp_path):
    cfg_file = tmp_path / "bridge.yml"
    cfg_file.write_text("server:\n  port: 4000\ndevice:\n  exchange_timeout_ms: 300\n", encoding="utf-8")

    args = parse_args(["serve", "--config", str(cfg_file), "--serial-port", "/dev/ttyS1", "--host", "127.0.0.1"])
    cfg = resolve_config(args)

    assert cfg.port == 4000
    assert cfg.host == "127.0.0.1"
    assert cfg.exchange_timeout_ms == 300
    assert cfg.transport_params["port"] == "/dev/ttyS1"
    assert cfg.transport_params["baudrate"] == 19200


def test_serve_defaults_without_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = resolve_config(parse_args(["serve", "--driver", "sim"]))

    assert cfg.transport_driver == "sim"
    assert cfg.transport_params == {}
    assert cfg.port == BridgeConfig().port


def test_bad_config_prints_error_and_hint(tmp_path, capsys):
    cfg_file = tmp_path / "bridge.yml"
    cfg_file.write_text("transport:\n  driver: usb\n", encoding="utf-8")

    rc = main(["serve", "--config", str(cfg_file)])

    out = capsys.readouterr().out
    assert rc == 1
    assert "ERROR: Unknown transport driver 'usb'." in out
    assert "Hint: Valid drivers:" in out


def test_send_prints_replies_and_exit_code(capsys):
    cfg = BridgeConfig(host="127.0.0.1", port=0, poll_interval_ms=1)
    with Bridge(cfg, transport=SimLampTransport(), logger=logging.getLogger("test")) as bridge:
        port = str(bridge.server.address[1])

        assert main(["send", "--port", port, "INITIALIZE", "TL_INTENSITY 10"]) == 0
        assert main(["send", "--port", port, "TL_INTENSITY 999"]) == 1

    out = capsys.readouterr().out
    assert "INITIALIZE -> OK" in out
    assert "TL_INTENSITY 10 -> OK" in out
    assert "TL_INTENSITY 999 -> ERROR" in out


def test_send_without_server_fails_cleanly(capsys):
    # Port 1 is privileged and never has a bridge listening
    rc = main(["send", "--port", "1", "--timeout", "0.5", "SHUTDOWN"])

    assert rc == 1
    assert capsys.readouterr().out.startswith("ERROR:")
