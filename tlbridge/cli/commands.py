# tlbridge/cli/commands.py
from __future__ import annotations

import argparse
import logging
import socket
import time
from pathlib import Path
from typing import Optional

from tlbridge.app.bridge import Bridge
from tlbridge.app.config import BridgeConfig, load_config
from tlbridge.cli.args import DEFAULT_CONFIG

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------- Logging ----------------

def configure_logging(*, verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Console handler on the root logger, plus an optional file handler
    (idempotent per target file).
    """
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)

    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(sh)

    if log_file is None:
        return

    log_file.parent.mkdir(parents=True, exist_ok=True)
    target = str(log_file.resolve())
    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target:
            return

    fh = logging.FileHandler(log_file, encoding="utf-8", delay=True)
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(fh)


# ---------------- Config ----------------

def resolve_config(args: argparse.Namespace) -> BridgeConfig:
    if args.config is not None:
        cfg = load_config(args.config)
    elif Path(DEFAULT_CONFIG).exists():
        cfg = load_config(DEFAULT_CONFIG)
    else:
        cfg = BridgeConfig()

    cfg = cfg.with_overrides(
        host=args.host,
        port=args.port,
        transport_driver=args.driver,
        exchange_timeout_ms=args.timeout_ms,
        trace_path=args.trace,
    )
    if args.serial_port is not None:
        cfg = cfg.with_overrides(transport_params={**cfg.transport_params, "port": args.serial_port})
    return cfg.validate()


# ---------------- Commands ----------------

def cmd_serve(args: argparse.Namespace) -> int:
    cfg = resolve_config(args)
    bridge = Bridge(cfg, logger=logging.getLogger("tlbridge"))
    with bridge:
        host, port = bridge.server.address
        print(f"tlbridge listening on {host}:{port} (driver={cfg.transport_driver})")
        try:
            while bridge.is_running:
                time.sleep(0.2)
        except KeyboardInterrupt:
            print("Stopping.")
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    failures = 0
    with socket.create_connection((args.host, args.port), timeout=args.timeout) as sock:
        f = sock.makefile("rwb")
        for line in args.lines:
            f.write((line.strip() + "\n").encode("ascii"))
            f.flush()
            reply = f.readline().decode("ascii", errors="replace").strip()
            print(f"{line.strip()} -> {reply or '(no reply)'}")
            if reply != "OK":
                failures += 1
    return 0 if failures == 0 else 1
