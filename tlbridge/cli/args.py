# tlbridge/cli/args.py
from __future__ import annotations

import argparse
from typing import Optional

from tlbridge.app.server import DEFAULT_PORT

DEFAULT_CONFIG = "tlbridge.yml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tlbridge")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging.")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    ps = sub.add_parser("serve", help="Run the TCP-to-serial lamp bridge.")
    ps.add_argument(
        "--config",
        default=None,
        help=f"YAML config file (default: ./{DEFAULT_CONFIG} if present).",
    )
    ps.add_argument("--host", default=None, help="Listen address.")
    ps.add_argument("--port", type=int, default=None, help=f"Listen port (default {DEFAULT_PORT}).")
    ps.add_argument("--driver", default=None, help="Transport driver: uart | sim.")
    ps.add_argument("--serial-port", default=None, help="Serial device, e.g. COM4 or /dev/ttyUSB0.")
    ps.add_argument("--timeout-ms", type=int, default=None, help="Device exchange timeout.")
    ps.add_argument("--trace", default=None, help="Write a JSONL exchange trace to this file.")

    pc = sub.add_parser("send", help="Send command lines to a running bridge and print replies.")
    pc.add_argument("--host", default="127.0.0.1")
    pc.add_argument("--port", type=int, default=DEFAULT_PORT)
    pc.add_argument("--timeout", type=float, default=5.0, help="Socket timeout in seconds.")
    pc.add_argument("lines", nargs="+", help='Command lines, e.g. "TL_INTENSITY 100".')

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
