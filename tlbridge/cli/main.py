# tlbridge/cli/main.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

from tlbridge.core.errors import BridgeError

from tlbridge.cli.args import parse_args
from tlbridge.cli.commands import cmd_send, cmd_serve, configure_logging


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(
        verbose=args.verbose,
        log_file=Path(args.log_file) if args.log_file else None,
    )
    try:
        if args.cmd == "serve":
            return cmd_serve(args)
        if args.cmd == "send":
            return cmd_send(args)
        return 2
    except BridgeError as e:
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1
    except OSError as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
