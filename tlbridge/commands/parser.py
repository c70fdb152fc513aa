# tlbridge/commands/parser.py
from __future__ import annotations

import logging
import re

from tlbridge.protocol.codes import MAX_INTENSITY
from .types import Command, Initialize, SetIntensity, SetShutter, Shutdown

log = logging.getLogger(__name__)

# Leading base-10 integer; trailing garbage after the digits is ignored.
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class CommandParseError(ValueError):
    """Client line is malformed or names an unknown command."""


def parse_int(text: str) -> int:
    m = _LEADING_INT.match(text)
    if m is None:
        raise CommandParseError(f"not a numeric value: {text!r}")
    try:
        return int(m.group(1))
    except ValueError:
        # Beyond the interpreter's int-from-str digit limit
        raise CommandParseError(f"numeric value too long: {len(m.group(1))} characters") from None


def parse_command(line: str) -> Command:
    """
    Parse one client line into a Command.

    The line must still carry its trailing newline. Tokens are separated by
    single spaces; the first is the command prefix.
    """
    if not line.endswith("\n"):
        raise CommandParseError("command didn't end in a line feed")

    prefix, *args = line.strip().split(" ")

    if prefix == "SHUTDOWN":
        return Shutdown()
    if prefix == "INITIALIZE":
        return Initialize()

    if prefix == "TL_INTENSITY":
        if len(args) != 1:
            raise CommandParseError(f"TL_INTENSITY takes 1 argument, got {len(args)}")
        level = parse_int(args[0])
        if not 0 <= level <= MAX_INTENSITY:
            raise CommandParseError(f"intensity {level} not in [0, {MAX_INTENSITY}]")
        return SetIntensity(level=level)

    if prefix == "SHUTTER_OPEN":
        if len(args) != 1:
            raise CommandParseError(f"SHUTTER_OPEN takes 1 argument, got {len(args)}")
        if args[0] == "0":
            return SetShutter(state=False)
        if args[0] == "1":
            return SetShutter(state=True)
        raise CommandParseError(f"unknown shutter state {args[0]!r}; expected 0/1")

    raise CommandParseError(f"unknown or malformed command {prefix!r}")
