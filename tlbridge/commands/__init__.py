from .types import Command, Initialize, Shutdown, SetIntensity, SetShutter, Reply, OK, ERROR
from .parser import CommandParseError, parse_command, parse_int

__all__ = ["Command",
           "Initialize",
           "Shutdown",
           "SetIntensity",
           "SetShutter",
           "Reply",
           "OK",
           "ERROR",
           "CommandParseError",
           "parse_command",
           "parse_int"]
