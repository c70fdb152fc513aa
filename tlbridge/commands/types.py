# tlbridge/commands/types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal, Union

Reply = Literal["OK", "ERROR"]
OK: Reply = "OK"
ERROR: Reply = "ERROR"


@dataclass(frozen=True)
class Initialize:
    type: ClassVar[str] = "INITIALIZE"


@dataclass(frozen=True)
class Shutdown:
    type: ClassVar[str] = "SHUTDOWN"


@dataclass(frozen=True)
class SetIntensity:
    level: int
    type: ClassVar[str] = "TL_INTENSITY"


@dataclass(frozen=True)
class SetShutter:
    state: bool
    type: ClassVar[str] = "SHUTTER_OPEN"


Command = Union[Initialize, Shutdown, SetIntensity, SetShutter]
