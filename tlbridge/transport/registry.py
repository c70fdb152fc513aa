# tlbridge/transport/registry.py
from __future__ import annotations

import inspect
from typing import Any, Dict, List, Type

from .base import Transport
from .errors import TransportError
from .sim import SimLampTransport
from .uart import UARTTransport


class TransportDriverRegistry:
    """
    Driver key -> Transport class, as named in the `transport.driver` config
    key. Lookups ignore case. create() checks params against the driver's
    constructor so a typo in the config fails with the list of valid names.
    """

    def __init__(self, drivers: Dict[str, Type[Transport]] | None = None):
        self._drivers: Dict[str, Type[Transport]] = {}
        for name, cls in (drivers or {}).items():
            self.register(name, cls)

    @classmethod
    def default(cls) -> "TransportDriverRegistry":
        return cls({"uart": UARTTransport, "sim": SimLampTransport})

    def register(self, name: str, transport_cls: Type[Transport]) -> None:
        self._drivers[name.lower()] = transport_cls

    def names(self) -> List[str]:
        return sorted(self._drivers)

    def has(self, driver: str) -> bool:
        return driver.lower() in self._drivers

    def get_class(self, driver: str) -> Type[Transport]:
        try:
            return self._drivers[driver.lower()]
        except KeyError:
            raise TransportError(
                f"Transport driver '{driver}' not registered (known: {', '.join(self.names())})"
            ) from None

    def param_names(self, driver: str) -> List[str]:
        sig = inspect.signature(self.get_class(driver).__init__)
        return [
            p.name
            for p in sig.parameters.values()
            if p.name != "self" and p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
        ]

    def create(self, driver: str, **params: Any) -> Transport:
        transport_cls = self.get_class(driver)
        unknown = sorted(set(params) - set(self.param_names(driver)))
        if unknown:
            raise TransportError(
                f"Unknown params for driver '{driver}': {unknown}; "
                f"valid: {self.param_names(driver)}"
            )
        try:
            return transport_cls(**params)
        except (TypeError, ValueError) as e:
            raise TransportError(f"Invalid params for driver '{driver}': {e}") from None
