# tlbridge/protocol/lamp.py
from __future__ import annotations

import enum
import logging
from typing import Optional

from tlbridge.commands.types import ERROR, OK, Reply
from tlbridge.runtime.device_link import DeviceLink
from tlbridge.runtime.state import StateStore
from . import codes
from .codes import DeviceExchange
from .errors import ProtocolError


class LinkState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class LampProtocol:
    """
    Lamp controller operations over a DeviceLink.

    The device has no physical shutter. Its own shutter control is opened once
    during initialize() and never toggled again (repeated toggling drives the
    controller into a persistent fault). Closing the shutter is emulated by
    pushing intensity 0 while the StateStore keeps the logical intensity.

    Echo mismatches and timeouts are reported as ERROR. TransportError from
    the link propagates to the caller.
    """

    def __init__(
        self,
        link: DeviceLink,
        store: StateStore,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self._link = link
        self._store = store
        self._log = logger or logging.getLogger(__name__)
        self.state = LinkState.UNINITIALIZED

    def _run(self, exchange: DeviceExchange) -> bool:
        try:
            self._link.exchange(exchange.line, exchange.expected)
        except ProtocolError as e:
            self._log.warning("EXCHANGE_FAILED %s", e)
            return False
        return True

    # ---------------- operations ----------------
    def initialize(self) -> Reply:
        self._log.info("Initializing (link was %s)", self.state.value)
        # READY only once the whole sequence has been acknowledged again
        self.state = LinkState.UNINITIALIZED
        self._link.open()

        sequence = (
            # TL lamp becomes the active lamp
            codes.select_tl_lamp(),
            # Manual adjustments at the device cannot be synced back into state
            codes.manual_control(False),
            codes.set_intensity(0),
            codes.open_device_shutter(),
        )
        for exchange in sequence:
            if not self._run(exchange):
                return ERROR

        self.state = LinkState.READY
        return self.sync_to_state()

    def shutdown(self) -> Reply:
        self._log.info("Shutting down.")
        result: Reply = OK
        if self._link.is_open:
            try:
                # Hand the lamp back to the front panel
                if not self._run(codes.manual_control(True)):
                    result = ERROR
            finally:
                self._link.close()
        else:
            if self.state is LinkState.READY:
                self._log.warning("SHUTDOWN_LINK_LOST; manual control not restored")
            self._link.close()
        self.state = LinkState.UNINITIALIZED
        return result

    def set_intensity(self, level: int) -> Reply:
        self._log.info("Setting intensity to %d", level)
        self._store.set_intensity(level)
        return OK

    def set_shutter(self, open_: bool) -> Reply:
        self._log.info("Setting shutter open to: %s", open_)
        self._store.set_shutter(open_)
        return OK

    def sync_to_state(self) -> Reply:
        state = self._store.get()
        self._log.info("Syncing; state is: %s (link %s)", state, self.state.value)
        if not self._run(codes.set_intensity(state.device_intensity)):
            return ERROR
        return OK
