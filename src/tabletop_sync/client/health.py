from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Optional

from tabletop_sync.protocol.constants import LOST_DEBOUNCE_S, STALE_AFTER_S

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STALE = "stale"
    RECONNECTING = "reconnecting"
    OFFLINE = "offline"


class ConnectionHealthMonitor:
    """
    Connection status plus the debounced, user-facing "connection lost" flag.

    - Staleness: at each heartbeat `check()`, a live connection with no pong for
      `stale_after_s` or longer turns STALE; the next pong brings it back.
    - Lost flag: leaving CONNECTED arms a `lost_debounce_s` timer and the flag only
      rises when it fires. Returning to CONNECTED disarms it and clears the flag
      immediately, so momentary blips never show.
    """

    def __init__(
        self,
        *,
        stale_after_s: float = STALE_AFTER_S,
        lost_debounce_s: float = LOST_DEBOUNCE_S,
        clock: Callable[[], float] = time.monotonic,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.stale_after_s = stale_after_s
        self.lost_debounce_s = lost_debounce_s
        self._clock = clock
        self._on_change = on_change

        self.status = ConnectionStatus.CONNECTING
        self.last_pong = clock()
        self.connection_lost = False
        self._lost_timer: asyncio.TimerHandle | None = None

    @property
    def lost_pending(self) -> bool:
        return self._lost_timer is not None

    def mark_connecting(self) -> None:
        self._set_status(ConnectionStatus.CONNECTING)

    def mark_connected(self) -> None:
        self.last_pong = self._clock()
        self._set_status(ConnectionStatus.CONNECTED)

    def mark_reconnecting(self) -> None:
        self._set_status(ConnectionStatus.RECONNECTING)

    def mark_offline(self) -> None:
        self._set_status(ConnectionStatus.OFFLINE)

    def record_pong(self) -> None:
        self.last_pong = self._clock()
        if self.status is ConnectionStatus.STALE:
            self._set_status(ConnectionStatus.CONNECTED)

    def check(self) -> ConnectionStatus:
        """Heartbeat tick: flag a live connection as stale once pongs stop arriving."""
        if self.status is ConnectionStatus.CONNECTED:
            if self._clock() - self.last_pong >= self.stale_after_s:
                self._set_status(ConnectionStatus.STALE)
        return self.status

    def close(self) -> None:
        self._cancel_lost_timer()

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self.status:
            return
        logger.info("connection %s -> %s", self.status.value, status.value)
        self.status = status
        if status is ConnectionStatus.CONNECTED:
            self._cancel_lost_timer()
            self.connection_lost = False
        elif not self.connection_lost and self._lost_timer is None:
            loop = asyncio.get_running_loop()
            self._lost_timer = loop.call_later(self.lost_debounce_s, self._expose_lost)
        self._notify()

    def _expose_lost(self) -> None:
        self._lost_timer = None
        if self.status is not ConnectionStatus.CONNECTED:
            self.connection_lost = True
            self._notify()

    def _cancel_lost_timer(self) -> None:
        if self._lost_timer is not None:
            self._lost_timer.cancel()
            self._lost_timer = None

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
