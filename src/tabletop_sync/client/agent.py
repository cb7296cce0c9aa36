from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from tabletop_sync.protocol.constants import (
    HEARTBEAT_INTERVAL_S,
    LOST_DEBOUNCE_S,
    RECONNECT_DELAY_S,
    STALE_AFTER_S,
)
from tabletop_sync.protocol.messages import (
    ArtworkDisplay,
    ClientConnected,
    ClientRole,
    FrameError,
    GridSettings,
    GridUpdate,
    Intent,
    LockViewport,
    MapChange,
    MapDescriptor,
    Ping,
    Pong,
    RequestSession,
    SessionState,
    TableSize,
    TableViewportChange,
    ViewportChange,
    ViewportDimensions,
    ViewportState,
    default_session,
    encode,
    parse_server_message,
)

from .health import ConnectionHealthMonitor, ConnectionStatus
from .mirror import apply_intent, apply_server_message

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]

# Everything the transport can throw at us; all of it leads to a reconnect.
_TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ClientSyncAgent:
    """
    One client's view of the shared session.

    Mirrors relay state locally, exposes optimistic `send_*` helpers, and keeps
    the connection alive: heartbeat pings, staleness tracking and a fixed-delay
    reconnect that retries forever.

    `send_*` helpers patch the local mirror first and then emit the intent only if
    the socket is open. While disconnected the emission is dropped, so the mirror
    can drift from the relay until the next full `session-state`, which arrives
    after a reconnect.
    """

    def __init__(
        self,
        role: ClientRole,
        url: str | None,
        *,
        connect: Connector = websockets.connect,
        heartbeat_interval_s: float = HEARTBEAT_INTERVAL_S,
        stale_after_s: float = STALE_AFTER_S,
        reconnect_delay_s: float = RECONNECT_DELAY_S,
        lost_debounce_s: float = LOST_DEBOUNCE_S,
        clock: Callable[[], float] = time.monotonic,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.role = role
        self.url = url
        self.heartbeat_interval_s = heartbeat_interval_s
        self.reconnect_delay_s = reconnect_delay_s
        self._connect = connect
        self._on_change = on_change

        self.health = ConnectionHealthMonitor(
            stale_after_s=stale_after_s,
            lost_debounce_s=lost_debounce_s,
            clock=clock,
            on_change=self._notify,
        )
        self._session = default_session()
        self._ws: Any = None
        self._running = False
        self._reader_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._connect_task: asyncio.Task | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None

    # -- public state -------------------------------------------------------

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def status(self) -> ConnectionStatus:
        return self.health.status

    @property
    def connection_lost(self) -> bool:
        return self.health.connection_lost

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        if not self.url:
            logger.warning("no relay endpoint configured; staying offline")
            self.health.mark_offline()
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        await self._open()

    async def stop(self) -> None:
        self._running = False
        await self._drop_transport()
        self.health.close()

    async def reconfigure(self, url: str | None) -> None:
        """Point at a new endpoint. A URL is the only way out of OFFLINE; None goes back to it."""
        self.url = url
        if not self._running:
            return
        if not url:
            await self._go_offline()
        elif self.status is ConnectionStatus.OFFLINE:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
            await self._open()

    # -- connection handling ------------------------------------------------

    async def _go_offline(self) -> None:
        logger.warning("no relay endpoint configured; going offline")
        await self._drop_transport()
        self.health.mark_offline()

    async def _drop_transport(self) -> None:
        """Cancel the pending reconnect and background tasks, then close the socket."""
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
        tasks = [
            t
            for t in (self._heartbeat_task, self._reader_task, self._connect_task)
            if t is not None and t is not asyncio.current_task()
        ]
        self._heartbeat_task = self._reader_task = self._connect_task = None
        ws, self._ws = self._ws, None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if ws is not None:
            try:
                await ws.close()
            except _TRANSPORT_ERRORS:
                logger.debug("error while closing socket", exc_info=True)

    async def _open(self) -> None:
        if not self.url:
            await self._go_offline()
            return
        self.health.mark_connecting()
        try:
            ws = await self._connect(self.url)
        except _TRANSPORT_ERRORS as e:
            logger.warning("connect to %s failed: %s", self.url, e)
            self._on_closed()
            return
        if not self._running:
            await ws.close()
            return

        try:
            # Handshake goes out before anything else; the socket is not
            # published for other sends until it is done.
            await ws.send(encode(ClientConnected(role=self.role)))
            await ws.send(encode(RequestSession()))
        except _TRANSPORT_ERRORS as e:
            logger.warning("handshake with %s failed: %s", self.url, e)
            self._on_closed()
            return
        self._ws = ws
        self.health.mark_connected()
        self._reader_task = asyncio.create_task(self._read_loop(ws))

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                self.handle_frame(raw)
        except _TRANSPORT_ERRORS as e:
            logger.info("socket error: %s", e)
        finally:
            if self._ws is ws:
                self._ws = None
                self._on_closed()

    def _on_closed(self) -> None:
        if not self._running:
            return
        self.health.mark_reconnecting()
        if self._reconnect_timer is not None:
            return
        logger.info("reconnecting to %s in %.1fs", self.url, self.reconnect_delay_s)
        loop = asyncio.get_running_loop()
        self._reconnect_timer = loop.call_later(self.reconnect_delay_s, self._reconnect_due)

    def _reconnect_due(self) -> None:
        self._reconnect_timer = None
        if self._running:
            self._connect_task = asyncio.create_task(self._open())

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval_s)
            try:
                await self.heartbeat()
            except Exception:
                logger.exception("heartbeat tick failed")

    async def heartbeat(self) -> None:
        """One heartbeat tick: ping if open, then re-evaluate staleness."""
        if self.is_open:
            await self._send(Ping(timestamp=_now_ms()))
        self.health.check()

    # -- inbound ------------------------------------------------------------

    def handle_frame(self, raw: str | bytes) -> None:
        try:
            msg = parse_server_message(raw)
        except FrameError as e:
            logger.debug("ignoring malformed frame: %s", e)
            return
        if msg is None:
            return
        if isinstance(msg, Pong):
            self.health.record_pong()
            return
        self._session = apply_server_message(self._session, msg)
        self._notify()

    # -- outbound -----------------------------------------------------------

    async def send_map_change(self, map: MapDescriptor) -> None:
        await self._apply_and_send(MapChange(map=map))

    async def send_viewport_change(self, viewport: ViewportState) -> None:
        await self._apply_and_send(ViewportChange(viewport=viewport))

    async def send_grid_update(self, grid: GridSettings) -> None:
        await self._apply_and_send(GridUpdate(grid=grid))

    async def send_table_viewport_change(self, viewport: ViewportState) -> None:
        await self._apply_and_send(TableViewportChange(viewport=viewport))

    async def send_table_size(self, size: ViewportDimensions) -> None:
        await self._apply_and_send(TableSize(size=size))

    async def send_artwork_display(self, artwork: MapDescriptor | None) -> None:
        await self._apply_and_send(ArtworkDisplay(artwork=artwork))

    async def send_lock_viewport(self, locked: bool) -> None:
        await self._apply_and_send(LockViewport(locked=locked))

    async def _apply_and_send(self, intent: Intent) -> None:
        self._session = apply_intent(self._session, intent)
        self._notify()
        await self._send(intent)

    async def _send(self, intent: Intent) -> None:
        ws = self._ws
        if ws is None:
            logger.debug("socket not open; dropping %s", intent.type)
            return
        try:
            await ws.send(encode(intent))
        except ConnectionClosed:
            # The reader notices the close and schedules the reconnect.
            logger.debug("socket closed while sending %s", intent.type)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
