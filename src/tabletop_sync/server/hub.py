from __future__ import annotations

import asyncio
import logging
from typing import assert_never

from tabletop_sync.protocol.messages import (
    ArtworkDisplay,
    ClientConnected,
    FrameError,
    GridUpdate,
    Intent,
    LockViewport,
    MapChange,
    Ping,
    Pong,
    RequestSession,
    SessionState,
    SessionStateMessage,
    TableSize,
    TableViewportChange,
    ViewportChange,
    Welcome,
    WireModel,
    parse_intent,
)

from .metadata import GridMetadataStore
from .sessions import ClientHandle, Connection, SessionStore, broadcast, send

logger = logging.getLogger(__name__)


class RelayHub:
    """
    Owns the authoritative session and fans applied intents out to every other client.

    Intents are handled one at a time in arrival order (a single lock covers the
    whole handler, including the grid-metadata I/O), so two quick `map-change`
    intents can never broadcast out of order. Pings bypass the lock. Broadcasts
    always exclude the sender.
    """

    def __init__(
        self,
        metadata: GridMetadataStore,
        *,
        store: SessionStore | None = None,
        debug_log_msgs: bool = False,
    ) -> None:
        self.metadata = metadata
        self.store = store if store is not None else SessionStore()
        self.clients: set[ClientHandle] = set()
        self.debug_log_msgs = debug_log_msgs
        self._lock = asyncio.Lock()

    @property
    def session(self) -> SessionState:
        return self.store.state

    def on_connect(self, conn: Connection) -> ClientHandle:
        client = ClientHandle(connection=conn)
        self.clients.add(client)
        logger.info("client connected (%d total)", len(self.clients))
        return client

    def on_disconnect(self, client: ClientHandle) -> None:
        # Already-applied session mutations stay.
        self.clients.discard(client)
        logger.info("%s client disconnected (%d left)", client.role, len(self.clients))

    async def on_message(self, client: ClientHandle, raw: str | bytes) -> None:
        try:
            intent = parse_intent(raw)
        except FrameError as e:
            logger.debug("dropping frame from %s client: %s", client.role, e)
            return
        if intent is None:
            logger.debug("ignoring unknown message type from %s client", client.role)
            return
        if self.debug_log_msgs:
            logger.debug("in type=%s role=%s msg=%s", intent.type, client.role, intent)
        if isinstance(intent, Ping):
            # Pings touch no state; answer them even while a slow broadcast holds the lock.
            await self.dispatch(client, intent)
            return
        async with self._lock:
            await self.dispatch(client, intent)

    async def dispatch(self, client: ClientHandle, intent: Intent) -> None:
        match intent:
            case ClientConnected():
                client.role = intent.role
                client.viewport = intent.viewport
                await send(client, Welcome(role=intent.role))
                await self._broadcast(intent, client)
                await self._send_session(client)
            case RequestSession():
                await self._send_session(client)
            case ViewportChange():
                self.store.update(viewport=intent.viewport)
                await self._broadcast(intent, client)
            case TableSize():
                self.store.update(table_size=intent.size)
                await self._broadcast(intent, client)
            case TableViewportChange():
                self.store.update(table_viewport=intent.viewport)
                await self._broadcast(intent, client)
            case GridUpdate():
                self.store.update(grid=intent.grid)
                await self._broadcast(intent, client)
                key = self.session.map.metadata_key
                if key:
                    await self.metadata.write(key, intent.grid)
            case MapChange():
                await self._change_map(client, intent)
            case ArtworkDisplay():
                self.store.update(artwork=intent.artwork)
                await self._broadcast(intent, client)
            case LockViewport():
                self.store.update(locked=intent.locked)
                await self._broadcast(intent, client)
            case Ping():
                await send(client, Pong(timestamp=intent.timestamp))
            case _:
                assert_never(intent)

    async def _change_map(self, client: ClientHandle, intent: MapChange) -> None:
        key = intent.map.metadata_key
        stored = await self.metadata.get_grid(key) if key else None
        if stored is None:
            self.store.update(map=intent.map)
            await self._broadcast(intent, client)
            return

        # Stored grid wins over whatever grid the incoming descriptor carries.
        merged = intent.map.model_copy(update={"grid": stored})
        self.store.update(map=merged, grid=stored)
        await self._broadcast(MapChange(map=merged), client)
        await self._broadcast(GridUpdate(grid=stored), client)

    async def _send_session(self, client: ClientHandle) -> None:
        await send(client, SessionStateMessage(session=self.session))

    async def _broadcast(self, msg: WireModel, sender: ClientHandle) -> None:
        await broadcast(self.clients, msg, exclude=sender)
