from __future__ import annotations

from typing import assert_never

from tabletop_sync.protocol.messages import (
    ArtworkDisplay,
    ClientConnected,
    GridUpdate,
    Intent,
    LockViewport,
    MapChange,
    Ping,
    Pong,
    RequestSession,
    ServerMessage,
    SessionState,
    SessionStateMessage,
    TableSize,
    TableViewportChange,
    ViewportChange,
    Welcome,
)


def apply_server_message(session: SessionState, msg: ServerMessage) -> SessionState:
    """Return the local mirror after one relay message; `session-state` replaces it wholesale."""
    match msg:
        case SessionStateMessage():
            return msg.session
        case ViewportChange():
            return session.model_copy(update={"viewport": msg.viewport})
        case TableSize():
            return session.model_copy(update={"table_size": msg.size})
        case TableViewportChange():
            return session.model_copy(update={"table_viewport": msg.viewport})
        case GridUpdate():
            return session.model_copy(update={"grid": msg.grid})
        case MapChange():
            grid = msg.map.grid if msg.map.grid is not None else session.grid
            return session.model_copy(update={"map": msg.map, "grid": grid})
        case ArtworkDisplay():
            return session.model_copy(update={"artwork": msg.artwork})
        case LockViewport():
            return session.model_copy(update={"locked": msg.locked})
        case Welcome() | ClientConnected() | Pong():
            return session
        case _:
            assert_never(msg)


def apply_intent(session: SessionState, intent: Intent) -> SessionState:
    """Optimistic local patch for an outbound intent, applied before the relay sees it."""
    match intent:
        case ViewportChange():
            return session.model_copy(update={"viewport": intent.viewport})
        case TableSize():
            return session.model_copy(update={"table_size": intent.size})
        case TableViewportChange():
            return session.model_copy(update={"table_viewport": intent.viewport})
        case GridUpdate():
            return session.model_copy(update={"grid": intent.grid})
        case MapChange():
            return session.model_copy(update={"map": intent.map})
        case ArtworkDisplay():
            return session.model_copy(update={"artwork": intent.artwork})
        case LockViewport():
            return session.model_copy(update={"locked": intent.locked})
        case ClientConnected() | RequestSession() | Ping():
            return session
        case _:
            assert_never(intent)
