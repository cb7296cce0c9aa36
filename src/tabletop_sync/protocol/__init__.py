from .constants import (
    BLANK_MAP_ID,
    T_ARTWORK_DISPLAY,
    T_CLIENT_CONNECTED,
    T_GRID_UPDATE,
    T_LOCK_VIEWPORT,
    T_MAP_CHANGE,
    T_PING,
    T_PONG,
    T_REQUEST_SESSION,
    T_SESSION_STATE,
    T_TABLE_SIZE,
    T_TABLE_VIEWPORT_CHANGE,
    T_VIEWPORT_CHANGE,
    T_WELCOME,
)
from .messages import (
    BLANK_MAP,
    FrameError,
    GridSettings,
    Intent,
    MapDescriptor,
    ServerMessage,
    SessionState,
    ViewportDimensions,
    ViewportState,
    default_session,
    encode,
    parse_intent,
    parse_server_message,
)

__all__ = [
    "BLANK_MAP",
    "BLANK_MAP_ID",
    "FrameError",
    "GridSettings",
    "Intent",
    "MapDescriptor",
    "ServerMessage",
    "SessionState",
    "T_ARTWORK_DISPLAY",
    "T_CLIENT_CONNECTED",
    "T_GRID_UPDATE",
    "T_LOCK_VIEWPORT",
    "T_MAP_CHANGE",
    "T_PING",
    "T_PONG",
    "T_REQUEST_SESSION",
    "T_SESSION_STATE",
    "T_TABLE_SIZE",
    "T_TABLE_VIEWPORT_CHANGE",
    "T_VIEWPORT_CHANGE",
    "T_WELCOME",
    "ViewportDimensions",
    "ViewportState",
    "default_session",
    "encode",
    "parse_intent",
    "parse_server_message",
]
