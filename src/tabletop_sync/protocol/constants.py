# Message type constants (stringly-typed protocol; canonical list lives here)

# client -> relay (intents)
T_CLIENT_CONNECTED = "client-connected"
T_REQUEST_SESSION = "request-session"
T_VIEWPORT_CHANGE = "viewport-change"
T_TABLE_SIZE = "table-size"
T_TABLE_VIEWPORT_CHANGE = "table-viewport-change"
T_GRID_UPDATE = "grid-update"
T_MAP_CHANGE = "map-change"
T_ARTWORK_DISPLAY = "artwork-display"
T_LOCK_VIEWPORT = "lock-viewport"
T_PING = "ping"

# relay -> clients
T_WELCOME = "welcome"
T_SESSION_STATE = "session-state"
T_PONG = "pong"

INTENT_TYPES = frozenset(
    {
        T_CLIENT_CONNECTED,
        T_REQUEST_SESSION,
        T_VIEWPORT_CHANGE,
        T_TABLE_SIZE,
        T_TABLE_VIEWPORT_CHANGE,
        T_GRID_UPDATE,
        T_MAP_CHANGE,
        T_ARTWORK_DISPLAY,
        T_LOCK_VIEWPORT,
        T_PING,
    }
)

SERVER_TYPES = frozenset(
    {
        T_WELCOME,
        T_SESSION_STATE,
        T_CLIENT_CONNECTED,
        T_VIEWPORT_CHANGE,
        T_TABLE_SIZE,
        T_TABLE_VIEWPORT_CHANGE,
        T_GRID_UPDATE,
        T_MAP_CHANGE,
        T_ARTWORK_DISPLAY,
        T_LOCK_VIEWPORT,
        T_PONG,
    }
)

BLANK_MAP_ID = "blank"

# Timing (seconds)
HEARTBEAT_INTERVAL_S = 5.0
STALE_AFTER_S = 10.0
RECONNECT_DELAY_S = 2.0
LOST_DEBOUNCE_S = 0.3
