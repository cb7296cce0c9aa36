from __future__ import annotations

import json
from typing import Annotated, Literal, Optional, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_serializer
from pydantic.alias_generators import to_camel

from .constants import BLANK_MAP_ID, INTENT_TYPES, SERVER_TYPES

ClientRole: TypeAlias = Literal["dm", "table"]


class WireModel(BaseModel):
    # camelCase on the wire, snake_case in Python; instances are replaced, never mutated
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Shared state shapes
# ---------------------------------------------------------------------------


class GridOrigin(WireModel):
    x: float
    y: float


class GridSettings(WireModel):
    size: float  # px between grid lines at zoom=1
    origin: Optional[GridOrigin] = None
    color: Optional[str] = None  # CSS color string
    opacity: Optional[float] = None  # 0-1
    background_color: Optional[str] = None


class ViewportDimensions(WireModel):
    width: float
    height: float


class ViewportState(WireModel):
    x: float  # top-left offset in map coordinates
    y: float
    zoom: Annotated[float, Field(gt=0, description="1 = 100%")]
    rotation: Optional[float] = None


class MapDescriptor(WireModel):
    id: str  # filename or UUID
    name: str
    filename: str
    width: Optional[float] = None
    height: Optional[float] = None
    grid: Optional[GridSettings] = None

    @property
    def is_blank(self) -> bool:
        return self.id == BLANK_MAP_ID

    @property
    def metadata_key(self) -> str | None:
        """Filename under which this map's grid is stored, or None if it has none."""
        if self.is_blank or not self.filename:
            return None
        return self.filename


BLANK_MAP = MapDescriptor(id=BLANK_MAP_ID, name="Blank", filename="")


class SessionState(WireModel):
    grid: GridSettings
    map: MapDescriptor
    artwork: Optional[MapDescriptor] = None
    locked: Optional[bool] = None
    viewport: Optional[ViewportState] = None
    table_viewport: Optional[ViewportState] = None
    table_size: Optional[ViewportDimensions] = None


def default_session() -> SessionState:
    return SessionState(
        grid=GridSettings(size=48, color="#e0e5f5", opacity=0.18, background_color="#0c0d11"),
        map=BLANK_MAP,
        artwork=None,
        locked=False,
        viewport=ViewportState(x=0, y=0, zoom=1),
        table_viewport=ViewportState(x=0, y=0, zoom=1),
        table_size=ViewportDimensions(width=1920, height=1080),
    )


# ---------------------------------------------------------------------------
# Messages. Shapes shared by an intent and its broadcast use the same class.
# ---------------------------------------------------------------------------


class ClientConnected(WireModel):
    type: Literal["client-connected"] = "client-connected"
    role: ClientRole
    viewport: Optional[ViewportDimensions] = None


class RequestSession(WireModel):
    type: Literal["request-session"] = "request-session"


class ViewportChange(WireModel):
    type: Literal["viewport-change"] = "viewport-change"
    viewport: ViewportState


class TableSize(WireModel):
    type: Literal["table-size"] = "table-size"
    size: ViewportDimensions


class TableViewportChange(WireModel):
    type: Literal["table-viewport-change"] = "table-viewport-change"
    viewport: ViewportState


class GridUpdate(WireModel):
    type: Literal["grid-update"] = "grid-update"
    grid: GridSettings


class MapChange(WireModel):
    type: Literal["map-change"] = "map-change"
    map: MapDescriptor


class ArtworkDisplay(WireModel):
    type: Literal["artwork-display"] = "artwork-display"
    artwork: Optional[MapDescriptor] = None

    @model_serializer(mode="wrap")
    def _keep_null_artwork(self, handler):
        # Clearing artwork goes out as an explicit `"artwork": null`.
        data = handler(self)
        data.setdefault("artwork", None)
        return data


class LockViewport(WireModel):
    type: Literal["lock-viewport"] = "lock-viewport"
    locked: bool


class Ping(WireModel):
    type: Literal["ping"] = "ping"
    timestamp: Union[int, float]  # ms; echoed back untouched


class Welcome(WireModel):
    type: Literal["welcome"] = "welcome"
    role: ClientRole


class SessionStateMessage(WireModel):
    type: Literal["session-state"] = "session-state"
    session: SessionState


class Pong(WireModel):
    type: Literal["pong"] = "pong"
    timestamp: Union[int, float]


Intent: TypeAlias = Annotated[
    Union[
        ClientConnected,
        RequestSession,
        ViewportChange,
        TableSize,
        TableViewportChange,
        GridUpdate,
        MapChange,
        ArtworkDisplay,
        LockViewport,
        Ping,
    ],
    Field(discriminator="type"),
]

ServerMessage: TypeAlias = Annotated[
    Union[
        Welcome,
        SessionStateMessage,
        ClientConnected,
        ViewportChange,
        TableSize,
        TableViewportChange,
        GridUpdate,
        MapChange,
        ArtworkDisplay,
        LockViewport,
        Pong,
    ],
    Field(discriminator="type"),
]

_INTENT_ADAPTER: TypeAdapter[Intent] = TypeAdapter(Intent)
_SERVER_ADAPTER: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)


class FrameError(ValueError):
    """An inbound frame that is not a well-formed protocol message."""


def encode(msg: WireModel) -> str:
    return msg.model_dump_json(by_alias=True, exclude_none=True)


def decode_frame(raw: str | bytes) -> dict:
    """Decode a text frame into a dict carrying a string `type` field."""
    try:
        obj = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FrameError("frame is not valid JSON") from e
    if not isinstance(obj, dict):
        raise FrameError("frame is not a JSON object")
    if not isinstance(obj.get("type"), str):
        raise FrameError("frame has no string `type`")
    return obj


def parse_intent(raw: str | bytes) -> Intent | None:
    """
    Parse a client frame.

    Returns None for an unrecognized `type`; raises FrameError for anything malformed.
    """
    obj = decode_frame(raw)
    if obj["type"] not in INTENT_TYPES:
        return None
    try:
        return _INTENT_ADAPTER.validate_python(obj)
    except ValidationError as e:
        raise FrameError(f"invalid {obj['type']} payload") from e


def parse_server_message(raw: str | bytes) -> ServerMessage | None:
    obj = decode_frame(raw)
    if obj["type"] not in SERVER_TYPES:
        return None
    try:
        return _SERVER_ADAPTER.validate_python(obj)
    except ValidationError as e:
        raise FrameError(f"invalid {obj['type']} payload") from e
