from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from tabletop_sync.protocol.messages import (
    ClientRole,
    SessionState,
    ViewportDimensions,
    WireModel,
    default_session,
    encode,
)

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_text(self, data: str) -> None: ...


@dataclass(eq=False)
class ClientHandle:
    connection: Connection
    # Role defaults to table until the client announces itself.
    role: ClientRole = "table"
    viewport: ViewportDimensions | None = None


@dataclass
class SessionStore:
    """The one authoritative session record; each update swaps whole fields."""

    state: SessionState = field(default_factory=default_session)

    def update(self, **fields: Any) -> SessionState:
        self.state = self.state.model_copy(update=fields)
        return self.state


async def send(client: ClientHandle, msg: WireModel) -> None:
    try:
        await client.connection.send_text(encode(msg))
    except Exception:
        logger.debug("send to %s client failed", client.role, exc_info=True)


async def broadcast(
    clients: set[ClientHandle], msg: WireModel, exclude: ClientHandle | None = None
) -> None:
    dead: list[ClientHandle] = []
    data = encode(msg)
    for client in list(clients):
        if exclude is client:
            continue
        try:
            await client.connection.send_text(data)
        except Exception:
            dead.append(client)
    for client in dead:
        clients.discard(client)
