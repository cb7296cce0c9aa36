from __future__ import annotations

import logging

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from .catalog import build_catalog_router
from .config import Settings, get_settings
from .hub import RelayHub
from .metadata import GridMetadataStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    metadata = GridMetadataStore(settings.metadata_path)
    hub = RelayHub(metadata, debug_log_msgs=settings.debug_log_msgs)

    app = FastAPI(title="tabletop-sync")
    app.state.settings = settings
    app.state.hub = hub

    app.include_router(
        build_catalog_router(
            "maps",
            settings.maps_dir,
            metadata=metadata,
            max_upload_bytes=settings.max_upload_bytes,
        )
    )
    app.include_router(
        build_catalog_router(
            "artwork",
            settings.artwork_dir,
            max_upload_bytes=settings.max_upload_bytes,
        )
    )

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "clients": len(hub.clients)}

    @app.websocket("/ws")
    async def ws(ws: WebSocket):
        await ws.accept()
        client = hub.on_connect(ws)
        try:
            while True:
                frame = await ws.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                raw = frame.get("text")
                if raw is None:
                    raw = frame.get("bytes") or b""
                try:
                    await hub.on_message(client, raw)
                except Exception:
                    # A failing handler never takes the connection down with it.
                    logger.exception("failed to process message from %s client", client.role)
        except WebSocketDisconnect:
            pass
        finally:
            hub.on_disconnect(client)

    return app
