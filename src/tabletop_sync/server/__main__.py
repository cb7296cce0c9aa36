from __future__ import annotations

import logging

import uvicorn

from .app import create_app
from .config import get_settings


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug_log_msgs else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info(
        "relay listening on ws://%s:%d/ws", settings.host, settings.ws_port
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.ws_port)


if __name__ == "__main__":
    main()
