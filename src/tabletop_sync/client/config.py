from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """
    Where a sync client should connect.

    `ws_url` pins the endpoint outright; otherwise the URL is derived from
    `ws_host` / `ws_port` / `ws_secure`. With neither, there is no endpoint and
    the client stays offline.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TABLETOP_", extra="ignore")

    ws_url: str | None = None
    ws_host: str | None = None
    ws_port: int = 8081
    ws_secure: bool = False
    ws_path: str = "/ws"


def resolve_ws_url(settings: ClientSettings) -> str | None:
    if settings.ws_url:
        return settings.ws_url
    if not settings.ws_host:
        return None
    proto = "wss" if settings.ws_secure else "ws"
    return f"{proto}://{settings.ws_host}:{settings.ws_port}{settings.ws_path}"


@lru_cache(maxsize=1)
def get_client_settings() -> ClientSettings:
    return ClientSettings()
