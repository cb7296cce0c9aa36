from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime config for the relay.

    - Loaded from environment variables (`TABLETOP_*`)
    - Also reads `.env` if present (via pydantic-settings + python-dotenv)
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TABLETOP_", extra="ignore")

    host: str = "0.0.0.0"
    ws_port: int = 8081

    # Asset directories; the grid metadata document lives next to the maps
    maps_dir: Path = Path("maps")
    artwork_dir: Path = Path("artwork")
    metadata_filename: str = "metadata.json"
    max_upload_bytes: int = 50 * 1024 * 1024

    # Debugging
    debug_log_msgs: bool = False

    @property
    def metadata_path(self) -> Path:
        return self.maps_dir / self.metadata_filename


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
