from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from tabletop_sync.protocol.messages import GridSettings, WireModel

logger = logging.getLogger(__name__)


class MapMetadata(WireModel):
    grid: Optional[GridSettings] = None


class GridMetadataStore:
    """
    Durable filename -> {grid} mapping kept in a single JSON document.

    Every write/remove is a read-modify-write of the whole document. Calls are
    serialized within this process; separate processes writing the same file
    can still lose each other's updates (last writer of the document wins).
    A missing or unparseable document reads as an empty mapping.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def read_all(self) -> dict[str, MapMetadata]:
        async with self._lock:
            raw = await asyncio.to_thread(self._load)
        out: dict[str, MapMetadata] = {}
        for filename, entry in raw.items():
            try:
                out[filename] = MapMetadata.model_validate(entry)
            except ValidationError:
                logger.warning("skipping unreadable metadata entry for %s", filename)
        return out

    async def get_grid(self, filename: str) -> GridSettings | None:
        entry = (await self.read_all()).get(filename)
        return entry.grid if entry is not None else None

    async def write(self, filename: str, grid: GridSettings) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write_sync, filename, grid)

    async def remove(self, filename: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._remove_sync, filename)

    # -- blocking helpers (run in a worker thread) --------------------------

    def _load(self) -> dict[str, dict]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            doc = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("metadata document %s is corrupt; treating as empty", self.path)
            return {}
        if not isinstance(doc, dict):
            return {}
        return {k: v for k, v in doc.items() if isinstance(v, dict)}

    def _dump(self, doc: dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".metadata-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _write_sync(self, filename: str, grid: GridSettings) -> None:
        doc = self._load()
        entry = dict(doc.get(filename) or {})
        entry["grid"] = grid.model_dump(by_alias=True, exclude_none=True)
        doc[filename] = entry
        self._dump(doc)

    def _remove_sync(self, filename: str) -> None:
        doc = self._load()
        if filename in doc:
            del doc[filename]
            self._dump(doc)
