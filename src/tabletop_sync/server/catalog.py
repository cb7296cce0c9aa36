from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse, Response

from tabletop_sync.protocol.messages import GridSettings, WireModel

from .metadata import GridMetadataStore

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}
IMAGE_EXTENSIONS = frozenset(CONTENT_TYPES)


class CatalogEntry(WireModel):
    filename: str
    name: str
    size: int  # bytes
    last_modified: int  # epoch ms
    grid: Optional[GridSettings] = None


def sanitize_filename(filename: str) -> str:
    """Strip any directory part; returns "" when nothing usable is left."""
    name = PurePosixPath(filename.replace("\\", "/")).name
    return "" if name in ("", ".", "..") else name


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(PurePosixPath(filename).suffix.lower(), "application/octet-stream")


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status)


def _entry(path: Path, grid: GridSettings | None = None) -> CatalogEntry:
    st = path.stat()
    return CatalogEntry(
        filename=path.name,
        name=path.stem,
        size=st.st_size,
        last_modified=int(st.st_mtime * 1000),
        grid=grid,
    )


def _scan(directory: Path) -> list[Path]:
    directory.mkdir(parents=True, exist_ok=True)
    return sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
    )


def build_catalog_router(
    kind: str,
    directory: Path,
    *,
    metadata: GridMetadataStore | None = None,
    max_upload_bytes: int = 50 * 1024 * 1024,
) -> APIRouter:
    """
    File catalog for one asset directory (`/api/{kind}`).

    When `metadata` is given, listed/uploaded entries carry their stored grid and
    deleting a file also drops its metadata entry.
    """
    router = APIRouter(prefix=f"/api/{kind}", tags=[kind])
    label = kind.rstrip("s").capitalize()

    async def _grids() -> dict[str, GridSettings | None]:
        if metadata is None:
            return {}
        return {name: entry.grid for name, entry in (await metadata.read_all()).items()}

    @router.get("")
    async def list_entries():
        paths = await asyncio.to_thread(_scan, directory)
        grids = await _grids()
        entries = [_entry(p, grids.get(p.name)) for p in paths]
        return {"maps": [e.model_dump(by_alias=True, exclude_none=True) for e in entries]}

    @router.post("", status_code=201)
    async def upload(file: UploadFile | None = File(default=None)):
        if file is None or not file.filename:
            return _error(400, "Expected form-data field `file`")
        data = await file.read(max_upload_bytes + 1)
        if len(data) > max_upload_bytes:
            return _error(413, "File too large")
        filename = sanitize_filename(file.filename)
        if not filename:
            return _error(400, "Invalid filename")

        target = directory / filename
        await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_bytes, data)
        logger.info("stored %s upload %s (%d bytes)", kind, filename, len(data))

        grids = await _grids()
        entry = _entry(target, grids.get(filename))
        return JSONResponse(entry.model_dump(by_alias=True, exclude_none=True), status_code=201)

    @router.delete("")
    async def delete(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return _error(400, "Invalid JSON body")
        raw = body.get("filename") if isinstance(body, dict) else None
        filename = sanitize_filename(raw) if isinstance(raw, str) else ""
        if not filename:
            return _error(400, "Missing `filename`")

        try:
            await asyncio.to_thread((directory / filename).unlink)
        except FileNotFoundError:
            return _error(404, f"{label} not found: {filename}")
        if metadata is not None:
            await metadata.remove(filename)
        logger.info("deleted %s %s", kind, filename)
        return Response(status_code=204)

    @router.get("/{filename}")
    def fetch(filename: str):
        name = sanitize_filename(filename)
        if not name:
            return _error(400, "Filename is required")
        path = directory / name
        if not path.is_file():
            return _error(404, "Not found")
        return FileResponse(path, media_type=content_type_for(name))

    return router
