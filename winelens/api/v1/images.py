"""Serves images saved by the local blob backend."""

from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from winelens.storage.blob_store import LocalBlobStore

router = APIRouter()

# Set by main.py during lifespan when blob_backend=local
_blob_store: Optional[LocalBlobStore] = None

_MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def set_blob_store(store: Optional[LocalBlobStore]):
    global _blob_store
    _blob_store = store


@router.get("/images/{name}")
async def get_image(name: str):
    """Stream a stored image back (the vision model fetches it from here)."""
    if _blob_store is None:
        raise HTTPException(status_code=404, detail="Local image storage not enabled")
    if not _blob_store.file_exists(name):
        raise HTTPException(status_code=404, detail="Image not found")
    ext = name[name.rfind("."):].lower() if "." in name else ""
    media_type = _MEDIA_TYPES.get(ext, "application/octet-stream")
    return FileResponse(_blob_store.get_path(name), media_type=media_type)
