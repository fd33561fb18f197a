"""Health check endpoint."""

import platform
import sys
from typing import Optional

from fastapi import APIRouter

from winelens.config import settings
from winelens.storage.job_store import JobStore

router = APIRouter()

# Set by main.py during lifespan
_store: Optional[JobStore] = None
_ai_configured = False


def set_health_sources(store: JobStore, ai_configured: bool):
    global _store, _ai_configured
    _store = store
    _ai_configured = ai_configured


@router.get("/health")
async def health_check():
    """Service health, job store reachability, and configuration summary."""
    store_ok = False
    store_error = None
    if _store is not None:
        try:
            store_ok = await _store.ping()
        except Exception as exc:
            store_error = str(exc)

    return {
        "status": "healthy" if store_ok else "degraded",
        "job_store": {
            "backend": settings.kv_backend,
            "reachable": store_ok,
            "error": store_error,
        },
        "blob_backend": settings.blob_backend,
        "dispatch_mode": settings.dispatch_mode,
        "ai_configured": _ai_configured,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
