"""WineLens analysis backend - FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from winelens.config import settings
from winelens.api.v1.router import v1_router, analysis_router_compat
from winelens.api.v1.health import router as health_root_router
from winelens.api.v1 import analysis as analysis_api
from winelens.api.v1 import health as health_api
from winelens.api.v1 import images as images_api
from winelens.api.v1 import worker as worker_api
from winelens.ai.client import build_ai_client
from winelens.analysis.pipeline import AnalysisWorker
from winelens.jobs.dispatcher import JobDispatcher
from winelens.jobs.http_dispatcher import HttpDispatcher
from winelens.jobs.in_process_queue import InProcessQueue
from winelens.jobs.status import StatusService
from winelens.jobs.trigger import TriggerService
from winelens.storage.blob_store import LocalBlobStore, build_blob_store
from winelens.storage.job_store import build_job_store

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_dispatcher(worker: AnalysisWorker) -> JobDispatcher:
    if settings.dispatch_mode == "http":
        return HttpDispatcher(settings.worker_url, timeout=settings.dispatch_timeout_seconds)
    if settings.dispatch_mode == "local":
        return InProcessQueue(worker_fn=worker.run, concurrency=settings.local_worker_concurrency)
    raise ValueError(f"Unknown dispatch_mode '{settings.dispatch_mode}'. Valid: local, http")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    logger.info(f"Starting WineLens backend on port {settings.compute_port}")
    logger.info(
        f"Job store: {settings.kv_backend}, blob store: {settings.blob_backend}, "
        f"dispatch mode: {settings.dispatch_mode}"
    )

    if settings.dispatch_mode == "http" and settings.kv_backend == "memory":
        logger.warning("dispatch_mode=http with an in-memory job store only works when the worker runs in this process")

    store = build_job_store(settings)
    blob_store = build_blob_store(settings)
    ai = build_ai_client(settings)

    worker = AnalysisWorker(
        store,
        ai,
        max_items=settings.max_items,
        detail_suffix=settings.detail_key_suffix,
        enrichment_timeout=settings.enrichment_timeout_seconds,
    )
    dispatcher = build_dispatcher(worker)
    await dispatcher.start()

    trigger = TriggerService(
        store, blob_store, dispatcher, max_image_bytes=settings.max_image_bytes
    )
    status = StatusService(store, detail_suffix=settings.detail_key_suffix)

    # Wire services into API endpoints
    analysis_api.set_services(trigger, status)
    worker_api.set_worker(worker)
    health_api.set_health_sources(store, ai_configured=ai is not None)
    images_api.set_blob_store(blob_store if isinstance(blob_store, LocalBlobStore) else None)

    yield

    logger.info("Shutting down WineLens backend")
    await dispatcher.stop()
    if ai is not None:
        await ai.close()
    await store.close()
    if isinstance(blob_store, LocalBlobStore):
        blob_store.cleanup_expired()


app = FastAPI(
    title="WineLens Analysis Service",
    description="Asynchronous wine recognition and enrichment from photos",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(health_root_router, tags=["health"])  # GET /health at root
app.include_router(v1_router)  # All /api/v1/* endpoints
app.include_router(analysis_router_compat)  # /api/analyze-wine, /api/get-analysis-result
