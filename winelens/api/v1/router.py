"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from winelens.api.v1.health import router as health_router
from winelens.api.v1.analysis import router as analysis_router
from winelens.api.v1.worker import router as worker_router
from winelens.api.v1.images import router as images_router
from winelens.api.compat import router as compat_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(analysis_router, tags=["analysis"])
v1_router.include_router(worker_router, tags=["worker"])
v1_router.include_router(images_router, tags=["images"])

# Compatibility shim -- mounts /api/analyze-wine and /api/get-analysis-result
analysis_router_compat = APIRouter()
analysis_router_compat.include_router(compat_router, tags=["compat"])
