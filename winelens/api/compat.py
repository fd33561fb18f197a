"""Compatibility paths for the existing web frontend.

  POST /api/analyze-wine          -- same as POST /api/v1/analyze
  GET  /api/get-analysis-result   -- same as GET /api/v1/analysis-result

This is a thin layer over the v1 analysis routes.
"""

from fastapi import APIRouter

from winelens.api.v1 import analysis

router = APIRouter(prefix="/api")

router.add_api_route(
    "/analyze-wine",
    analysis.analyze,
    methods=["POST"],
    status_code=202,
    response_model=analysis.AnalyzeResponse,
)
router.add_api_route("/get-analysis-result", analysis.analysis_result, methods=["GET"])
