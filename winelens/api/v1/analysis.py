"""Analysis API: submit an image, poll for the result."""

import logging
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from winelens.errors import BlobStoreError, InvalidImageError, JobStoreError
from winelens.jobs.status import NOT_FOUND, StatusService
from winelens.jobs.trigger import SubmitResult, TriggerService

logger = logging.getLogger(__name__)

router = APIRouter()

# Set by main.py during lifespan
_trigger: Optional[TriggerService] = None
_status: Optional[StatusService] = None


def set_services(trigger: TriggerService, status: StatusService):
    global _trigger, _status
    _trigger = trigger
    _status = status


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    image: Optional[str] = None
    request_id: Optional[str] = None


class AnalyzeResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    status: str
    request_id: Optional[str] = None
    message: Optional[str] = None


def _submit_response(result: SubmitResult) -> JSONResponse:
    body = AnalyzeResponse(
        job_id=result.job_id,
        status=result.status,
        request_id=result.request_id,
        message=result.message,
    ).model_dump(by_alias=True)
    return JSONResponse(status_code=202 if result.accepted else 502, content=body)


async def _submit(image, request_id: Optional[str]) -> JSONResponse:
    if _trigger is None:
        raise HTTPException(status_code=503, detail="Trigger service not initialized")
    try:
        result = await _trigger.submit(image, request_id=request_id)
    except InvalidImageError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except BlobStoreError as exc:
        logger.error(f"[{request_id or '-'}] Image upload failed: {exc}")
        raise HTTPException(status_code=502, detail=f"Failed to store image: {exc}")
    except JobStoreError as exc:
        logger.error(f"[{request_id or '-'}] Job store unavailable: {exc}")
        raise HTTPException(status_code=500, detail=f"Failed to create job: {exc}")
    return _submit_response(result)


@router.post("/analyze", response_model=AnalyzeResponse, status_code=202)
async def analyze(request: AnalyzeRequest):
    """Start an analysis job from a base64 image or data URL.

    Returns immediately; poll GET /api/v1/analysis-result?jobId=... for the outcome.
    """
    return await _submit(request.image, request.request_id)


@router.post("/analyze/upload", response_model=AnalyzeResponse, status_code=202)
async def analyze_upload(file: UploadFile = File(...)):
    """Start an analysis job from a multipart image upload."""
    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")
    data = await file.read()
    return await _submit(data, None)


@router.get("/analysis-result")
async def analysis_result(job_id: Optional[str] = Query(None, alias="jobId")):
    """Current status of a job, with its wines once completed."""
    if _status is None:
        raise HTTPException(status_code=503, detail="Status service not initialized")
    if not job_id:
        raise HTTPException(status_code=400, detail="Missing or invalid jobId parameter")
    try:
        result = await _status.get_status(job_id)
    except JobStoreError as exc:
        logger.error(f"[{job_id}] Error fetching job status: {exc}")
        raise HTTPException(status_code=500, detail="Error fetching job status")
    if result["status"] == NOT_FOUND:
        return JSONResponse(status_code=404, content=result)
    return result
