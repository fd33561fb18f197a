"""Internal worker endpoint used by the HTTP dispatcher.

Acknowledges with 202 and runs the pipeline after the response is sent.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException

from winelens.analysis.pipeline import AnalysisWorker
from winelens.jobs.models import WorkerPayload

router = APIRouter()

# Set by main.py during lifespan
_worker: Optional[AnalysisWorker] = None


def set_worker(worker: AnalysisWorker):
    global _worker
    _worker = worker


@router.post("/worker/analyze", status_code=202)
async def run_worker(payload: WorkerPayload, background_tasks: BackgroundTasks):
    if _worker is None:
        raise HTTPException(status_code=503, detail="Worker not initialized")
    background_tasks.add_task(_worker.run, payload)
    return {"message": "Processing started", "jobId": payload.job_id}
