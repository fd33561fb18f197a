"""Status service: read-only view of a job for polling clients."""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from winelens.errors import NotFoundError
from winelens.jobs.models import JobRecord, JobStatus, detail_key
from winelens.storage.job_store import JobStore

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
LIMITED_DATA_MESSAGE = "Limited data available. Full details could not be retrieved."


class StatusService:
    def __init__(self, store: JobStore, detail_suffix: str = "_details"):
        self.store = store
        self.detail_suffix = detail_suffix

    async def get_status(self, job_id: str) -> Dict[str, Any]:
        """Return {status, data?, error?} for job_id. Never writes."""
        try:
            raw = await self.store.get(job_id)
        except NotFoundError:
            return {"status": NOT_FOUND}

        try:
            job = JobRecord.model_validate({"jobId": job_id, **raw})
        except ValidationError as exc:
            logger.error(f"[{job_id}] Unreadable job record: {exc}")
            return {"status": NOT_FOUND}

        if job.status == JobStatus.COMPLETED:
            return {"status": job.status.value, "data": await self._completed_data(job)}

        if job.is_terminal:
            return {
                "status": job.status.value,
                "error": job.error or "Processing failed",
            }

        return {
            "status": job.status.value,
            "data": {
                "imageUrl": job.image_url,
                "progress": {
                    "current": job.progress_current,
                    "total": job.progress_total,
                    "message": job.progress_message,
                },
            },
        }

    async def _completed_data(self, job: JobRecord) -> Dict[str, Any]:
        summary = job.result_summary
        image_url = summary.image_url if summary and summary.image_url else job.image_url

        try:
            details = await self.store.get(detail_key(job.job_id, self.detail_suffix))
        except NotFoundError:
            # Detail write failed or has not landed yet
            details = None

        if details is not None:
            return {
                "items": details.get("items", []),
                "imageUrl": image_url,
                "completedAt": job.completed_at,
            }

        data: Dict[str, Any] = {
            "items": [{"name": name} for name in (summary.item_names if summary else [])],
            "imageUrl": image_url,
            "completedAt": job.completed_at,
        }
        if summary is None or summary.item_count:
            data["message"] = (summary.message if summary and summary.message else LIMITED_DATA_MESSAGE)
        return data
