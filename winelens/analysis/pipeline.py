"""Analysis worker: extraction -> concurrent enrichment -> aggregation & persistence.

The worker owns a job from dispatch until its terminal write. Every path
out of ``AnalysisWorker.run`` leaves the job completed or failed; the only
exception is a store that cannot be written at all, which is logged.
"""

import logging
from typing import List, Optional

from winelens.ai.client import AIClient
from winelens.analysis.enrichment import enrich_items
from winelens.analysis.extraction import extract_items
from winelens.errors import AIClientNotConfiguredError, EntryTooLargeError, JobStoreError
from winelens.jobs.models import (
    Item,
    JobStatus,
    ResultSummary,
    WorkerPayload,
    detail_key,
    utc_now_iso,
)
from winelens.storage.job_store import JobStore

logger = logging.getLogger(__name__)

SUMMARY_CHARS = 500
REVIEW_CHARS = 500
VALUE_ASSESSMENT_CHARS = 200

TRUNCATION_NOTICE = "Full data exceeded size limits. Only basic information is available."


def clip_item(item: Item) -> Item:
    """Copy of item with long free-text fields clipped for storage."""
    clipped = item.model_copy(deep=True)
    if clipped.summary:
        clipped.summary = clipped.summary[:SUMMARY_CHARS]
    if clipped.value_assessment:
        clipped.value_assessment = clipped.value_assessment[:VALUE_ASSESSMENT_CHARS]
    for review in clipped.reviews:
        review.review = review.review[:REVIEW_CHARS]
    return clipped


class AnalysisWorker:
    """Runs the analysis pipeline for dispatched jobs."""

    def __init__(
        self,
        store: JobStore,
        ai: Optional[AIClient],
        max_items: int = 10,
        detail_suffix: str = "_details",
        enrichment_timeout: Optional[float] = None,
    ):
        self.store = store
        self.ai = ai
        self.max_items = max_items
        self.detail_suffix = detail_suffix
        self.enrichment_timeout = enrichment_timeout

    async def run(self, payload: WorkerPayload) -> JobStatus:
        """Process one job to a terminal state. Does not raise on pipeline errors."""
        prefix = f"[{payload.request_id}] [{payload.job_id}] "
        logger.info(f"{prefix}Background processing started for image: {payload.image_url}")
        try:
            return await self._run_pipeline(payload, prefix)
        except Exception as exc:
            logger.exception(f"{prefix}Analysis failed")
            await self._mark_failed(payload, str(exc) or type(exc).__name__, prefix)
            return JobStatus.FAILED

    async def _run_pipeline(self, payload: WorkerPayload, prefix: str) -> JobStatus:
        job_id = payload.job_id
        # Claiming the job is idempotent with the trigger's own processing write
        await self.store.update(job_id, {
            "status": JobStatus.PROCESSING.value,
            "progressMessage": "Identifying wines",
            "updatedAt": utc_now_iso(),
        })

        if self.ai is None:
            raise AIClientNotConfiguredError("AI client not configured (OPENAI_API_KEY is not set)")

        items = await extract_items(
            self.ai, payload.image_url, max_items=self.max_items, log_prefix=prefix
        )
        if not items:
            logger.info(f"{prefix}No wines detected in the image")
            await self._persist(payload, [], prefix)
            return JobStatus.COMPLETED

        await self._progress(job_id, 0, len(items), f"Enriching {len(items)} wine(s)", prefix)

        async def on_progress(done: int, total: int) -> None:
            await self._progress(job_id, done, total, f"Enriched {done}/{total} wine(s)", prefix)

        enriched = await enrich_items(
            self.ai,
            items,
            image_url=payload.image_url,
            timeout=self.enrichment_timeout,
            on_progress=on_progress,
            log_prefix=prefix,
        )
        failed = sum(1 for item in enriched if item.error)
        if failed:
            logger.warning(f"{prefix}{failed} of {len(enriched)} wine(s) fell back to defaults")

        await self._persist(payload, enriched, prefix)
        return JobStatus.COMPLETED

    async def _progress(self, job_id: str, current: int, total: int, message: str, prefix: str) -> None:
        try:
            await self.store.update(job_id, {
                "progressCurrent": current,
                "progressTotal": total,
                "progressMessage": message,
                "updatedAt": utc_now_iso(),
            })
        except JobStoreError as exc:
            logger.warning(f"{prefix}Progress write failed: {exc}")

    async def _persist(self, payload: WorkerPayload, items: List[Item], prefix: str) -> None:
        """Detail record first, then the terminal write on the primary record."""
        job_id = payload.job_id
        names = [item.name or "Unknown wine" for item in items]
        summary = ResultSummary(
            item_count=len(items),
            item_names=names,
            image_url=payload.image_url,
        )

        try:
            await self.store.create(
                detail_key(job_id, self.detail_suffix),
                {
                    "items": [clip_item(item).to_store() for item in items],
                    "createdAt": utc_now_iso(),
                },
            )
        except Exception as exc:
            logger.error(f"{prefix}Error storing detail record: {exc}")
            summary.truncated = True
            summary.message = TRUNCATION_NOTICE

        now = utc_now_iso()
        completion = {
            "status": JobStatus.COMPLETED.value,
            "updatedAt": now,
            "completedAt": now,
            "progressCurrent": len(items),
            "progressTotal": len(items),
            "progressMessage": "Analysis complete",
        }
        try:
            await self.store.update(job_id, {**completion, "resultSummary": summary.to_store()})
        except EntryTooLargeError:
            logger.error(f"{prefix}Summary too large; storing count only")
            minimal = ResultSummary(
                item_count=len(items),
                image_url=payload.image_url,
                truncated=True,
                message=TRUNCATION_NOTICE,
            )
            await self.store.update(job_id, {**completion, "resultSummary": minimal.to_store()})
        logger.info(f"{prefix}Analysis complete, {len(items)} wine(s) stored")

    async def _mark_failed(self, payload: WorkerPayload, message: str, prefix: str) -> None:
        now = utc_now_iso()
        try:
            await self.store.update(payload.job_id, {
                "status": JobStatus.FAILED.value,
                "error": message,
                "updatedAt": now,
                "completedAt": now,
            })
        except JobStoreError as exc:
            logger.error(f"{prefix}Failed to record failure status: {exc}")
