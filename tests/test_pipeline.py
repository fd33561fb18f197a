"""Worker pipeline tests: terminal writes, degraded items, overflow fallback."""

import json

import pytest

from helpers import FakeAI
from winelens.analysis.pipeline import TRUNCATION_NOTICE, AnalysisWorker, clip_item
from winelens.jobs.models import Item, JobStatus, Review, WorkerPayload
from winelens.storage.job_store import MemoryJobStore

JOB_ID = "job-123"
IMAGE_URL = "https://blobs.test/job-123.png"


async def seed_job(store, status="processing"):
    await store.create(JOB_ID, {
        "jobId": JOB_ID,
        "status": "uploading",
        "imageUrl": IMAGE_URL,
        "requestId": "req-1",
    })
    if status != "uploading":
        await store.update(JOB_ID, {"status": status})


def payload():
    return WorkerPayload(job_id=JOB_ID, image_url=IMAGE_URL, request_id="req-1")


def wines(*names):
    return json.dumps([{"name": n, "vintage": "2018"} for n in names])


@pytest.mark.asyncio
async def test_zero_items_completes_with_empty_details(store):
    await seed_job(store)
    worker = AnalysisWorker(store, FakeAI(extraction="[]"))

    assert await worker.run(payload()) == JobStatus.COMPLETED

    record = await store.get(JOB_ID)
    assert record["status"] == "completed"
    assert record["resultSummary"]["itemCount"] == 0
    assert record["completedAt"]
    assert (await store.get(f"{JOB_ID}_details"))["items"] == []


@pytest.mark.asyncio
async def test_all_items_enriched_in_extraction_order(store):
    await seed_job(store)
    worker = AnalysisWorker(store, FakeAI(extraction=wines("Zinfandel", "Albariño", "Merlot")))

    await worker.run(payload())

    record = await store.get(JOB_ID)
    assert record["status"] == "completed"
    assert record["resultSummary"]["itemNames"] == ["Zinfandel", "Albariño", "Merlot"]
    assert record["progressCurrent"] == 3
    items = (await store.get(f"{JOB_ID}_details"))["items"]
    assert [i["name"] for i in items] == ["Zinfandel", "Albariño", "Merlot"]
    assert all("error" not in i for i in items)
    assert items[0]["score"] == 92
    assert items[0]["imageUrl"] == IMAGE_URL


@pytest.mark.asyncio
async def test_one_failed_enrichment_still_completes(store):
    await seed_job(store)
    ai = FakeAI(extraction=wines("Alpha", "Bravo", "Charlie", "Delta"), fail_for=["Charlie"])
    worker = AnalysisWorker(store, ai)

    assert await worker.run(payload()) == JobStatus.COMPLETED

    items = (await store.get(f"{JOB_ID}_details"))["items"]
    assert len(items) == 4
    errored = [i for i in items if "error" in i]
    assert len(errored) == 1
    assert errored[0]["name"] == "Charlie"
    assert errored[0]["vintage"] == "2018"
    assert errored[0]["score"] == 0


@pytest.mark.asyncio
async def test_missing_ai_client_fails_job(store):
    await seed_job(store)
    worker = AnalysisWorker(store, None)

    assert await worker.run(payload()) == JobStatus.FAILED

    record = await store.get(JOB_ID)
    assert record["status"] == "failed"
    assert "not configured" in record["error"]


@pytest.mark.asyncio
async def test_vision_error_fails_job(store):
    await seed_job(store)
    worker = AnalysisWorker(store, FakeAI(extraction_error=RuntimeError("vision endpoint down")))

    assert await worker.run(payload()) == JobStatus.FAILED
    record = await store.get(JOB_ID)
    assert record["status"] == "failed"
    assert record["error"] == "vision endpoint down"


@pytest.mark.asyncio
async def test_worker_claims_job_still_uploading(store):
    await seed_job(store, status="uploading")
    worker = AnalysisWorker(store, FakeAI(extraction=wines("A")))

    assert await worker.run(payload()) == JobStatus.COMPLETED
    assert (await store.get(JOB_ID))["status"] == "completed"


@pytest.mark.asyncio
async def test_terminal_job_is_not_reprocessed(store):
    await seed_job(store, status="uploading")
    await store.update(JOB_ID, {"status": "trigger_failed", "error": "worker unreachable"})
    worker = AnalysisWorker(store, FakeAI(extraction=wines("A")))

    assert await worker.run(payload()) == JobStatus.FAILED
    record = await store.get(JOB_ID)
    assert record["status"] == "trigger_failed"
    assert record["error"] == "worker unreachable"


@pytest.mark.asyncio
async def test_unknown_job_does_not_raise(store):
    worker = AnalysisWorker(store, FakeAI(extraction=wines("A")))
    assert await worker.run(payload()) == JobStatus.FAILED


@pytest.mark.asyncio
async def test_detail_overflow_falls_back_to_minimal_summary(clock):
    store = MemoryJobStore(ttl_seconds=3600, max_entry_bytes=1500, clock=clock)
    await seed_job(store)
    names = [f"Wine number {n}" for n in range(6)]
    worker = AnalysisWorker(store, FakeAI(extraction=wines(*names)))

    assert await worker.run(payload()) == JobStatus.COMPLETED

    record = await store.get(JOB_ID)
    assert record["status"] == "completed"
    summary = record["resultSummary"]
    assert summary["truncated"] is True
    assert summary["message"] == TRUNCATION_NOTICE
    assert summary["itemCount"] == 6
    assert summary["itemNames"] == names


@pytest.mark.asyncio
async def test_summary_overflow_stores_count_only(clock):
    store = MemoryJobStore(ttl_seconds=3600, max_entry_bytes=700, clock=clock)
    await seed_job(store)
    names = ["N" * 60 + str(n) for n in range(10)]
    worker = AnalysisWorker(store, FakeAI(extraction=wines(*names)))

    assert await worker.run(payload()) == JobStatus.COMPLETED

    summary = (await store.get(JOB_ID))["resultSummary"]
    assert summary["itemCount"] == 10
    assert summary["itemNames"] == []
    assert summary["truncated"] is True


def test_clip_item_limits_text():
    item = Item(
        name="X",
        summary="s" * 900,
        value_assessment="v" * 400,
        reviews=[Review(source="Vivino", review="r" * 800)],
    )
    clipped = clip_item(item)
    assert len(clipped.summary) == 500
    assert len(clipped.value_assessment) == 200
    assert len(clipped.reviews[0].review) == 500
    assert len(item.summary) == 900
