"""Shared fixtures for the service tests."""

import base64

import pytest

from helpers import FakeBlobStore, FakeClock, RecordingDispatcher, make_png
from winelens.jobs.status import StatusService
from winelens.jobs.trigger import TriggerService
from winelens.storage.job_store import MemoryJobStore


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def png_data_url(png_bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> MemoryJobStore:
    return MemoryJobStore(ttl_seconds=3600, max_entry_bytes=64 * 1024, clock=clock)


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def trigger(store, blob_store, dispatcher) -> TriggerService:
    return TriggerService(store, blob_store, dispatcher)


@pytest.fixture
def status_service(store) -> StatusService:
    return StatusService(store)


