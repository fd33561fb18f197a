"""Job, item and payload data models for async analysis."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TRIGGER_FAILED = "trigger_failed"


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TRIGGER_FAILED}
)

VALID_TRANSITIONS: Dict[JobStatus, frozenset] = {
    JobStatus.UPLOADING: frozenset({JobStatus.PROCESSING, JobStatus.TRIGGER_FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.TRIGGER_FAILED: frozenset(),
}


def can_transition(current: str, requested: str) -> bool:
    """Check a status change against the job state machine.

    Re-writing the current status is accepted (merge writes are idempotent).
    Unknown statuses never transition.
    """
    try:
        src = JobStatus(current)
        dst = JobStatus(requested)
    except ValueError:
        return False
    if src == dst:
        return True
    return dst in VALID_TRANSITIONS[src]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def detail_key(job_id: str, suffix: str = "_details") -> str:
    """Key of the secondary record holding the full item array."""
    return f"{job_id}{suffix}"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_store(self) -> dict:
        """Dump to the camelCase shape persisted in the job store."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Review(_CamelModel):
    source: str = "Review Snippet"
    review: str
    rating: Optional[int] = None


class Item(_CamelModel):
    """One wine identified in the image, with its enrichment."""
    name: Optional[str] = None
    vintage: Optional[str] = None
    producer: Optional[str] = None
    region: Optional[str] = None
    varietal: Optional[str] = None

    score: Optional[int] = None
    summary: Optional[str] = None
    pairings: List[str] = Field(default_factory=list)
    estimated_price: Optional[str] = None
    value_ratio: Optional[float] = None
    value_assessment: Optional[str] = None
    flavor_profile: Dict[str, float] = Field(default_factory=dict)
    reviews: List[Review] = Field(default_factory=list)
    image_url: Optional[str] = None

    error: Optional[str] = None

    def identification(self) -> "Item":
        """Copy holding only the identification fields."""
        return Item(
            name=self.name,
            vintage=self.vintage,
            producer=self.producer,
            region=self.region,
            varietal=self.varietal,
        )

    def describe(self) -> str:
        parts = [self.vintage, self.producer, self.name, self.region, self.varietal]
        return " ".join(p for p in parts if p).strip()


class ResultSummary(_CamelModel):
    """Abbreviated result kept in the primary record."""
    item_count: int
    item_names: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    truncated: bool = False
    message: Optional[str] = None


class JobRecord(_CamelModel):
    """Primary record tracking the lifecycle of one analysis job."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    job_id: str
    status: JobStatus
    request_id: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None
    error: Optional[str] = None
    result_summary: Optional[ResultSummary] = None
    progress_current: int = 0
    progress_total: int = 0
    progress_message: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class WorkerPayload(_CamelModel):
    """Message handed from the trigger to the worker."""
    job_id: str
    image_url: str
    request_id: str = "unknown"
