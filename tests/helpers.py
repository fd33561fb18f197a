"""Fake collaborators used across the test suite."""

import io
import json
from typing import Dict, List, Optional

from PIL import Image

from winelens.errors import DispatchError
from winelens.jobs.dispatcher import JobDispatcher
from winelens.jobs.models import WorkerPayload
from winelens.storage.blob_store import BlobStore


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def profile_json(score: int = 92) -> str:
    return json.dumps({
        "summary": "Ripe dark fruit with firm tannins.",
        "score": score,
        "pairings": ["Ribeye", "Aged cheddar"],
        "estimatedPrice": "$40 - $55",
        "valueRatio": 7,
        "valueAssessment": "Good value for the region.",
        "flavorProfile": {
            "fruitiness": 7, "acidity": 6, "tannin": 8,
            "body": 8, "sweetness": 2, "oak": 6,
        },
    })


REVIEWS_TEXT = (
    "Wine Enthusiast: Rich and complex with notes of blackberry. 92 points.\n"
    "Vivino: Dark fruits and a hint of oak.\n"
)


class FakeAI:
    """Scripted stand-in for AIClient.complete.

    The image call returns ``extraction``; JSON calls return a profile;
    plain calls return review snippets. Wines named in ``fail_for`` raise,
    wines named in ``malformed_for`` get unparseable profiles.
    """

    def __init__(
        self,
        extraction: str = "[]",
        fail_for: Optional[List[str]] = None,
        malformed_for: Optional[List[str]] = None,
        extraction_error: Optional[Exception] = None,
    ):
        self.extraction = extraction
        self.fail_for = set(fail_for or [])
        self.malformed_for = set(malformed_for or [])
        self.extraction_error = extraction_error
        self.calls: List[Dict] = []

    async def complete(self, prompt, *, image_url=None, system=None, json_mode=False,
                       max_tokens=800, temperature=0.7):
        self.calls.append({"prompt": prompt, "image_url": image_url, "json_mode": json_mode})
        if image_url:
            if self.extraction_error:
                raise self.extraction_error
            return self.extraction
        for name in self.fail_for:
            if name in prompt:
                raise RuntimeError(f"upstream error for {name}")
        if json_mode:
            for name in self.malformed_for:
                if name in prompt:
                    return "not json at all"
            return profile_json()
        return REVIEWS_TEXT


class FakeBlobStore(BlobStore):
    def __init__(self):
        self.saved: Dict[str, bytes] = {}

    async def put(self, name, data, content_type="image/jpeg"):
        self.saved[name] = data
        return f"https://blobs.test/{name}"


class RecordingDispatcher(JobDispatcher):
    """Records payloads; optionally fails every dispatch."""

    def __init__(self, error: Optional[str] = None):
        self.error = error
        self.payloads: List[WorkerPayload] = []

    async def dispatch(self, payload):
        if self.error:
            raise DispatchError(self.error)
        self.payloads.append(payload)

    async def start(self):
        pass

    async def stop(self):
        pass


def make_png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), (120, 20, 40)).save(buf, format="PNG")
    return buf.getvalue()


