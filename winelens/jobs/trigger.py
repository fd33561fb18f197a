"""Trigger service: accept a submission, record it, hand it to the worker, return."""

import base64
import binascii
import io
import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from PIL import Image

from winelens.errors import DispatchError, InvalidImageError, InvalidTransitionError
from winelens.jobs.dispatcher import JobDispatcher
from winelens.jobs.models import JobRecord, JobStatus, WorkerPayload, utc_now_iso
from winelens.storage.blob_store import BlobStore, extension_for
from winelens.storage.job_store import JobStore

logger = logging.getLogger(__name__)


def decode_image_payload(
    image: Union[str, bytes, None],
    max_bytes: int = 10 * 1024 * 1024,
) -> Tuple[bytes, str]:
    """Decode a base64 string, data URL or raw bytes into (bytes, content type).

    Raises InvalidImageError unless the result is a decodable image within max_bytes.
    """
    if not image:
        raise InvalidImageError("No image provided")

    if isinstance(image, str):
        data = image.strip()
        if data.startswith("data:"):
            header, sep, data = data.partition(",")
            if not sep or ";base64" not in header:
                raise InvalidImageError("Image data URL must be base64 encoded")
            if not header[5:].startswith("image/"):
                raise InvalidImageError("Data URL is not an image")
        try:
            raw = base64.b64decode("".join(data.split()), validate=True)
        except (binascii.Error, ValueError):
            raise InvalidImageError("Image is not valid base64")
    else:
        raw = bytes(image)

    if not raw:
        raise InvalidImageError("Image is empty")
    if len(raw) > max_bytes:
        raise InvalidImageError(
            f"Image too large ({len(raw)} bytes, max {max_bytes})"
        )

    try:
        with Image.open(io.BytesIO(raw)) as img:
            fmt = img.format
            img.verify()
    except Exception as exc:
        raise InvalidImageError(f"Image could not be decoded: {exc}")

    content_type = Image.MIME.get(fmt or "", "image/jpeg")
    return raw, content_type


@dataclass
class SubmitResult:
    job_id: str
    request_id: str
    status: str
    message: str

    @property
    def accepted(self) -> bool:
        return self.status == JobStatus.PROCESSING.value


class TriggerService:
    def __init__(
        self,
        store: JobStore,
        blob_store: BlobStore,
        dispatcher: JobDispatcher,
        max_image_bytes: int = 10 * 1024 * 1024,
    ):
        self.store = store
        self.blob_store = blob_store
        self.dispatcher = dispatcher
        self.max_image_bytes = max_image_bytes

    async def submit(
        self,
        image: Union[str, bytes, None],
        request_id: Optional[str] = None,
    ) -> SubmitResult:
        """Create a job and dispatch it. Returns without waiting for the analysis.

        Raises InvalidImageError before any job exists, BlobStoreError if the
        image cannot be stored. A dispatch failure is reported in the result.
        """
        request_id = request_id or str(uuid.uuid4())
        raw, content_type = decode_image_payload(image, self.max_image_bytes)

        job_id = str(uuid.uuid4())
        prefix = f"[{request_id}] [{job_id}]"
        logger.info(f"{prefix} Uploading image ({len(raw)} bytes, {content_type})")
        image_url = await self.blob_store.put(
            f"{job_id}{extension_for(content_type)}", raw, content_type
        )

        now = utc_now_iso()
        record = JobRecord(
            job_id=job_id,
            status=JobStatus.UPLOADING,
            request_id=request_id,
            image_url=image_url,
            created_at=now,
            updated_at=now,
        )
        await self.store.create(job_id, record.to_store())
        logger.info(f"{prefix} Job created, dispatching worker")

        payload = WorkerPayload(job_id=job_id, image_url=image_url, request_id=request_id)
        try:
            await self.dispatcher.dispatch(payload)
        except DispatchError as exc:
            logger.error(f"{prefix} Worker dispatch failed: {exc}")
            return await self._mark_trigger_failed(job_id, request_id, str(exc), prefix)
        except Exception as exc:
            logger.exception(f"{prefix} Unexpected dispatcher error")
            message = str(exc) or type(exc).__name__
            return await self._mark_trigger_failed(job_id, request_id, message, prefix)

        try:
            await self.store.update(job_id, {
                "status": JobStatus.PROCESSING.value,
                "updatedAt": utc_now_iso(),
            })
        except InvalidTransitionError as exc:
            # Worker already moved the job to a terminal state
            logger.debug(f"{prefix} Skipping processing write: {exc}")

        return SubmitResult(
            job_id=job_id,
            request_id=request_id,
            status=JobStatus.PROCESSING.value,
            message="Analysis job started",
        )

    async def _mark_trigger_failed(
        self, job_id: str, request_id: str, error: str, prefix: str
    ) -> SubmitResult:
        now = utc_now_iso()
        try:
            await self.store.update(job_id, {
                "status": JobStatus.TRIGGER_FAILED.value,
                "error": error,
                "updatedAt": now,
                "completedAt": now,
            })
        except InvalidTransitionError:
            # The worker picked the job up despite the reported error; it owns it now
            logger.warning(f"{prefix} Dispatch reported failure but worker already claimed the job")
            return SubmitResult(
                job_id=job_id,
                request_id=request_id,
                status=JobStatus.PROCESSING.value,
                message="Analysis job started",
            )
        return SubmitResult(
            job_id=job_id,
            request_id=request_id,
            status="error",
            message=f"Failed to start analysis: {error}",
        )
