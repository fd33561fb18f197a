"""HTTP worker dispatch: POST the payload to a worker endpoint.

The worker endpoint acknowledges with 202 before running the pipeline, so
waiting for the acknowledgement does not wait for the analysis.
"""

import logging
from typing import Optional

import httpx

from winelens.errors import DispatchError
from winelens.jobs.dispatcher import JobDispatcher
from winelens.jobs.models import WorkerPayload

logger = logging.getLogger(__name__)


class HttpDispatcher(JobDispatcher):
    def __init__(
        self,
        worker_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._worker_url = worker_url
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        logger.info(f"HTTP dispatcher targeting {self._worker_url}")

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def dispatch(self, payload: WorkerPayload) -> None:
        if self._client is None:
            raise DispatchError("HTTP dispatcher not started")
        prefix = f"[{payload.request_id}] [{payload.job_id}]"
        try:
            response = await self._client.post(self._worker_url, json=payload.to_store())
            response.raise_for_status()
        except httpx.ReadTimeout:
            # Request went out; the worker is just slow to acknowledge
            logger.warning(f"{prefix} Worker acknowledgement timed out, assuming delivered")
            return
        except httpx.HTTPStatusError as exc:
            raise DispatchError(
                f"Worker rejected job with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise DispatchError(f"Worker unreachable: {type(exc).__name__}: {exc}") from exc
        logger.info(f"{prefix} Worker acknowledged with HTTP {response.status_code}")
