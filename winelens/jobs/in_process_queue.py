"""In-process worker dispatch using asyncio for local development.

Dispatched jobs go onto an asyncio queue drained by a small pool of worker
loops running in the same event loop. No external dependencies needed.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from winelens.errors import DispatchError
from winelens.jobs.dispatcher import JobDispatcher
from winelens.jobs.models import WorkerPayload

logger = logging.getLogger(__name__)


class InProcessQueue(JobDispatcher):
    """Local async job queue with a fixed number of worker loops."""

    def __init__(
        self,
        worker_fn: Callable[[WorkerPayload], Awaitable[object]],
        concurrency: int = 2,
        max_queued: int = 100,
        drain_timeout: float = 30.0,
    ):
        """
        worker_fn: async callable(payload) run once per dispatched job.
        Expected to handle its own failures (AnalysisWorker.run does).
        """
        self._queue: asyncio.Queue[WorkerPayload] = asyncio.Queue(maxsize=max_queued)
        self._worker_fn = worker_fn
        self._concurrency = max(1, concurrency)
        self._drain_timeout = drain_timeout
        self._tasks: List[asyncio.Task] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def queue_depth(self) -> int:
        return self._queue.qsize()

    async def dispatch(self, payload: WorkerPayload) -> None:
        if not self._running:
            raise DispatchError("In-process worker queue is not running")
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            raise DispatchError(
                f"Worker queue is full ({self._queue.maxsize} jobs waiting)"
            )

    async def start(self) -> None:
        self._running = True
        self._tasks = [
            asyncio.create_task(self._worker_loop(i)) for i in range(self._concurrency)
        ]
        logger.info(f"In-process dispatcher started with {self._concurrency} worker(s)")

    async def stop(self) -> None:
        """Stop accepting jobs, let queued and running ones finish, then stop the loops."""
        self._running = False
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Dispatcher stopped with {self.queue_depth()} job(s) still queued"
            )
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    async def _worker_loop(self, worker_id: int) -> None:
        """Process jobs from the queue until cancelled."""
        while True:
            payload: Optional[WorkerPayload] = None
            try:
                payload = await self._queue.get()
                await self._worker_fn(payload)
            except asyncio.CancelledError:
                raise
            except Exception:
                job_id = payload.job_id if payload else "?"
                logger.exception(f"Worker {worker_id} crashed on job {job_id}")
            finally:
                if payload is not None:
                    self._queue.task_done()
