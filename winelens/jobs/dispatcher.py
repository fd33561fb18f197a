"""Worker dispatcher interface."""

from abc import ABC, abstractmethod

from winelens.jobs.models import WorkerPayload


class JobDispatcher(ABC):
    """Hands a job to the worker without waiting for the pipeline (local or HTTP)."""

    @abstractmethod
    async def dispatch(self, payload: WorkerPayload) -> None:
        """Deliver the payload to the worker. Raises DispatchError if it cannot be delivered."""
        ...

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...
