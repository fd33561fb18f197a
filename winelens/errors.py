"""Exception hierarchy shared by the trigger, worker and status services."""


class WineLensError(Exception):
    """Base class for all domain errors."""


class InvalidImageError(WineLensError):
    """Submission is missing or not a decodable image. No job is created."""


class BlobStoreError(WineLensError):
    """The image could not be persisted."""


class DispatchError(WineLensError):
    """The worker could not be reached at submission time."""


class PipelineError(WineLensError):
    """Uncaught failure inside the analysis pipeline."""


class AIClientNotConfiguredError(PipelineError):
    """No AI client was configured for this process."""


class JobStoreError(WineLensError):
    """Base class for key-value store failures."""


class NotFoundError(JobStoreError):
    def __init__(self, key: str):
        super().__init__(f"Key '{key}' not found")
        self.key = key


class AlreadyExistsError(JobStoreError):
    def __init__(self, key: str):
        super().__init__(f"Key '{key}' already exists")
        self.key = key


class EntryTooLargeError(JobStoreError):
    """Serialized entry exceeds the store's per-entry size ceiling."""

    def __init__(self, key: str, size: int, limit: int):
        super().__init__(
            f"Entry '{key}' is {size} bytes, exceeds limit of {limit} bytes"
        )
        self.key = key
        self.size = size
        self.limit = limit


class InvalidTransitionError(JobStoreError):
    def __init__(self, key: str, current: str, requested: str):
        super().__init__(f"Invalid transition for '{key}': {current} -> {requested}")
        self.key = key
        self.current = current
        self.requested = requested
