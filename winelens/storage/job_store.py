"""Key-value job store with per-entry TTL and size ceiling.

The store is the only channel between the trigger, the worker and the
status reader. Writers always merge fields into the existing entry; TTL
expiry is the only way an entry disappears.
"""

import asyncio
import json
import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from redis import asyncio as aioredis
from redis.exceptions import WatchError

from winelens.config import Settings
from winelens.errors import (
    AlreadyExistsError,
    EntryTooLargeError,
    InvalidTransitionError,
    JobStoreError,
    NotFoundError,
)
from winelens.jobs.models import can_transition

logger = logging.getLogger(__name__)


class JobStore(ABC):
    """Abstract key-value store (memory or Redis)."""

    def __init__(self, ttl_seconds: int = 3600, max_entry_bytes: int = 1024 * 1024):
        self.ttl_seconds = ttl_seconds
        self.max_entry_bytes = max_entry_bytes

    @abstractmethod
    async def create(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Write a new entry. Raises AlreadyExistsError if the key is present."""
        ...

    @abstractmethod
    async def update(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Merge fields into an existing entry. Raises NotFoundError if absent."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Dict[str, Any]:
        """Return the entry. Raises NotFoundError if absent or expired."""
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    def _encode(self, key: str, record: Dict[str, Any]) -> str:
        data = json.dumps(record, separators=(",", ":"), ensure_ascii=False)
        size = len(data.encode("utf-8"))
        if size > self.max_entry_bytes:
            raise EntryTooLargeError(key, size, self.max_entry_bytes)
        return data

    @staticmethod
    def _merge(key: str, current: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        if "status" in fields and "status" in current:
            if not can_transition(current["status"], fields["status"]):
                raise InvalidTransitionError(key, current["status"], fields["status"])
        merged = dict(current)
        merged.update(fields)
        return merged


class MemoryJobStore(JobStore):
    """Process-local store. Entries are kept serialized so readers never share state."""

    def __init__(
        self,
        ttl_seconds: int = 3600,
        max_entry_bytes: int = 1024 * 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(ttl_seconds, max_entry_bytes)
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> Optional[Tuple[float, str]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[0] <= self._clock():
            del self._entries[key]
            return None
        return entry

    async def create(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            # Expired keys are otherwise only dropped when read
            self.purge_expired()
            if self._live(key) is not None:
                raise AlreadyExistsError(key)
            data = self._encode(key, fields)
            self._entries[key] = (self._clock() + self.ttl_seconds, data)
            return json.loads(data)

    async def update(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                raise NotFoundError(key)
            expires_at, raw = entry
            merged = self._merge(key, json.loads(raw), fields)
            data = self._encode(key, merged)
            # Updates keep the remaining TTL
            self._entries[key] = (expires_at, data)
            return json.loads(data)

    async def get(self, key: str) -> Dict[str, Any]:
        entry = self._live(key)
        if entry is None:
            raise NotFoundError(key)
        return json.loads(entry[1])

    def purge_expired(self) -> int:
        """Drop expired entries. Returns count removed."""
        now = self._clock()
        expired = [k for k, (exp, _) in self._entries.items() if exp <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)


class RedisJobStore(JobStore):
    """Redis-backed store. Creates use SET NX EX, updates an optimistic WATCH/MULTI merge."""

    MAX_UPDATE_RETRIES = 50
    UPDATE_BACKOFF_SECONDS = 0.005
    MAX_BACKOFF_SECONDS = 0.1

    def __init__(
        self,
        client: "aioredis.Redis",
        ttl_seconds: int = 3600,
        max_entry_bytes: int = 1024 * 1024,
    ):
        super().__init__(ttl_seconds, max_entry_bytes)
        self._client = client

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisJobStore":
        client = aioredis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)

    async def create(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        data = self._encode(key, fields)
        created = await self._client.set(key, data, ex=self.ttl_seconds, nx=True)
        if not created:
            raise AlreadyExistsError(key)
        return json.loads(data)

    async def update(self, key: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        for attempt in range(self.MAX_UPDATE_RETRIES):
            async with self._client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        raise NotFoundError(key)
                    merged = self._merge(key, json.loads(raw), fields)
                    data = self._encode(key, merged)
                    pipe.multi()
                    pipe.set(key, data, keepttl=True)
                    await pipe.execute()
                    return merged
                except WatchError:
                    logger.debug(f"Concurrent write on {key}, retrying merge")
            # Jittered backoff before the next merge attempt
            await asyncio.sleep(random.uniform(
                0, min(self.MAX_BACKOFF_SECONDS, self.UPDATE_BACKOFF_SECONDS * (attempt + 1))
            ))
        raise JobStoreError(f"Could not merge update into '{key}' after retries")

    async def get(self, key: str) -> Dict[str, Any]:
        raw = await self._client.get(key)
        if raw is None:
            raise NotFoundError(key)
        return json.loads(raw)

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()


def build_job_store(settings: Settings) -> JobStore:
    """Construct the store selected by settings.kv_backend."""
    if settings.kv_backend == "redis":
        logger.info(f"Job store: redis at {settings.redis_url}")
        return RedisJobStore.from_url(
            settings.redis_url,
            ttl_seconds=settings.job_ttl_seconds,
            max_entry_bytes=settings.max_entry_bytes,
        )
    if settings.kv_backend == "memory":
        logger.info("Job store: in-process memory")
        return MemoryJobStore(
            ttl_seconds=settings.job_ttl_seconds,
            max_entry_bytes=settings.max_entry_bytes,
        )
    raise ValueError(f"Unknown kv_backend '{settings.kv_backend}'. Valid: memory, redis")
