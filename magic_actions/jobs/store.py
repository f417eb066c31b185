"""Key/value store with TTL for job and batch records.

Provides an abstract interface with an in-memory implementation for
single-process deployments and tests. ``RedisJobStore`` shares state
across worker processes.

Records are JSON-safe dicts. Each key expires ``ttl_seconds`` after its
last write, regardless of what it holds.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class JobStore(ABC):
    """
    Abstract key/value store used by the job tracker.

    Current: InMemoryJobStore (single process, default)
    Shared: RedisJobStore (multi-worker)
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[dict[str, Any]]:
        """Return the record under ``key``, or None if absent or expired."""
        ...

    @abstractmethod
    async def put(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Write ``value`` under ``key`` (last writer wins) and reset its TTL."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        ...

    @abstractmethod
    async def append_unique(self, key: str, member: str, ttl_seconds: int) -> bool:
        """
        Append ``member`` to the ordered set under ``key`` if absent.

        Safe under concurrent callers: two appends of the same member
        store it once; appends of different members both land.

        Returns:
            True if the member was added, False if it was already present.
        """
        ...

    @abstractmethod
    async def members(self, key: str) -> list[str]:
        """Return the ordered set under ``key`` (empty if absent)."""
        ...

    @abstractmethod
    async def remove_member(self, key: str, member: str) -> None:
        """Remove ``member`` from the ordered set under ``key``."""
        ...

    async def exists(self, key: str) -> bool:
        """Check whether a record is present under ``key``."""
        return await self.get(key) is not None

    async def close(self) -> None:
        """Release connections. No-op by default."""


class InMemoryJobStore(JobStore):
    """
    In-memory store for single-process deployments and tests.

    Stale keys are dropped when read, and writes sweep every expired key
    at most once per ``sweep_interval`` seconds. ``clock`` is injectable
    so tests can move time forward.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = 60.0,
    ):
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval
        self._records: dict[str, tuple[float, dict[str, Any]]] = {}
        self._sets: dict[str, tuple[float, list[str]]] = {}
        self._lock = asyncio.Lock()

    def _alive(self, expires_at: float) -> bool:
        return self._clock() < expires_at

    def purge_expired(self) -> int:
        """Drop every expired record and member list. Returns how many keys went."""
        now = self._clock()
        stale_records = [k for k, (expires_at, _) in self._records.items() if expires_at <= now]
        stale_sets = [k for k, (expires_at, _) in self._sets.items() if expires_at <= now]
        for key in stale_records:
            del self._records[key]
        for key in stale_sets:
            del self._sets[key]
        self._next_sweep = now + self._sweep_interval

        purged = len(stale_records) + len(stale_sets)
        if purged:
            logger.debug("job_store_purged", records=len(stale_records), sets=len(stale_sets))
        return purged

    def _maybe_sweep(self) -> None:
        if self._clock() >= self._next_sweep:
            self.purge_expired()

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        entry = self._records.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if not self._alive(expires_at):
            self._records.pop(key, None)
            return None
        # Copy so callers never mutate stored state in place
        return _copy(value)

    async def put(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        self._maybe_sweep()
        self._records[key] = (self._clock() + ttl_seconds, _copy(value))

    async def delete(self, key: str) -> None:
        self._records.pop(key, None)
        self._sets.pop(key, None)

    async def append_unique(self, key: str, member: str, ttl_seconds: int) -> bool:
        async with self._lock:
            self._maybe_sweep()
            entry = self._sets.get(key)
            items = list(entry[1]) if entry and self._alive(entry[0]) else []
            added = member not in items
            if added:
                items.append(member)
            self._sets[key] = (self._clock() + ttl_seconds, items)
            return added

    async def members(self, key: str) -> list[str]:
        entry = self._sets.get(key)
        if entry is None:
            return []
        expires_at, items = entry
        if not self._alive(expires_at):
            self._sets.pop(key, None)
            return []
        return list(items)

    async def remove_member(self, key: str, member: str) -> None:
        async with self._lock:
            entry = self._sets.get(key)
            if entry is None:
                return
            expires_at, items = entry
            self._sets[key] = (expires_at, [item for item in items if item != member])

    def record_count(self) -> int:
        """Return number of live records (for health output)."""
        return sum(1 for expires_at, _ in self._records.values() if self._alive(expires_at))


def _copy(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _copy(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy(v) for v in value]
    return value


# ===========================================
# Singleton instance
# ===========================================

_job_store: JobStore | None = None


def get_job_store() -> JobStore:
    """
    Get the singleton job store instance.

    Uses config to determine implementation:
    - memory: InMemoryJobStore (single process, default)
    - redis: RedisJobStore (multi-worker, requires REDIS_URL)
    """
    global _job_store
    if _job_store is None:
        from magic_actions.config import get_settings

        settings = get_settings()

        if settings.job_store_backend == "redis":
            if not settings.redis_url:
                raise ValueError(
                    "JOB_STORE_BACKEND=redis requires REDIS_URL to be set. "
                    "Example: redis://localhost:6379/0"
                )
            from magic_actions.jobs.redis_store import RedisJobStore

            _job_store = RedisJobStore(redis_url=settings.redis_url)
            logger.info("job_store_initialized", backend="redis")
        else:
            _job_store = InMemoryJobStore()
            logger.info("job_store_initialized", backend="memory")

    return _job_store


def set_job_store(store: JobStore | None) -> None:
    """Set the job store instance (for testing or runtime replacement)."""
    global _job_store
    _job_store = store


def reset_job_store() -> None:
    """Reset the job store singleton (for testing)."""
    global _job_store
    _job_store = None
