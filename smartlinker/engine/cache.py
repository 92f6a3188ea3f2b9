"""In-memory caches shared across requests.

Three process-wide structures live here: the TTL caches used for
responses and embeddings, and the coalescer that collapses identical
concurrent requests into one computation. They are constructed once by
the engine and passed by reference, so tests can inject a fake clock.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Tuple, TypeVar

from cachetools import TTLCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CachePolicy:
    """TTL and capacity bounds for a cache."""

    ttl_seconds: float
    max_entries: int
    evict_batch: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CachePolicy":
        return cls(
            ttl_seconds=float(data.get("ttl_seconds", 86400)),
            max_entries=int(data.get("max_entries", 1000)),
            evict_batch=int(data.get("evict_batch", 100)),
        )


class PolicyCache(TTLCache):
    """``cachetools.TTLCache`` that frees ``evict_batch`` entries at a time when full.

    Expired entries are dropped on access. Capacity eviction removes the
    least recently used entries first.
    """

    def __init__(self, policy: CachePolicy, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__(maxsize=policy.max_entries, ttl=policy.ttl_seconds, timer=clock)
        self.policy = policy

    def popitem(self) -> Tuple[Any, Any]:
        key, value = super().popitem()
        extra = min(self.policy.evict_batch - 1, len(self))
        for _ in range(extra):
            super().popitem()
        logger.debug("Evicted %d cache entries", extra + 1)
        return key, value


class RequestCoalescer:
    """Share one in-flight computation between identical concurrent requests.

    The computation runs in its own task. Every caller awaits it through
    ``asyncio.shield``, so a caller that goes away does not cancel the
    work the others are waiting for.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, asyncio.Future[Any]] = {}

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda done: self._settled(key, done))
        else:
            logger.debug("Joining in-flight computation for %s", key)
        return await asyncio.shield(task)

    def _settled(self, key: str, task: asyncio.Future[Any]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug("In-flight computation for %s failed: %s", key, task.exception())


def content_fingerprint(content: str, prefix: int = 1000) -> str:
    return hashlib.sha256(content[:prefix].encode("utf-8")).hexdigest()[:16]


def response_cache_key(source_id: str, content: str, max_links: int, prefix: int = 1000) -> str:
    """Return the response cache key for a document and link budget."""

    return f"smart-link:{source_id}:{content_fingerprint(content, prefix)}:{max_links}"
