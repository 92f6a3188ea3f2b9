"""Cross-request anchor usage and fire-and-forget side tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Dict, Set

from .clients import VectorIndex

logger = logging.getLogger(__name__)


class AnchorUsageTracker:
    """Case-insensitive, bounded count of anchors already placed."""

    def __init__(self, max_entries: int = 5000, evict_batch: int = 500) -> None:
        self.max_entries = max_entries
        self.evict_batch = evict_batch
        self._counts: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, anchor_text: str) -> bool:
        return _key(anchor_text) in self._counts

    def count(self, anchor_text: str) -> int:
        return self._counts.get(_key(anchor_text), 0)

    def used(self) -> Set[str]:
        return set(self._counts)

    def record(self, anchor_text: str) -> None:
        key = _key(anchor_text)
        # Re-insert so the most recent use sits at the end of the dict.
        count = self._counts.pop(key, 0) + 1
        self._counts[key] = count
        if len(self._counts) > self.max_entries:
            for stale in list(self._counts)[: self.evict_batch]:
                del self._counts[stale]


class BackgroundTasks:
    """Run best-effort coroutines after the response has been computed."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str = "background") -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    async def drain(self) -> None:
        """Wait for every outstanding task (tests and shutdown)."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background task %s failed: %s", task.get_name(), exc)


async def increment_inbound_links(index: VectorIndex, target_id: str, count: int = 1) -> None:
    metadata = await index.fetch(target_id)
    if metadata is None:
        logger.info("Cannot track inbound link for unknown entry %s", target_id)
        return
    current = int(metadata.get("inboundLinkCount") or 0)
    await index.update_metadata(target_id, {"inboundLinkCount": current + count})


def _key(anchor_text: str) -> str:
    return " ".join(anchor_text.lower().split())
