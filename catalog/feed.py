"""Fan-in aggregation of index entries into a feed of records."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from catalog.errors import FeedCancelled
from catalog.inverted_index import InvertedIndex, normalize_term
from catalog.writer import CatalogWriter

logger = logging.getLogger(__name__)

DEFAULT_WAIT_SECONDS = 0.25


def _consume_result(task: asyncio.Task) -> None:
    # Retrieve the outcome so a pass whose callers all left does not log "never retrieved".
    if not task.cancelled() and task.exception() is not None:
        logger.warning("Shared feed collection failed: %s", task.exception())


class FanInAggregator:
    """Collect ids for a term within a wait window, then resolve them to records.

    The window gives recent local writes and in-flight replicated entries a
    chance to arrive; it is not a correctness bound, and an entry that lands
    after the window closes is missing from that call's result. The wait is
    abortable through a ``cancel`` event or by cancelling the calling task.

    With ``coalesce`` enabled, concurrent calls for the same term share one
    collection pass. Each caller still applies its own ``limit`` and its own
    ``cancel`` event; a caller leaving early does not abort the shared pass.
    """

    def __init__(
        self,
        index: InvertedIndex,
        writer: CatalogWriter,
        *,
        wait_seconds: float = DEFAULT_WAIT_SECONDS,
        coalesce: bool = False,
    ) -> None:
        self._index = index
        self._writer = writer
        self.wait_seconds = max(0.0, float(wait_seconds))
        self.coalesce = coalesce
        self._inflight: dict[str, asyncio.Task] = {}

    async def list_by_term(
        self,
        term: str,
        limit: int = 50,
        *,
        wait: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[dict[str, Any]]:
        term = normalize_term(term)
        limit = max(0, int(limit))
        window = self.wait_seconds if wait is None else max(0.0, float(wait))
        if not self.coalesce:
            records = await self._collect(term, window, cancel)
            return records[:limit]

        task = self._inflight.get(term)
        if task is None:
            task = asyncio.ensure_future(self._shared_collect(term, window))
            self._inflight[term] = task
            task.add_done_callback(_consume_result)
        else:
            logger.debug("Joining in-flight feed collection for term=%r", term)
        records = await self._join(task, cancel)
        return records[:limit]

    async def _join(self, task: asyncio.Task, cancel: asyncio.Event | None) -> list[dict[str, Any]]:
        if cancel is None:
            return await asyncio.shield(task)
        cancel_wait = asyncio.ensure_future(cancel.wait())
        try:
            done, _pending = await asyncio.wait({task, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_wait.cancel()
        if task in done:
            return task.result()
        raise FeedCancelled("feed collection cancelled")

    async def _shared_collect(self, term: str, window: float) -> list[dict[str, Any]]:
        try:
            return await self._collect(term, window, None)
        finally:
            # Drop the entry before the task completes so late callers start a new pass.
            if self._inflight.get(term) is asyncio.current_task():
                del self._inflight[term]

    async def _collect(self, term: str, window: float, cancel: asyncio.Event | None) -> list[dict[str, Any]]:
        seen: dict[str, None] = {}
        unsubscribe = self._index.on_entry(term, lambda media_id: seen.setdefault(media_id, None))
        try:
            for media_id in await self._index.ids(term):
                seen.setdefault(media_id, None)
            await self._wait_window(window, cancel)
        finally:
            unsubscribe()

        ids = list(seen)
        if not ids:
            return []
        resolved = await asyncio.gather(*(self._writer.get(media_id) for media_id in ids))
        records = [record for record in resolved if record is not None]
        if len(records) < len(ids):
            logger.debug("Dropped %s orphaned index entries for term=%r", len(ids) - len(records), term)
        return records

    @staticmethod
    async def _wait_window(window: float, cancel: asyncio.Event | None) -> None:
        if cancel is None:
            await asyncio.sleep(window)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=window)
        except asyncio.TimeoutError:
            return
        raise FeedCancelled("feed collection cancelled")
