"""Idempotent like/unlike and download counters."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from catalog.types import CounterSnapshot, LikeResult, as_count
from db.store import StoreNamespace

logger = logging.getLogger(__name__)


class KeyedLocks:
    """One ``asyncio.Lock`` per key, dropped once no caller holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[key]
            if users <= 1:
                self._locks.pop(key, None)
            else:
                self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        return len(self._locks)


class CounterService:
    """Per-record counters stored beside the record.

    ``likes`` is deduplicated per user through the ``likers/{uid}`` set;
    ``downloads`` is not. Mutations for one record are serialized in-process,
    and every counter write is a compare-and-swap so writers in other
    processes cannot lose updates.
    """

    def __init__(self, namespace: StoreNamespace) -> None:
        self._ns = namespace
        self._store = namespace.store
        self._locks = KeyedLocks()

    async def like(self, media_id: str, uid: str) -> LikeResult:
        media_id, uid = str(media_id), str(uid)
        async with self._locks.hold(media_id):
            inserted = await self._store.insert_if_absent(self._ns.liker_key(media_id, uid), True)
            if not inserted:
                return {"liked": True, "message": "already liked"}
            likes = await self._adjust(self._ns.counter_key(media_id, "likes"), 1)
        logger.info("Media %s liked by %s (likes=%s)", media_id, uid, likes)
        return {"liked": True, "likes": likes}

    async def unlike(self, media_id: str, uid: str) -> LikeResult:
        media_id, uid = str(media_id), str(uid)
        liker_key = self._ns.liker_key(media_id, uid)
        async with self._locks.hold(media_id):
            current = await self._store.get(liker_key)
            if not current or not await self._store.compare_and_swap(liker_key, current, None):
                return {"liked": False, "message": "not liked yet"}
            likes = await self._adjust(self._ns.counter_key(media_id, "likes"), -1)
        logger.info("Media %s unliked by %s (likes=%s)", media_id, uid, likes)
        return {"liked": False, "likes": likes}

    async def download(self, media_id: str) -> int:
        media_id = str(media_id)
        async with self._locks.hold(media_id):
            return await self._adjust(self._ns.counter_key(media_id, "downloads"), 1)

    async def counts(self, media_id: str) -> CounterSnapshot:
        media_id = str(media_id)
        return {
            "likes": as_count(await self._store.get(self._ns.counter_key(media_id, "likes"))),
            "downloads": as_count(await self._store.get(self._ns.counter_key(media_id, "downloads"))),
        }

    async def _adjust(self, key: str, delta: int) -> int:
        # Floors at zero; the loop only repeats when another writer won the swap.
        while True:
            current = await self._store.get(key)
            next_value = max(0, as_count(current) + delta)
            if await self._store.compare_and_swap(key, current, next_value):
                return next_value
