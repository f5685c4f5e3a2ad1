from __future__ import annotations

import asyncio
import time

import pytest

from catalog.errors import FeedCancelled
from catalog.feed import FanInAggregator
from catalog.inverted_index import InvertedIndex
from catalog.normalize import normalize_hit
from catalog.writer import CatalogWriter
from db.memory_store import MemoryStore
from db.store import StoreNamespace


class _CountingIndex(InvertedIndex):
    def __init__(self, namespace):
        super().__init__(namespace)
        self.enumerations = 0

    async def ids(self, term):
        self.enumerations += 1
        return await super().ids(term)


def _setup(*, wait_seconds: float = 0.01, coalesce: bool = False):
    ns = StoreNamespace(MemoryStore(), "test")
    index = _CountingIndex(ns)
    writer = CatalogWriter(ns)
    feed = FanInAggregator(index, writer, wait_seconds=wait_seconds, coalesce=coalesce)
    return index, writer, feed


async def _ingest(index, writer, media_id, term="forest"):
    record = normalize_hit({"id": media_id, "tags": term}, "image", now=1)
    await writer.put(record)
    await index.index(term, record.id)
    return record


def test_indexed_record_is_returned_after_window() -> None:
    index, writer, feed = _setup()

    async def _run():
        record = await _ingest(index, writer, "rec-1")
        return record, await feed.list_by_term("forest", 50)

    record, items = asyncio.run(_run())

    assert [item["id"] for item in items] == [record.id]
    assert items[0]["title"] == "forest"


def test_orphans_are_dropped_and_limit_applies() -> None:
    index, writer, feed = _setup()

    async def _run():
        for media_id in ("1", "2", "3"):
            await _ingest(index, writer, media_id)
        await index.index("forest", "orphan")
        return await feed.list_by_term("forest", 50), await feed.list_by_term("forest", 2)

    everything, limited = asyncio.run(_run())

    assert sorted(item["id"] for item in everything) == ["1", "2", "3"]
    assert len(limited) == 2


def test_entries_arriving_inside_window_are_collected() -> None:
    index, writer, feed = _setup(wait_seconds=0.2)

    async def _run():
        pending = asyncio.ensure_future(feed.list_by_term("forest", 50))
        await asyncio.sleep(0.02)
        await _ingest(index, writer, "late")
        return await pending

    items = asyncio.run(_run())

    assert [item["id"] for item in items] == ["late"]


def test_empty_term_waits_window_and_returns_empty() -> None:
    _index, _writer, feed = _setup(wait_seconds=0.05)

    async def _run():
        started = time.monotonic()
        items = await feed.list_by_term("nothing", 10)
        return items, time.monotonic() - started

    items, elapsed = asyncio.run(_run())

    assert items == []
    assert elapsed >= 0.04


def test_cancel_event_aborts_wait() -> None:
    _index, _writer, feed = _setup(wait_seconds=5.0)

    async def _run():
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.02, cancel.set)
        started = time.monotonic()
        with pytest.raises(FeedCancelled):
            await feed.list_by_term("forest", 10, cancel=cancel)
        return time.monotonic() - started

    assert asyncio.run(_run()) < 1.0


def test_task_cancellation_aborts_wait() -> None:
    _index, _writer, feed = _setup(wait_seconds=5.0)

    async def _run():
        task = asyncio.ensure_future(feed.list_by_term("forest", 10))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(_run())


def test_coalesced_calls_share_one_collection_pass() -> None:
    index, writer, feed = _setup(wait_seconds=0.05, coalesce=True)

    async def _run():
        for media_id in ("1", "2", "3"):
            await _ingest(index, writer, media_id)
        index.enumerations = 0
        results = await asyncio.gather(
            feed.list_by_term("forest", 50),
            feed.list_by_term("FOREST", 1),
            feed.list_by_term("forest", 2),
        )
        return results, index.enumerations

    (full, one, two), enumerations = asyncio.run(_run())

    assert enumerations == 1
    assert len(full) == 3
    assert len(one) == 1
    assert len(two) == 2


def test_coalesced_caller_can_leave_without_aborting_shared_pass() -> None:
    index, writer, feed = _setup(wait_seconds=0.05, coalesce=True)

    async def _run():
        await _ingest(index, writer, "1")
        cancel = asyncio.Event()
        staying = asyncio.ensure_future(feed.list_by_term("forest", 10))
        leaving = asyncio.ensure_future(feed.list_by_term("forest", 10, cancel=cancel))
        await asyncio.sleep(0.01)
        cancel.set()
        with pytest.raises(FeedCancelled):
            await leaving
        return await staying

    assert [item["id"] for item in asyncio.run(_run())] == ["1"]


def test_coalesced_entry_is_released_when_pass_finishes() -> None:
    index, writer, feed = _setup(wait_seconds=0.01, coalesce=True)

    async def _run():
        await _ingest(index, writer, "1")
        index.enumerations = 0
        first = await feed.list_by_term("forest", 10)
        inflight_after_first = dict(feed._inflight)
        await _ingest(index, writer, "2")
        second = await feed.list_by_term("forest", 10)
        return first, second, inflight_after_first, index.enumerations

    first, second, inflight_after_first, enumerations = asyncio.run(_run())

    assert inflight_after_first == {}
    assert enumerations == 2
    assert [item["id"] for item in first] == ["1"]
    assert sorted(item["id"] for item in second) == ["1", "2"]


def test_failed_shared_pass_reaches_every_caller_and_is_released() -> None:
    class _BrokenIndex(_CountingIndex):
        async def ids(self, term):
            await super().ids(term)
            raise ValueError("index unreadable")

    ns = StoreNamespace(MemoryStore(), "test")
    feed = FanInAggregator(_BrokenIndex(ns), CatalogWriter(ns), wait_seconds=0.01, coalesce=True)

    async def _run():
        results = await asyncio.gather(
            feed.list_by_term("forest", 10),
            feed.list_by_term("forest", 10),
            return_exceptions=True,
        )
        return results, dict(feed._inflight)

    results, inflight = asyncio.run(_run())

    assert all(isinstance(result, ValueError) for result in results)
    assert inflight == {}
