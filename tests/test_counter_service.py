from __future__ import annotations

import asyncio

from catalog.counters import CounterService, KeyedLocks
from db.memory_store import MemoryStore
from db.store import StoreNamespace


def _service(latency: float = 0.0) -> CounterService:
    return CounterService(StoreNamespace(MemoryStore(latency=latency), "test"))


def test_like_is_idempotent_per_user() -> None:
    service = _service()

    async def _run():
        first = await service.like("123", "u1")
        second = await service.like("123", "u1")
        return first, second, await service.counts("123")

    first, second, counts = asyncio.run(_run())

    assert first == {"liked": True, "likes": 1}
    assert second == {"liked": True, "message": "already liked"}
    assert counts["likes"] == 1


def test_unlike_without_like_does_not_mutate() -> None:
    service = _service()

    async def _run():
        result = await service.unlike("456", "u1")
        return result, await service.counts("456")

    result, counts = asyncio.run(_run())

    assert result == {"liked": False, "message": "not liked yet"}
    assert counts == {"likes": 0, "downloads": 0}


def test_like_unlike_like_cycle() -> None:
    service = _service()

    async def _run():
        await service.like("1", "u1")
        await service.like("1", "u2")
        unliked = await service.unlike("1", "u1")
        again = await service.unlike("1", "u1")
        relike = await service.like("1", "u1")
        return unliked, again, relike

    unliked, again, relike = asyncio.run(_run())

    assert unliked == {"liked": False, "likes": 1}
    assert again == {"liked": False, "message": "not liked yet"}
    assert relike == {"liked": True, "likes": 2}


def test_unlike_never_drives_likes_negative() -> None:
    service = _service()
    ns = service._ns

    async def _run():
        await ns.store.put(ns.liker_key("9", "u1"), True)
        return await service.unlike("9", "u1")

    assert asyncio.run(_run()) == {"liked": False, "likes": 0}


def test_download_increments_monotonically() -> None:
    service = _service()

    async def _run():
        return [await service.download("789") for _ in range(3)]

    assert asyncio.run(_run()) == [1, 2, 3]


def test_concurrent_duplicate_likes_count_once() -> None:
    service = _service(latency=0.001)

    async def _run():
        results = await asyncio.gather(*(service.like("123", "u1") for _ in range(5)))
        return results, await service.counts("123")

    results, counts = asyncio.run(_run())

    assert sum(1 for result in results if result.get("likes") == 1) == 1
    assert sum(1 for result in results if result.get("message") == "already liked") == 4
    assert counts["likes"] == 1


def test_concurrent_likes_from_distinct_users_are_not_lost() -> None:
    service = _service(latency=0.001)

    async def _run():
        await asyncio.gather(*(service.like("123", f"u{idx}") for idx in range(10)))
        await asyncio.gather(*(service.download("123") for _ in range(4)))
        return await service.counts("123")

    assert asyncio.run(_run()) == {"likes": 10, "downloads": 4}


def test_keyed_locks_release_entries() -> None:
    locks = KeyedLocks()

    async def _run():
        async def _hold():
            async with locks.hold("a"):
                await asyncio.sleep(0.001)

        await asyncio.gather(_hold(), _hold(), _hold())
        return len(locks)

    assert asyncio.run(_run()) == 0
