from __future__ import annotations

import asyncio

import pytest

from catalog.errors import NotFoundError
from catalog.normalize import normalize_hit
from catalog.writer import CatalogWriter


def _record(title_tag: str, *, now: int):
    hit = {"id": 123, "tags": f"{title_tag}, tree", "largeImageURL": f"https://pixabay.com/get/{title_tag}.jpg"}
    return normalize_hit(hit, "image", now=now)


def test_put_initializes_counters_once(namespace) -> None:
    ns = namespace
    writer = CatalogWriter(ns)

    async def _run():
        await writer.put(_record("forest", now=1))
        return await writer.get_with_counters("123")

    item = asyncio.run(_run())

    assert item["id"] == "123"
    assert item["title"] == "forest"
    assert item["likes"] == 0
    assert item["downloads"] == 0


def test_refresh_preserves_counters_and_created_at(namespace) -> None:
    ns = namespace
    writer = CatalogWriter(ns)

    async def _run():
        await writer.put(_record("forest", now=1000))
        await ns.store.put(ns.counter_key("123", "likes"), 5)
        stored = await writer.put(_record("jungle", now=2000))
        return stored, await writer.get_with_counters("123")

    stored, item = asyncio.run(_run())

    assert stored.created_at == 1000
    assert item["title"] == "jungle"
    assert item["src"] == "https://pixabay.com/get/jungle.jpg"
    assert item["createdAt"] == 1000
    assert item["likes"] == 5


def test_initialization_does_not_clobber_counter_written_first(namespace) -> None:
    ns = namespace
    writer = CatalogWriter(ns)

    async def _run():
        await ns.store.put(ns.counter_key("123", "downloads"), 3)
        await writer.put(_record("forest", now=1))
        return await writer.get_with_counters("123")

    assert asyncio.run(_run())["downloads"] == 3


def test_missing_record_raises_not_found(namespace) -> None:
    writer = CatalogWriter(namespace)

    with pytest.raises(NotFoundError):
        asyncio.run(writer.get_with_counters("doesnotexist"))


def test_counter_only_node_is_not_a_record(namespace) -> None:
    ns = namespace
    writer = CatalogWriter(ns)

    async def _run():
        await ns.store.put(ns.counter_key("999", "likes"), 1)
        return await writer.get("999")

    assert asyncio.run(_run()) is None
