from __future__ import annotations

import asyncio

from catalog.inverted_index import InvertedIndex
from catalog.normalize import normalize_hit
from catalog.writer import CatalogWriter


def _setup(ns):
    return ns, InvertedIndex(ns), CatalogWriter(ns)


def test_index_is_idempotent(namespace) -> None:
    _ns, index, _writer = _setup(namespace)

    async def _run():
        first = await index.index("Forest", "1")
        second = await index.index("forest", "1")
        await index.index("forest", "2")
        return first, second, await index.ids("FOREST")

    first, second, ids = asyncio.run(_run())

    assert first is True
    assert second is False
    assert sorted(ids) == ["1", "2"]


def test_blank_term_is_ignored(namespace) -> None:
    _ns, index, _writer = _setup(namespace)

    async def _run():
        return await index.index("   ", "1"), await index.terms()

    assert asyncio.run(_run()) == (False, [])


def test_terms_with_separators_round_trip(namespace) -> None:
    _ns, index, _writer = _setup(namespace)

    async def _run():
        await index.index("red cars/trucks", "a/b")
        return await index.terms(), await index.ids("red cars/trucks"), await index.ids("red cars")

    terms, ids, unrelated = asyncio.run(_run())

    assert terms == ["red cars/trucks"]
    assert ids == ["a/b"]
    assert unrelated == []


def test_on_entry_reports_new_ids(namespace) -> None:
    _ns, index, _writer = _setup(namespace)

    async def _run():
        seen = []
        unsubscribe = index.on_entry("forest", seen.append)
        await index.index("forest", "1")
        await index.index("forest", "1")
        await index.index("sea", "2")
        await asyncio.sleep(0)
        unsubscribe()
        return seen

    assert asyncio.run(_run()) == ["1"]


def test_prune_drops_orphans_and_oldest_entries(namespace) -> None:
    _ns, index, writer = _setup(namespace)

    async def _run():
        for media_id, created_at in (("1", 100), ("2", 300), ("3", 200)):
            await writer.put(normalize_hit({"id": media_id, "tags": "forest"}, "image", now=created_at))
            await index.index("forest", media_id)
        await index.index("forest", "orphan")
        removed = await index.prune("forest", 2)
        return removed, await index.ids("forest")

    removed, ids = asyncio.run(_run())

    assert removed == 2
    assert sorted(ids) == ["2", "3"]


def test_prune_all_without_bound_only_removes_orphans(namespace) -> None:
    _ns, index, writer = _setup(namespace)

    async def _run():
        await writer.put(normalize_hit({"id": 1, "tags": "forest"}, "image", now=1))
        await index.index("forest", "1")
        await index.index("sea", "ghost")
        removed = await index.prune_all(0)
        return removed, await index.terms(), await index.ids("forest")

    removed, terms, ids = asyncio.run(_run())

    assert removed == 1
    assert terms == ["forest"]
    assert ids == ["1"]
