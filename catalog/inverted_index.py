"""Inverted index from search term to record ids."""

from __future__ import annotations

import logging
from typing import Callable

from db.store import StoreNamespace, Unsubscribe

logger = logging.getLogger(__name__)


def normalize_term(term: str) -> str:
    return str(term or "").strip().lower()


class InvertedIndex:
    """Set-valued mapping stored as ``index/{term}/{id} -> true``.

    Inserts are idempotent. Growth is bounded by ``prune``, which drops
    entries whose record no longer resolves and, above ``max_entries``, the
    entries whose records were created first.
    """

    def __init__(self, namespace: StoreNamespace) -> None:
        self._ns = namespace
        self._store = namespace.store

    async def index(self, term: str, media_id: str) -> bool:
        """Insert ``(term, media_id)``; return ``True`` when the pair is new."""
        term = normalize_term(term)
        if not term:
            return False
        return await self._store.insert_if_absent(self._ns.index_key(term, str(media_id)), True)

    async def ids(self, term: str) -> list[str]:
        entries = await self._store.children(self._ns.index_key(normalize_term(term)))
        return [self._ns.segment(encoded) for encoded, present in entries.items() if present]

    async def terms(self) -> list[str]:
        entries = await self._store.children(self._ns.index_root())
        return [self._ns.segment(encoded) for encoded in entries]

    def on_entry(self, term: str, callback: Callable[[str], None]) -> Unsubscribe:
        """Call ``callback(media_id)`` for every entry written under ``term``."""
        node = self._ns.index_key(normalize_term(term))
        prefix_len = len(node) + 1

        def _on_change(key: str, value) -> None:
            if value and key.startswith(node + "/"):
                callback(self._ns.segment(key[prefix_len:]))

        return self._store.on_change(node, _on_change)

    async def prune(self, term: str, max_entries: int) -> int:
        """Remove orphaned and excess entries for ``term``; return how many were removed."""
        term = normalize_term(term)
        ranked: list[tuple[int, str]] = []
        removed = 0
        for media_id in await self.ids(term):
            record = await self._store.get(self._ns.media_key(media_id))
            if not isinstance(record, dict) or not record.get("id"):
                await self._store.put(self._ns.index_key(term, media_id), None)
                removed += 1
                continue
            ranked.append((int(record.get("createdAt") or 0), media_id))
        if max_entries > 0 and len(ranked) > max_entries:
            ranked.sort(reverse=True)
            for _created_at, media_id in ranked[max_entries:]:
                await self._store.put(self._ns.index_key(term, media_id), None)
                removed += 1
        if removed:
            logger.info("Pruned %s index entries for term=%r", removed, term)
        return removed

    async def prune_all(self, max_entries: int) -> int:
        total = 0
        for term in await self.terms():
            total += await self.prune(term, max_entries)
        return total
