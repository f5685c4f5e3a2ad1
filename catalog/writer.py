"""Record upserts with lazily initialized counters."""

from __future__ import annotations

import logging
from typing import Any

from catalog.errors import NotFoundError
from catalog.types import MediaRecord, as_count
from db.store import StoreNamespace

logger = logging.getLogger(__name__)

COUNTER_KEYS = ("likes", "downloads")


class CatalogWriter:
    """Persist ``MediaRecord`` values under ``media/{id}``.

    Counters live on their own sub-keys so a record refresh never touches
    them. Each counter is created with ``insert_if_absent`` the first time the
    record is written, which cannot overwrite a concurrent increment.
    """

    def __init__(self, namespace: StoreNamespace) -> None:
        self._ns = namespace
        self._store = namespace.store

    async def put(self, record: MediaRecord) -> MediaRecord:
        key = self._ns.media_key(record.id)
        payload = record.to_dict()
        existing = await self._store.get(key)
        if isinstance(existing, dict) and existing.get("createdAt"):
            payload["createdAt"] = existing["createdAt"]
        await self._store.put(key, payload)
        for counter in COUNTER_KEYS:
            created = await self._store.insert_if_absent(self._ns.counter_key(record.id, counter), 0)
            if created:
                logger.debug("Initialized counter %s for media %s", counter, record.id)
        return MediaRecord.from_dict(payload)

    async def get(self, media_id: str) -> dict[str, Any] | None:
        record = await self._store.get(self._ns.media_key(str(media_id)))
        if not isinstance(record, dict) or not record.get("id"):
            return None
        return record

    async def get_with_counters(self, media_id: str) -> dict[str, Any]:
        media_id = str(media_id)
        record = await self.get(media_id)
        if record is None:
            raise NotFoundError("not found")
        item = dict(record)
        for counter in COUNTER_KEYS:
            item[counter] = as_count(await self._store.get(self._ns.counter_key(media_id, counter)))
        return item
