"""Capability interface for the replicated key-value store.

Keys are slash-separated paths. Every operation is awaitable and convergent
per key; nothing is atomic across keys. Beyond plain ``get``/``put`` the
interface exposes two single-key atomic primitives, ``insert_if_absent`` and
``compare_and_swap``, which the catalog services use instead of
check-then-write sequences.

A value of ``None`` is a tombstone: it reads as absent, and a key holding it
counts as absent for ``insert_if_absent``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Protocol
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, Any], None]
Unsubscribe = Callable[[], None]

DEFAULT_NAMESPACE = "dme_pixabay_v1"


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any:
        """Return the current value for ``key`` or ``None``."""

    async def put(self, key: str, value: Any) -> None:
        """Write ``value`` for ``key``; returns once locally acknowledged."""

    def on_change(self, key: str, callback: ChangeCallback) -> Unsubscribe:
        """Call ``callback(changed_key, value)`` on writes to ``key`` or its direct children."""

    async def children(self, key: str) -> dict[str, Any]:
        """Return ``{child_segment: value}`` for the live direct children of ``key``."""

    async def insert_if_absent(self, key: str, value: Any) -> bool:
        """Write ``value`` only when ``key`` is absent; return whether it was written."""

    async def compare_and_swap(self, key: str, expected: Any, new: Any) -> bool:
        """Write ``new`` only when the current value equals ``expected``."""


def parent_key(key: str) -> str:
    head, _, _tail = key.rpartition("/")
    return head


class ChangeListeners:
    """In-process change fan-out shared by the store backends."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[ChangeCallback]] = defaultdict(list)

    def subscribe(self, key: str, callback: ChangeCallback) -> Unsubscribe:
        self._listeners[key].append(callback)

        def _unsubscribe() -> None:
            callbacks = self._listeners.get(key)
            if not callbacks:
                return
            try:
                callbacks.remove(callback)
            except ValueError:
                return
            if not callbacks:
                self._listeners.pop(key, None)

        return _unsubscribe

    def notify(self, key: str, value: Any) -> None:
        targets = list(self._listeners.get(key, ())) + list(self._listeners.get(parent_key(key), ()))
        if not targets:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        for callback in targets:
            if loop is not None:
                loop.call_soon(self._dispatch, callback, key, value)
            else:
                self._dispatch(callback, key, value)

    @staticmethod
    def _dispatch(callback: ChangeCallback, key: str, value: Any) -> None:
        try:
            callback(key, value)
        except Exception:
            logger.exception("Change listener failed for key=%s", key)


class StoreNamespace:
    """Explicit handle to one namespace root inside a store.

    Builds the persisted key layout::

        {root}/media/{id}
        {root}/media/{id}/likes
        {root}/media/{id}/downloads
        {root}/media/{id}/likers/{uid}
        {root}/index/{term}/{id}

    Path segments are percent-encoded so a ``/`` inside a term or id cannot
    alias another key.
    """

    def __init__(self, store: KeyValueStore, root: str = DEFAULT_NAMESPACE) -> None:
        root = (root or "").strip().strip("/")
        if not root:
            raise ValueError("namespace root is required")
        self.store = store
        self.root = root

    def key(self, *segments: str) -> str:
        return "/".join([self.root, *(quote(str(segment), safe="") for segment in segments)])

    @staticmethod
    def segment(encoded: str) -> str:
        return unquote(encoded)

    def media_key(self, media_id: str) -> str:
        return self.key("media", media_id)

    def counter_key(self, media_id: str, counter: str) -> str:
        return self.key("media", media_id, counter)

    def liker_key(self, media_id: str, uid: str) -> str:
        return self.key("media", media_id, "likers", uid)

    def index_root(self) -> str:
        return self.key("index")

    def index_key(self, term: str, media_id: str | None = None) -> str:
        if media_id is None:
            return self.key("index", term)
        return self.key("index", term, media_id)
