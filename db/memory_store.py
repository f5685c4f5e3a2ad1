"""In-process store backend used for development and tests."""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from typing import Any

from db.store import ChangeCallback, ChangeListeners, Unsubscribe, parent_key


class MemoryStore:
    """Dict-backed ``KeyValueStore``.

    All mutations run on the event loop without awaiting in between the read
    and the write, so the atomic primitives hold for every caller sharing the
    loop. ``latency`` adds an artificial delay before each operation to
    exercise interleavings.
    """

    def __init__(self, *, latency: float = 0.0) -> None:
        self.latency = max(0.0, float(latency))
        self._data: dict[str, Any] = {}
        self._tree: dict[str, set[str]] = defaultdict(set)
        self._listeners = ChangeListeners()

    async def _yield(self) -> None:
        await asyncio.sleep(self.latency)

    def _write(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        child = key
        parent = parent_key(child)
        while parent:
            if child in self._tree[parent]:
                break
            self._tree[parent].add(child)
            child, parent = parent, parent_key(parent)
        self._listeners.notify(key, copy.deepcopy(value))

    def _is_live(self, key: str) -> bool:
        if self._data.get(key) is not None:
            return True
        return any(self._is_live(child) for child in self._tree.get(key, ()))

    async def get(self, key: str) -> Any:
        await self._yield()
        return copy.deepcopy(self._data.get(key))

    async def put(self, key: str, value: Any) -> None:
        await self._yield()
        self._write(key, value)

    def on_change(self, key: str, callback: ChangeCallback) -> Unsubscribe:
        return self._listeners.subscribe(key, callback)

    async def children(self, key: str) -> dict[str, Any]:
        await self._yield()
        prefix_len = len(key) + 1
        out: dict[str, Any] = {}
        for child in sorted(self._tree.get(key, ())):
            if self._is_live(child):
                out[child[prefix_len:]] = copy.deepcopy(self._data.get(child))
        return out

    async def insert_if_absent(self, key: str, value: Any) -> bool:
        await self._yield()
        if self._data.get(key) is not None:
            return False
        self._write(key, value)
        return True

    async def compare_and_swap(self, key: str, expected: Any, new: Any) -> bool:
        await self._yield()
        if self._data.get(key) != expected:
            return False
        self._write(key, new)
        return True

    def close(self) -> None:
        self._data.clear()
        self._tree.clear()
