"""Store backends for the media catalog."""

from db.memory_store import MemoryStore
from db.sqlite_store import SqliteStore
from db.store import DEFAULT_NAMESPACE, KeyValueStore, StoreNamespace

__all__ = ["DEFAULT_NAMESPACE", "KeyValueStore", "MemoryStore", "SqliteStore", "StoreNamespace"]
