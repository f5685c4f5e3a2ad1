import sys
from pathlib import Path

import pytest


# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from db.memory_store import MemoryStore  # noqa: E402
from db.store import StoreNamespace  # noqa: E402


@pytest.fixture
def namespace():
    """Fresh in-memory store scoped under a test namespace root."""
    return StoreNamespace(MemoryStore(), "test")
