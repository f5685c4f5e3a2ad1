"""Media catalog services over the key-value store."""

from catalog.counters import CounterService
from catalog.feed import FanInAggregator
from catalog.inverted_index import InvertedIndex
from catalog.normalize import normalize_hit
from catalog.types import MediaRecord, MediaType
from catalog.writer import CatalogWriter

__all__ = [
    "CatalogWriter",
    "CounterService",
    "FanInAggregator",
    "InvertedIndex",
    "MediaRecord",
    "MediaType",
    "normalize_hit",
]
