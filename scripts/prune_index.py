#!/usr/bin/env python3
"""Prune the SQLite-backed search index down to a per-term capacity."""

from __future__ import annotations

import argparse
import asyncio

from catalog.inverted_index import InvertedIndex
from config.settings import APP_NS, INDEX_MAX_ENTRIES_PER_TERM
from db.sqlite_store import SqliteStore
from db.store import StoreNamespace
from engine.paths import DB_PATH


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--db", default=str(DB_PATH), help="Path to the catalog SQLite database")
    parser.add_argument("--namespace", default=APP_NS, help="Store namespace root")
    parser.add_argument(
        "--max-entries",
        type=int,
        default=INDEX_MAX_ENTRIES_PER_TERM,
        help="Entries kept per term; 0 only removes orphaned entries",
    )
    parser.add_argument("--term", default=None, help="Prune a single term instead of every term")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    store = SqliteStore(args.db)
    try:
        index = InvertedIndex(StoreNamespace(store, args.namespace))
        if args.term:
            return await index.prune(args.term, args.max_entries)
        return await index.prune_all(args.max_entries)
    finally:
        store.close()


def main() -> int:
    args = _parse_args()
    removed = asyncio.run(_run(args))
    print(f"removed={removed} max_entries={args.max_entries}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
