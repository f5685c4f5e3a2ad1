"""Scheduler job that keeps the inverted index within its capacity bound."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from catalog.inverted_index import InvertedIndex

INDEX_PRUNE_JOB_ID = "index_prune"


async def run_index_prune(index: InvertedIndex, max_entries: int) -> int:
    """Prune every term once; failures are logged and reported as zero removals."""
    try:
        removed = await index.prune_all(max_entries)
    except Exception:
        logging.exception("Index prune failed")
        return 0
    logging.info("Index prune completed removed=%s max_entries=%s", removed, max_entries)
    return removed


def schedule_index_prune(
    scheduler: AsyncIOScheduler,
    index: InvertedIndex,
    *,
    max_entries: int,
    interval_minutes: int,
) -> bool:
    """Register the prune job; return ``False`` when pruning is disabled."""
    if max_entries <= 0 or interval_minutes <= 0:
        logging.info("Index prune disabled (max_entries=%s interval=%s)", max_entries, interval_minutes)
        return False
    scheduler.add_job(
        run_index_prune,
        trigger=IntervalTrigger(minutes=interval_minutes),
        args=[index, max_entries],
        id=INDEX_PRUNE_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=30,
    )
    return True
