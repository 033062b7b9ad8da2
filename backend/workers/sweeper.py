"""Background expiry sweeper.

Expired grants are already invisible to every read; this loop reclaims
their storage for record stores without native key expiry.
"""

import asyncio
import contextlib
import logging

from grants.store import RecordStore

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 300


async def run_sweep(store: RecordStore) -> int:
    """Run one purge pass. Returns the number of records removed."""
    removed = await store.purge_expired()
    if removed > 0:
        logger.info(f"Expiry sweep removed {removed} grants")
    return removed


async def _sweeper_loop(store: RecordStore, interval: float):
    """Background loop that purges expired grants periodically."""
    while True:
        try:
            await run_sweep(store)
        except Exception as e:
            logger.error(f"Expiry sweep error: {e}")
        await asyncio.sleep(interval)


def start_sweeper(store: RecordStore, interval: float = SWEEP_INTERVAL_SECONDS) -> asyncio.Task:
    """Start the sweeper as an async task on the running loop."""
    task = asyncio.get_running_loop().create_task(_sweeper_loop(store, interval))
    logger.info(f"Background expiry sweeper scheduled every {interval:g}s")
    return task


async def stop_sweeper(task: asyncio.Task) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    logger.info("Background expiry sweeper stopped")
