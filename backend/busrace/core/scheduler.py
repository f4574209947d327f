"""APScheduler setup for cache prefetch jobs."""

import datetime
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from busrace.core.bus_cache import OperatorCache
from busrace.core.jobs import fetch_buses_job

logger = logging.getLogger(__name__)


async def prefetch_operator(cache: OperatorCache, operator: str, client_name: str | None) -> None:
    """Warm one operator's cache; failures are logged and retried next tick."""
    try:
        result = await fetch_buses_job(cache, {"operator": operator}, client_name)
    except Exception:
        logger.exception("Prefetch for %s failed", operator)
        return
    logger.debug("Prefetched %s: %d buses", operator, len(result.available_buses))


def create_scheduler(
    cache: OperatorCache,
    client_name: str | None,
    operators: list[str],
    interval_seconds: int,
) -> AsyncIOScheduler:
    """Create the scheduler with one prefetch job per operator."""
    scheduler = AsyncIOScheduler()

    for operator in operators:
        scheduler.add_job(
            prefetch_operator,
            "interval",
            seconds=interval_seconds,
            args=[cache, operator, client_name],
            id=f"prefetch_{operator}",
            name=f"Prefetch buses for {operator}",
            max_instances=1,
            next_run_time=datetime.datetime.now(),
        )

    return scheduler
