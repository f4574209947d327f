"""Per-operator bus cache with single-flight refresh and a shared rate limit.

Each call to ``get_available_buses`` resolves, in order: join an in-flight
refresh, serve fresh data, serve stale data when the global window is full
(or raise ``RateLimitError`` when there is none), otherwise start a refresh.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

from busrace.core.errors import RateLimitError
from busrace.core.proximity import NEARBY_RADIUS_M, enrich
from busrace.core.rate_limiter import SlidingWindowLimiter
from busrace.core.siri import extract_buses
from busrace.core.stop_catalog import Stop
from busrace.schemas.bus import BusState

logger = logging.getLogger(__name__)

REFRESH_INTERVAL_SECONDS = 15.0


class FeedClient(Protocol):
    def fetch_vehicle_monitoring(self, operator: str, client_name: str) -> Awaitable[Any]: ...


class StopSource(Protocol):
    def load(self) -> Awaitable[list[Stop]]: ...


@dataclass
class CacheEntry:
    data: tuple[BusState, ...] | None = None
    fetched_at: float = 0.0
    in_flight: asyncio.Task | None = None


class OperatorCache:
    """Most recent enriched bus list per operator code."""

    def __init__(
        self,
        client: FeedClient,
        stop_catalog: StopSource,
        limiter: SlidingWindowLimiter,
        refresh_interval: float = REFRESH_INTERVAL_SECONDS,
        nearby_radius_m: float = NEARBY_RADIUS_M,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.stop_catalog = stop_catalog
        self.limiter = limiter
        self.refresh_interval = refresh_interval
        self.nearby_radius_m = nearby_radius_m
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get_available_buses(self, operator: str, client_name: str) -> list[BusState]:
        async with self._lock:
            entry = self._entries.get(operator)
            if entry is not None and entry.in_flight is not None:
                logger.debug("Joining in-flight refresh for %s", operator)
                task = entry.in_flight
            elif entry is not None and entry.data is not None and self._clock() - entry.fetched_at < self.refresh_interval:
                logger.debug("Cache hit for %s", operator)
                return list(entry.data)
            else:
                allowed, retry_after = self.limiter.allow()
                if not allowed:
                    if entry is not None and entry.data is not None:
                        logger.warning(
                            "Rate limit reached, serving stale data for %s (%.0fs old)",
                            operator, self._clock() - entry.fetched_at,
                        )
                        return list(entry.data)
                    raise RateLimitError(retry_after)
                if entry is None:
                    entry = self._entries[operator] = CacheEntry()
                task = asyncio.create_task(self._refresh(operator, client_name, entry))
                task.add_done_callback(self._log_refresh_result)
                entry.in_flight = task

        # Shielded: a cancelled caller must not abort the shared refresh
        return list(await asyncio.shield(task))

    async def _refresh(self, operator: str, client_name: str, entry: CacheEntry) -> tuple[BusState, ...]:
        try:
            payload = await self.client.fetch_vehicle_monitoring(operator, client_name)
            buses = extract_buses(payload)
            stops = await self.stop_catalog.load()
            enriched = tuple(enrich(bus, stops, self.nearby_radius_m) for bus in buses)
        except BaseException:
            async with self._lock:
                entry.in_flight = None
                # Never refreshed successfully: forget the operator
                if entry.data is None and self._entries.get(operator) is entry:
                    del self._entries[operator]
            raise

        async with self._lock:
            entry.data = enriched
            entry.fetched_at = self._clock()
            entry.in_flight = None
        logger.info("Refreshed %s: %d buses", operator, len(enriched))
        return enriched

    @staticmethod
    def _log_refresh_result(task: asyncio.Task) -> None:
        # Retrieves the exception even when every waiter has gone away
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Bus refresh failed: %s", exc)

    def snapshot(self) -> list[dict]:
        """Per-operator cache state for diagnostics."""
        now = self._clock()
        return [
            {
                "operator": operator,
                "vehicles": len(entry.data) if entry.data is not None else None,
                "age_seconds": round(now - entry.fetched_at, 1) if entry.data is not None else None,
                "refreshing": entry.in_flight is not None,
            }
            for operator, entry in sorted(self._entries.items())
        ]
