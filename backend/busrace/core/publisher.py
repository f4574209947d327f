"""Per-client push of bus updates as server-sent events."""

import asyncio
import datetime
import logging
from typing import AsyncIterator, Awaitable, Callable

import orjson

from busrace.core.bus_cache import OperatorCache
from busrace.core.errors import BusRaceError

logger = logging.getLogger(__name__)

STREAM_INTERVAL_SECONDS = 15.0


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode_event(payload: dict) -> bytes:
    return b"data: " + orjson.dumps(payload) + b"\n\n"


class Subscription:
    """One client's refresh loop; ``cancel()`` is its only stop signal."""

    def __init__(
        self,
        publisher: "UpdatePublisher",
        operator: str,
        client_name: str,
        interval: float,
    ) -> None:
        self.publisher = publisher
        self.operator = operator
        self.client_name = client_name
        self.interval = interval
        self._stopped = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    def cancel(self) -> None:
        if not self._stopped.is_set():
            self._stopped.set()
            logger.info("Subscription for %s closed", self.operator)
        self.publisher._discard(self)

    async def cycle(self) -> dict:
        """Run one refresh and build the event body; failures become ``{error}``."""
        try:
            buses = await self.publisher.cache.get_available_buses(self.operator, self.client_name)
        except BusRaceError as e:
            return {"error": str(e)}
        except Exception as e:
            logger.exception("Unexpected failure refreshing %s", self.operator)
            return {"error": str(e) or "Request failed."}
        return {
            "operator": self.operator,
            "availableBuses": [b.model_dump(mode="json", by_alias=True) for b in buses],
            "updatedAt": utc_now_iso(),
        }

    async def events(
        self, is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    ) -> AsyncIterator[bytes]:
        """Yield one encoded event now, then one per interval until cancelled."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        try:
            self.publisher._add(self)
            while not self.cancelled:
                if is_disconnected is not None and await is_disconnected():
                    break
                next_tick += self.interval
                payload = await self.cycle()
                if self.cancelled:
                    break
                yield encode_event(payload)

                delay = max(0.0, next_tick - loop.time())
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.cancel()


class UpdatePublisher:
    """Creates and tracks live subscriptions against a shared cache."""

    def __init__(self, cache: OperatorCache, interval: float = STREAM_INTERVAL_SECONDS) -> None:
        self.cache = cache
        self.interval = interval
        self._subscriptions: set[Subscription] = set()

    @property
    def active(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, operator: str, client_name: str) -> Subscription:
        """Create a subscription; it counts as active once its events start."""
        return Subscription(self, operator, client_name, self.interval)

    def _add(self, sub: Subscription) -> None:
        self._subscriptions.add(sub)
        logger.info("Subscription for %s opened (%d active)", sub.operator, len(self._subscriptions))

    def _discard(self, sub: Subscription) -> None:
        self._subscriptions.discard(sub)

    def close(self) -> None:
        """Stop every live subscription (server shutdown)."""
        for sub in list(self._subscriptions):
            sub.cancel()
