"""Tests for the per-client update stream."""

import asyncio

import orjson

from busrace.core.errors import UpstreamError
from busrace.core.publisher import UpdatePublisher, encode_event
from busrace.schemas.bus import BusState


class ScriptedCache:
    """Replays results in order; exceptions are raised."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls = 0

    async def get_available_buses(self, operator, client_name):
        result = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        if isinstance(result, Exception):
            raise result
        return result


def make_bus(bus_id="AKT:Vehicle:1") -> BusState:
    return BusState(id=bus_id, name="M1", current_stop="UiA", destination="Lund torv")


def decode(chunk: bytes) -> dict:
    assert chunk.startswith(b"data: ")
    assert chunk.endswith(b"\n\n")
    return orjson.loads(chunk[len(b"data: "):])


async def collect(sub, count: int, is_disconnected=None) -> list[dict]:
    events = []
    async for chunk in sub.events(is_disconnected):
        events.append(decode(chunk))
        if len(events) == count:
            sub.cancel()
    return events


def test_encode_event():
    """Events are framed as SSE data lines."""
    assert encode_event({"error": "x"}) == b'data: {"error":"x"}\n\n'


def test_emits_updates_and_errors_without_stopping():
    """Error cycles are emitted and the stream keeps going."""
    cache = ScriptedCache([make_bus()], UpstreamError("Entur request failed."), [make_bus("AKT:Vehicle:2")])
    publisher = UpdatePublisher(cache, interval=0.01)

    async def run():
        sub = publisher.subscribe("AKT", "client")
        return await collect(sub, 3)

    events = asyncio.run(run())
    assert events[0]["operator"] == "AKT"
    assert events[0]["availableBuses"][0]["id"] == "AKT:Vehicle:1"
    assert events[0]["availableBuses"][0]["currentStop"] == "UiA"
    assert events[0]["updatedAt"].endswith("Z")
    assert events[1] == {"error": "Entur request failed."}
    assert events[2]["availableBuses"][0]["id"] == "AKT:Vehicle:2"
    assert cache.calls == 3
    assert publisher.active == 0


def test_first_event_is_immediate():
    """The first event is sent without waiting an interval."""
    cache = ScriptedCache([make_bus()])
    publisher = UpdatePublisher(cache, interval=60)

    async def run():
        sub = publisher.subscribe("AKT", "client")
        return await asyncio.wait_for(collect(sub, 1), timeout=1)

    assert len(asyncio.run(run())) == 1


def test_cancel_interrupts_wait():
    """Cancelling wakes a stream waiting for its next tick."""
    cache = ScriptedCache([make_bus()])
    publisher = UpdatePublisher(cache, interval=60)

    async def run():
        sub = publisher.subscribe("AKT", "client")
        events = []

        async def consume():
            async for chunk in sub.events():
                events.append(chunk)

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.05)
        assert publisher.active == 1
        publisher.close()
        await asyncio.wait_for(task, timeout=1)
        return events

    events = asyncio.run(run())
    assert len(events) == 1
    assert publisher.active == 0


def test_disconnect_stops_stream():
    """A disconnected client ends the stream."""
    cache = ScriptedCache([make_bus()])
    publisher = UpdatePublisher(cache, interval=0.01)
    checks = []

    async def is_disconnected():
        checks.append(True)
        return len(checks) > 2

    async def run():
        sub = publisher.subscribe("AKT", "client")
        return await collect(sub, 100, is_disconnected)

    events = asyncio.run(run())
    assert len(events) == 2
    assert cache.calls == 2
    assert publisher.active == 0


def test_cancel_is_idempotent():
    """Cancelling twice is harmless."""
    publisher = UpdatePublisher(ScriptedCache([]), interval=1)

    async def run():
        sub = publisher.subscribe("AKT", "client")
        sub.cancel()
        sub.cancel()
        return sub

    sub = asyncio.run(run())
    assert sub.cancelled
    assert publisher.active == 0


def test_unstarted_stream_is_not_active():
    """A stream closed before its first event leaves nothing registered."""
    publisher = UpdatePublisher(ScriptedCache([make_bus()]), interval=1)

    async def run():
        sub = publisher.subscribe("AKT", "client")
        assert publisher.active == 0
        await sub.events().aclose()

    asyncio.run(run())
    assert publisher.active == 0


def test_closed_stream_releases_subscription():
    """Closing the generator after one event unregisters the subscription."""
    publisher = UpdatePublisher(ScriptedCache([make_bus()]), interval=60)

    async def run():
        sub = publisher.subscribe("AKT", "client")
        gen = sub.events()
        await gen.__anext__()
        assert publisher.active == 1
        await gen.aclose()
        return sub

    sub = asyncio.run(run())
    assert sub.cancelled
    assert publisher.active == 0
