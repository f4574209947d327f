"""Match a bus position to nearby stops and a destination stop."""

import logging
import math
from typing import Sequence

from busrace.core.siri import UNKNOWN_DESTINATION, RawBus
from busrace.core.stop_catalog import Stop
from busrace.schemas.bus import BusState, NearbyStop

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000
NEARBY_RADIUS_M = 1000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two lat/lon points."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def find_nearby_stops(
    lat: float, lon: float, stops: Sequence[Stop], radius_m: float = NEARBY_RADIUS_M,
) -> list[Stop]:
    """Stops within ``radius_m``, in catalog order (not sorted by distance)."""
    return [s for s in stops if haversine_m(lat, lon, s.latitude, s.longitude) <= radius_m]


def _find_by_id(stop_id: str, *candidates: Sequence[Stop]) -> Stop | None:
    for stops in candidates:
        for stop in stops:
            if stop.id == stop_id:
                return stop
    return None


def _find_by_name(name: str, *candidates: Sequence[Stop]) -> Stop | None:
    wanted = name.lower()
    for stops in candidates:
        for stop in stops:
            if stop.name.lower() == wanted:
                return stop
    return None


def resolve_destination(
    bus: RawBus, nearby: Sequence[Stop], all_stops: Sequence[Stop],
) -> Stop | None:
    """Pick the bus's destination stop.

    Tried in order: stop id (nearby, then whole catalog), exact
    case-insensitive name (nearby, then catalog), then the first nearby
    stop. The last step is positional, not the closest stop.
    """
    if bus.destination_stop_id:
        stop = _find_by_id(bus.destination_stop_id, nearby, all_stops)
        if stop is not None:
            return stop

    name = bus.destination_name.strip()
    if name and name.lower() != UNKNOWN_DESTINATION.lower():
        stop = _find_by_name(name, nearby, all_stops)
        if stop is not None:
            return stop

    if nearby:
        return nearby[0]
    return None


def enrich(bus: RawBus, all_stops: Sequence[Stop], radius_m: float = NEARBY_RADIUS_M) -> BusState:
    """Attach nearby stops, flagging the resolved destination."""
    nearby_stops: list[NearbyStop] = []
    if bus.has_position:
        nearby = find_nearby_stops(bus.latitude, bus.longitude, all_stops, radius_m)
        destination = resolve_destination(bus, nearby, all_stops)
        if destination is not None and all(s.id != destination.id for s in nearby):
            nearby.append(destination)

        flagged = False
        for stop in nearby:
            is_destination = (
                not flagged and destination is not None and stop.id == destination.id
            )
            flagged = flagged or is_destination
            nearby_stops.append(NearbyStop(
                id=stop.id,
                name=stop.name,
                latitude=stop.latitude,
                longitude=stop.longitude,
                is_destination=is_destination,
            ))

    return BusState(
        id=bus.id,
        name=bus.line_name,
        current_stop=bus.current_stop_name,
        destination=bus.destination_name,
        destination_stop_id=bus.destination_stop_id or None,
        latitude=bus.latitude,
        longitude=bus.longitude,
        nearby_stops=nearby_stops,
    )
