"""Normalize SIRI vehicle-monitoring payloads into flat bus records.

The Entur feed does not fix its envelope shape: any level may hold a
single object or a list, leaf values may arrive as plain values, lists or
``{"value": ...}`` / ``{"text": ...}`` wrappers, and key casing varies.
The helpers below accept all of those and never raise on odd shapes.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

logger = logging.getLogger(__name__)

# Envelope paths to the VehicleMonitoringDelivery, most specific first
DELIVERY_PATHS: tuple[tuple[str, ...], ...] = (
    ("Siri", "ServiceDelivery", "VehicleMonitoringDelivery"),
    ("ServiceDelivery", "VehicleMonitoringDelivery"),
    ("VehicleMonitoringDelivery",),
)

UNKNOWN_LINE = "Unknown line"
UNKNOWN_DESTINATION = "Unknown destination"
UNKNOWN_STOP = "Unknown stop"


@dataclass(frozen=True)
class RawBus:
    id: str
    line_name: str
    current_stop_name: str
    destination_name: str
    destination_stop_id: str
    latitude: float | None
    longitude: float | None

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def as_list(value: Any) -> list:
    """Wrap a single value in a list; ``None`` becomes ``[]``."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]


def unwrap_scalar(value: Any) -> Any:
    """Strip list and value/text wrappers until a plain value remains."""
    while True:
        if isinstance(value, (list, tuple)):
            if not value:
                return None
            value = value[0]
        elif isinstance(value, dict):
            if "value" in value:
                value = value["value"]
            elif "text" in value:
                value = value["text"]
            else:
                return None
        else:
            return value


def to_text(value: Any) -> str:
    value = unwrap_scalar(value)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number(value: Any) -> float | None:
    """Coerce to a finite float, or ``None`` when that is impossible."""
    value = unwrap_scalar(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def pick(node: Any, *keys: str) -> Any:
    """Return the first non-None value among ``keys``, matching case-insensitively."""
    if not isinstance(node, dict):
        return None
    for key in keys:
        if node.get(key) is not None:
            return node[key]
    lowered = {str(k).lower(): v for k, v in node.items()}
    for key in keys:
        value = lowered.get(key.lower())
        if value is not None:
            return value
    return None


def first_item(value: Any) -> dict | None:
    """First mapping in a single-or-list value."""
    for item in as_list(value):
        if isinstance(item, dict):
            return item
    return None


def resolve_path(node: Any, path: Sequence[str]) -> list:
    """Follow ``path`` through single-or-list levels, collecting every hit."""
    current = as_list(node)
    for key in path:
        found = []
        for item in current:
            found.extend(as_list(pick(item, key)))
        current = found
        if not current:
            break
    return current


def first_non_empty_path(node: Any, paths: Iterable[Sequence[str]]) -> list:
    for path in paths:
        found = resolve_path(node, path)
        if found:
            return found
    return []


def _first_text(*values: Any) -> str:
    for value in values:
        text = to_text(value)
        if text:
            return text
    return ""


def extract_buses(payload: Any) -> list[RawBus]:
    """Flatten a vehicle-monitoring delivery into bus records, in feed order."""
    deliveries = first_non_empty_path(payload, DELIVERY_PATHS)
    activities = [
        activity
        for delivery in deliveries
        for activity in as_list(pick(delivery, "VehicleActivity"))
    ]

    buses: list[RawBus] = []
    skipped_mode = 0
    for index, activity in enumerate(activities):
        journey = first_item(pick(activity, "MonitoredVehicleJourney"))
        if journey is None:
            continue

        mode = to_text(pick(journey, "VehicleMode", "VehicleCategory")).lower()
        if mode and "bus" not in mode:
            skipped_mode += 1
            continue

        location = first_item(pick(journey, "VehicleLocation"))
        latitude = to_number(pick(location, "Latitude"))
        longitude = to_number(pick(location, "Longitude"))

        line_name = _first_text(
            pick(journey, "LineName"),
            pick(journey, "PublishedLineName"),
            pick(journey, "LineRef"),
            pick(journey, "VehicleRef"),
        ) or UNKNOWN_LINE

        destination_stop_id = to_text(pick(journey, "DestinationRef"))
        destination_name = _first_text(
            pick(journey, "DestinationName"),
            pick(journey, "DestinationRef"),
        ) or UNKNOWN_DESTINATION

        call = first_item(pick(journey, "MonitoredCall"))
        current_stop_name = _first_text(
            pick(call, "StopPointName"),
            pick(call, "StopPointRef"),
        ) or UNKNOWN_STOP

        bus_id = _first_text(
            pick(journey, "VehicleRef"),
            pick(activity, "ItemIdentifier"),
        ) or f"{line_name}-{index}"

        buses.append(RawBus(
            id=bus_id,
            line_name=line_name,
            current_stop_name=current_stop_name,
            destination_name=destination_name,
            destination_stop_id=destination_stop_id,
            latitude=latitude,
            longitude=longitude,
        ))

    logger.debug(
        "Extracted %d buses from %d activities (%d non-bus skipped)",
        len(buses), len(activities), skipped_mode,
    )
    return buses
