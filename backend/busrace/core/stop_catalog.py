"""Static stop catalog: id/name/coordinate rows loaded once per process."""

import asyncio
import logging
import math
from dataclasses import dataclass
from pathlib import Path

from busrace.core.errors import StopCatalogError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stop:
    id: str
    name: str
    latitude: float
    longitude: float


def parse_stops(text: str, delimiter: str = ",") -> list[Stop]:
    """Parse delimited stop rows, skipping the header line.

    Rows with fewer than four fields or non-finite coordinates are dropped.
    """
    stops: list[Stop] = []
    dropped = 0
    for line in text.splitlines()[1:]:
        if not line.strip():
            continue
        parts = line.split(delimiter)
        if len(parts) < 4:
            dropped += 1
            continue
        try:
            lat = float(parts[2])
            lon = float(parts[3])
        except ValueError:
            dropped += 1
            continue
        if not (math.isfinite(lat) and math.isfinite(lon)):
            dropped += 1
            continue
        stops.append(Stop(id=parts[0].strip(), name=parts[1].strip(), latitude=lat, longitude=lon))

    if dropped:
        logger.debug("Dropped %d malformed stop rows", dropped)
    return stops


class StopCatalog:
    """Memoized stop list backed by a delimited text file.

    The first successful ``load()`` is kept for the process lifetime; a
    failed read is not cached, so the next call tries the file again.
    """

    def __init__(self, path: str | Path, delimiter: str = ",") -> None:
        self.path = Path(path)
        self.delimiter = delimiter
        self._stops: list[Stop] | None = None
        self._by_id: dict[str, Stop] = {}
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._stops is not None

    async def load(self) -> list[Stop]:
        if self._stops is not None:
            return self._stops

        async with self._lock:
            if self._stops is None:
                try:
                    text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
                except OSError as e:
                    raise StopCatalogError(f"Failed to read stop catalog {self.path}: {e}") from e

                stops = parse_stops(text, self.delimiter)
                # First row wins when ids repeat
                by_id: dict[str, Stop] = {}
                for stop in stops:
                    by_id.setdefault(stop.id, stop)
                self._by_id = by_id
                self._stops = stops
                logger.info("Loaded %d stops from %s", len(stops), self.path)
        return self._stops

    def get(self, stop_id: str) -> Stop | None:
        """Look up a stop by id; empty until ``load()`` has succeeded."""
        return self._by_id.get(stop_id)
