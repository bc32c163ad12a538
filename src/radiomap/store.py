"""Two-tier station cache: a light index for the map, full records on demand."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable

from radiomap.api import DirectoryClient
from radiomap.exceptions import StationNotFound
from radiomap.models import Bounds, LightStation, MarkerPlacement, Station

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_LIMIT = 5000


class StationStore:
    """Holds the light index and the lazily filled detail cache.

    ``resolve_full`` coalesces concurrent requests: while a fetch for an id
    is in flight, later callers await the same task.
    """

    def __init__(self, client: DirectoryClient, rng: random.Random | None = None):
        self.client = client
        self._rng = rng or random.Random()
        self._index: dict[str, LightStation] = {}
        self._details: dict[str, Station] = {}
        self._inflight: dict[str, asyncio.Task[Station]] = {}
        self.loaded_count = 0
        self.total_count = 0

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, station_id: object) -> bool:
        return station_id in self._index

    @property
    def stations(self) -> list[LightStation]:
        return list(self._index.values())

    def light(self, station_id: str) -> LightStation | None:
        return self._index.get(station_id)

    async def load_initial_index(
        self,
        limit: int = DEFAULT_INITIAL_LIMIT,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[LightStation]:
        """Fetch the most voted stations and keep those placeable on a map.

        The upstream request already asks for healthy stations with geo
        info; the result is filtered again here.
        """
        logger.info("Loading top %d stations", limit)
        fetched = await self.client.fetch_light_catalog(limit, filter_healthy_with_geo=True)
        valid = [s for s in fetched if s.is_placeable()]
        if len(valid) != len(fetched):
            logger.debug("Dropped %d stations without health or geo", len(fetched) - len(valid))

        self._index = {}
        self.loaded_count = 0
        self.total_count = len(valid)
        for station in valid:
            self._index[station.id] = station
            self.loaded_count += 1
            if progress_callback:
                progress_callback(self.loaded_count, self.total_count)

        logger.info("%d stations loaded", self.loaded_count)
        return self.stations

    def placements(self) -> list[MarkerPlacement]:
        """Marker data for every placeable station in the index."""
        return [
            MarkerPlacement(
                id=s.id,
                lat=s.lat,
                lon=s.lon,
                name=s.name,
                country=s.country,
                favicon_url=s.favicon_url,
                votes=s.votes,
            )
            for s in self._index.values()
            if s.is_placeable()
        ]

    def placements_in_bounds(self, bounds: Bounds) -> list[MarkerPlacement]:
        return [p for p in self.placements() if bounds.contains(p.lat, p.lon)]

    def get_cached(self, station_id: str) -> Station | None:
        """Cache-only lookup; never touches the network."""
        return self._details.get(station_id)

    async def resolve_full(self, station_id: str) -> Station:
        """Return the full record, fetching it once if not cached.

        Raises StationNotFound or DirectoryUnavailable. Failures are not
        cached so a later call fetches again.
        """
        cached = self._details.get(station_id)
        if cached is not None:
            return cached

        task = self._inflight.get(station_id)
        if task is None:
            task = asyncio.ensure_future(self._fetch(station_id))
            self._inflight[station_id] = task
            task.add_done_callback(lambda t, sid=station_id: self._forget(sid, t))
        else:
            logger.debug("Joining in-flight fetch for %s", station_id)
        # shield: one caller giving up must not cancel the others
        return await asyncio.shield(task)

    def _forget(self, station_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(station_id) is task:
            del self._inflight[station_id]
        if not task.cancelled():
            # mark retrieved in case every awaiter was cancelled
            task.exception()

    async def _fetch(self, station_id: str) -> Station:
        logger.debug("Fetching details for %s", station_id)
        station = await self.client.fetch_full_record(station_id)
        if station is None:
            raise StationNotFound(station_id)
        self._details[station_id] = station
        return station

    def is_fetching(self, station_id: str) -> bool:
        return station_id in self._inflight

    def pick_random(self) -> LightStation | None:
        if not self._index:
            return None
        return self._rng.choice(list(self._index.values()))

    def clear_cache(self) -> None:
        """Drop every cached full record. In-flight fetches still complete."""
        self._details.clear()
