"""Radio Browser directory API client."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any

import requests

from radiomap import __version__
from radiomap.exceptions import DirectoryUnavailable
from radiomap.models import LightStation, SearchParams, Station

logger = logging.getLogger(__name__)

BASE_URL = "https://de1.api.radio-browser.info/json"
DEFAULT_TIMEOUT = 30
METADATA_TTL = 300.0

# Filter applied to every map catalog request
_GEO_FILTER = {
    "has_geo_info": "true",
    "hidebroken": "true",
    "order": "votes",
    "reverse": "true",
}


class DirectoryClient:
    """Client for the Radio Browser station directory.

    Public methods are coroutines; the blocking HTTP call runs in a worker
    thread. The requests session is not thread-safe, so calls through it
    are serialized. Failures are raised as DirectoryUnavailable and never
    retried.
    """

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = f"radiomap/{__version__}",
        metadata_ttl: float = METADATA_TTL,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.metadata_ttl = metadata_ttl
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self._session_lock = threading.Lock()
        self._metadata_cache: dict[str, tuple[float, list[dict]]] = {}

    def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
    ) -> Any:
        """Execute one HTTP request and decode the JSON body."""
        url = f"{self.base_url}{path}"
        logger.debug("%s %s params=%s", method, url, params)

        try:
            with self._session_lock:
                resp = self.session.request(method, url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise DirectoryUnavailable(f"Request failed: {e}") from e

        logger.debug("Response %s: %s", resp.status_code, resp.text[:500])

        if resp.status_code >= 400:
            raise DirectoryUnavailable(
                f"Directory error {resp.status_code}: {resp.text[:200]}",
                resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise DirectoryUnavailable(f"Invalid JSON from directory: {e}") from e

    async def _call(self, method: str, path: str, params: dict | None = None) -> Any:
        return await asyncio.to_thread(self._request, method, path, params)

    async def _get_list(self, path: str, params: dict | None = None) -> list:
        data = await self._call("GET", path, params)
        if not isinstance(data, list):
            raise DirectoryUnavailable(
                f"Expected a list from {path}, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def _parse_stations(items: list) -> list[Station]:
        """Parse records, skipping (and logging) malformed ones."""
        stations: list[Station] = []
        for item in items:
            try:
                stations.append(Station.from_api(item))
            except ValueError as e:
                logger.warning("Skipping malformed station record: %s", e)
        return stations

    async def fetch_light_catalog(
        self,
        limit: int = 5000,
        filter_healthy_with_geo: bool = True,
    ) -> list[LightStation]:
        """Top stations by votes, projected to light records."""
        params: dict = {"limit": limit}
        if filter_healthy_with_geo:
            params.update(_GEO_FILTER)
        else:
            params.update({"order": "votes", "reverse": "true"})
        items = await self._get_list("/stations/search", params)
        return [s.to_light() for s in self._parse_stations(items)]

    async def fetch_light_by_country(
        self,
        country_code: str,
        limit: int = 1000,
    ) -> list[LightStation]:
        """Light records for one country (ISO 3166-1 alpha-2 code)."""
        params: dict = {"limit": limit, **_GEO_FILTER}
        items = await self._get_list(
            f"/stations/bycountrycodeexact/{country_code.upper()}", params,
        )
        return [s.to_light() for s in self._parse_stations(items)]

    async def fetch_full_record(self, station_id: str) -> Station | None:
        """Get the full record for a station, or None if it does not exist."""
        items = await self._get_list(f"/stations/byuuid/{station_id}")
        if not items:
            return None
        try:
            return Station.from_api(items[0])
        except ValueError as e:
            raise DirectoryUnavailable(f"Malformed record for {station_id}: {e}") from e

    async def search_advanced(self, params: SearchParams) -> list[Station]:
        items = await self._get_list("/stations/search", params.to_query())
        return self._parse_stations(items)

    async def register_playback_click(self, station_id: str) -> None:
        """Tell the directory a station was played."""
        await self._call("GET", f"/url/{station_id}")

    async def vote(self, station_id: str) -> dict:
        return await self._call("POST", f"/vote/{station_id}")

    async def _metadata(self, name: str) -> list[dict]:
        cached = self._metadata_cache.get(name)
        now = time.monotonic()
        if cached and now - cached[0] < self.metadata_ttl:
            return cached[1]
        items = await self._get_list(f"/{name}")
        self._metadata_cache[name] = (now, items)
        return items

    async def list_countries(self) -> list[dict]:
        return await self._metadata("countries")

    async def list_languages(self) -> list[dict]:
        return await self._metadata("languages")

    async def list_tags(self) -> list[dict]:
        return await self._metadata("tags")

    def clear_cache(self) -> None:
        self._metadata_cache.clear()

    def close(self) -> None:
        self.session.close()
