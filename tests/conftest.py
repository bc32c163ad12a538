"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
import responses as rsps

from radiomap.exceptions import DirectoryUnavailable
from radiomap.models import LightStation, Station
from radiomap.player import TransportEvent

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _block_http():
    """Block all unmocked HTTP requests in every test."""
    rsps.start()
    yield
    rsps.stop()
    rsps.reset()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def search_response(fixtures_dir: Path) -> list[dict]:
    return json.loads((fixtures_dir / "search_response.json").read_text(encoding="utf-8"))


@pytest.fixture
def sample_station() -> Station:
    return Station(
        id="96202f73-0601-11e8-ae97-52543be04c81",
        name="FIP",
        lat=48.8566,
        lon=2.3522,
        country="France",
        country_code="FR",
        votes=12345,
        is_healthy=True,
        stream_url="http://icecast.radiofrance.fr/fip-midfi.mp3",
        resolved_stream_url="https://icecast.radiofrance.fr/fip-hifi.aac",
        tags=("eclectic", "jazz"),
        state="Île-de-France",
        last_check_ok=True,
    )


@pytest.fixture
def other_station() -> Station:
    return Station(
        id="9617a958-0601-11e8-ae97-52543be04c81",
        name="Radio Paradise",
        lat=39.7596,
        lon=-121.8375,
        country="The United States Of America",
        country_code="US",
        is_healthy=True,
        stream_url="http://stream.radioparadise.com/mp3-192",
        resolved_stream_url="http://stream-uk1.radioparadise.com/mp3-192",
        last_check_ok=True,
    )


class FakeTransport:
    """Records what the controller asks for; tests fire events by hand."""

    def __init__(self):
        self.opened: list[str] = []
        self.listeners: list = []
        self.closed = 0
        self.paused = 0
        self.resumed = 0

    def open(self, url, listener):
        self.opened.append(url)
        self.listeners.append(listener)

    def pause(self):
        self.paused += 1

    def resume(self):
        self.resumed += 1

    def close(self):
        self.closed += 1

    def fire(self, event: TransportEvent, detail: str = "", attempt: int = -1) -> None:
        self.listeners[attempt](event, detail)


class FakeDirectory:
    """In-memory stand-in for DirectoryClient with call counting."""

    def __init__(self, stations: list[Station] | None = None, delay: float = 0.0):
        self.stations = {s.id: s for s in stations or []}
        self.light: list[LightStation] = [s.to_light() for s in stations or []]
        self.delay = delay
        self.fetch_calls: list[str] = []
        self.clicks: list[str] = []
        self.fail_with: Exception | None = None
        self.click_error: Exception | None = None

    async def fetch_light_catalog(self, limit=5000, filter_healthy_with_geo=True):
        return self.light[:limit]

    async def fetch_full_record(self, station_id):
        self.fetch_calls.append(station_id)
        await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return self.stations.get(station_id)

    async def register_playback_click(self, station_id):
        if self.click_error is not None:
            raise self.click_error
        self.clicks.append(station_id)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def directory(sample_station, other_station) -> FakeDirectory:
    return FakeDirectory([sample_station, other_station])


@pytest.fixture
def unavailable() -> DirectoryUnavailable:
    return DirectoryUnavailable("Request failed: connection refused")
