"""Data models for radiomap."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from radiomap.exceptions import PlaybackBlocked


class PlaybackStatus(StrEnum):
    """States of a playback session."""

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ERROR = "error"


class Theme(StrEnum):
    LIGHT = "light"
    DARK = "dark"


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _to_coord(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _valid_geo(lat: float | None, lon: float | None) -> bool:
    if lat is None or lon is None:
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def _require(data: Any, key: str) -> str:
    if not isinstance(data, dict):
        raise ValueError(f"Station record must be an object, got {type(data).__name__}")
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Station record is missing required field {key!r}")
    return value


@dataclass(frozen=True)
class LightStation:
    """Minimal projection of a station, enough to place it on a map."""

    id: str
    name: str
    lat: float | None = None
    lon: float | None = None
    country: str = ""
    country_code: str = ""
    favicon_url: str = ""
    votes: int = 0
    is_healthy: bool = False

    def has_valid_geo(self) -> bool:
        return _valid_geo(self.lat, self.lon)

    def is_placeable(self) -> bool:
        """Only healthy stations with coordinates go on the map."""
        return self.is_healthy and self.has_valid_geo()


@dataclass(frozen=True)
class Station:
    """A full station record as returned by the directory."""

    id: str
    name: str
    lat: float | None = None
    lon: float | None = None
    country: str = ""
    country_code: str = ""
    favicon_url: str = ""
    votes: int = 0
    is_healthy: bool = False
    stream_url: str = ""
    resolved_stream_url: str = ""
    homepage_url: str = ""
    tags: tuple[str, ...] = ()
    state: str = ""
    language: str = ""
    bitrate: int = 0
    codec: str = ""
    click_count: int = 0
    last_check_ok: bool = False
    last_check_time_iso: str = ""
    has_extended_info: bool = False

    def has_valid_geo(self) -> bool:
        return _valid_geo(self.lat, self.lon)

    def to_light(self) -> LightStation:
        return LightStation(
            id=self.id,
            name=self.name,
            lat=self.lat,
            lon=self.lon,
            country=self.country,
            country_code=self.country_code,
            favicon_url=self.favicon_url,
            votes=self.votes,
            is_healthy=self.is_healthy,
        )

    @classmethod
    def from_api(cls, data: dict) -> Station:
        """Parse a directory JSON record.

        Raises ValueError when the record lacks an id or a name.
        """
        station_id = _require(data, "stationuuid").strip()
        name = _require(data, "name").strip()
        tags = data.get("tags") or ""
        if isinstance(tags, str):
            tag_list = tuple(t.strip() for t in tags.split(",") if t.strip())
        else:
            tag_list = tuple(str(t).strip() for t in tags if str(t).strip())
        check_ok = _to_int(data.get("lastcheckok")) == 1
        return cls(
            id=station_id,
            name=name,
            lat=_to_coord(data.get("geo_lat")),
            lon=_to_coord(data.get("geo_long")),
            country=data.get("country") or "",
            country_code=data.get("countrycode") or "",
            favicon_url=data.get("favicon") or "",
            votes=_to_int(data.get("votes")),
            is_healthy=check_ok,
            stream_url=(data.get("url") or "").strip(),
            resolved_stream_url=(data.get("url_resolved") or "").strip(),
            homepage_url=data.get("homepage") or "",
            tags=tag_list,
            state=data.get("state") or "",
            language=data.get("language") or "",
            bitrate=_to_int(data.get("bitrate")),
            codec=data.get("codec") or "",
            click_count=_to_int(data.get("clickcount")),
            last_check_ok=check_ok,
            last_check_time_iso=data.get("lastchecktime_iso8601") or "",
            has_extended_info=bool(data.get("has_extended_info", False)),
        )

    def to_api(self) -> dict:
        """Serialize using the directory's own field names."""
        return {
            "stationuuid": self.id,
            "name": self.name,
            "url": self.stream_url,
            "url_resolved": self.resolved_stream_url,
            "homepage": self.homepage_url,
            "favicon": self.favicon_url,
            "tags": ",".join(self.tags),
            "country": self.country,
            "countrycode": self.country_code,
            "state": self.state,
            "language": self.language,
            "votes": self.votes,
            "bitrate": self.bitrate,
            "codec": self.codec,
            "clickcount": self.click_count,
            "lastcheckok": 1 if self.last_check_ok else 0,
            "lastchecktime_iso8601": self.last_check_time_iso,
            "geo_lat": self.lat,
            "geo_long": self.lon,
            "has_extended_info": self.has_extended_info,
        }


@dataclass(frozen=True)
class SearchParams:
    """Filters for an advanced directory search. None fields are omitted."""

    name: str | None = None
    country: str | None = None
    countrycode: str | None = None
    state: str | None = None
    language: str | None = None
    tag: str | None = None
    tag_list: str | None = None
    codec: str | None = None
    bitrate_min: int | None = None
    bitrate_max: int | None = None
    order: str | None = None
    reverse: bool | None = None
    offset: int | None = None
    limit: int | None = None
    hidebroken: bool | None = None
    has_geo_info: bool | None = None

    def to_query(self) -> dict[str, str]:
        names = {
            "tag_list": "tagList",
            "bitrate_min": "bitrateMin",
            "bitrate_max": "bitrateMax",
        }
        query: dict[str, str] = {}
        for key, value in self.__dict__.items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            query[names.get(key, key)] = str(value)
        return query


@dataclass(frozen=True)
class Bounds:
    """Geographic bounding box (inclusive)."""

    south: float
    west: float
    north: float
    east: float

    def contains(self, lat: float, lon: float) -> bool:
        if not self.south <= lat <= self.north:
            return False
        if self.west > self.east:
            # crosses the antimeridian
            return lon >= self.west or lon <= self.east
        return self.west <= lon <= self.east


@dataclass(frozen=True)
class MarkerPlacement:
    """One marker handed to the rendering layer."""

    id: str
    lat: float
    lon: float
    name: str
    country: str = ""
    favicon_url: str = ""
    votes: int = 0


@dataclass(frozen=True)
class MarkerInteracted:
    """The user clicked a marker (or its popup play button)."""

    station_id: str


@dataclass(frozen=True)
class ViewportChanged:
    bounds: Bounds
    zoom: int = 0


@dataclass
class PlaybackSession:
    """State of one playback attempt lifecycle."""

    station_id: str | None = None
    status: PlaybackStatus = PlaybackStatus.IDLE
    error_message: str = ""
    error: Exception | None = None
    attempted_urls: list[str] = field(default_factory=list)
    retry_count: int = 0
    generation: int = 0

    @property
    def is_blocked(self) -> bool:
        return isinstance(self.error, PlaybackBlocked)
