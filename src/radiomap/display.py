"""Pure formatting helpers for station details."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

from radiomap.models import Station


def compute_display_time(now: datetime, longitude: float | None) -> str:
    """Approximate wall-clock time at a station, as HH:MM:SS.

    Uses one hour per 15 degrees of longitude, so it ignores real time
    zones and daylight saving. Without a longitude, ``now`` is shown as is.
    """
    if longitude is None:
        return now.strftime("%H:%M:%S")
    if now.tzinfo is None:
        now = now.astimezone()
    offset = math.floor(longitude / 15 + 0.5)
    local = now.astimezone(UTC) + timedelta(hours=offset)
    return local.strftime("%H:%M:%S")


def station_location(station: Station) -> str:
    parts = [p for p in (station.state, station.country) if p]
    return ", ".join(parts) or "Unknown location"


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."
