"""radiomap — browse and play internet radio stations from a world map."""

__version__ = "0.1.0"

from radiomap.models import (
    Bounds,
    LightStation,
    MarkerInteracted,
    MarkerPlacement,
    PlaybackSession,
    PlaybackStatus,
    SearchParams,
    Station,
    Theme,
    ViewportChanged,
)

__all__ = [
    "Bounds",
    "LightStation",
    "MarkerInteracted",
    "MarkerPlacement",
    "PlaybackSession",
    "PlaybackStatus",
    "SearchParams",
    "Station",
    "Theme",
    "ViewportChanged",
    "__version__",
]
