"""Persistent favorites set, keyed by station id."""

from __future__ import annotations

import json
import logging

from radiomap.exceptions import ImportValidationError, PersistenceError
from radiomap.models import Station
from radiomap.storage import FAVORITES_KEY, KeyValueStore

logger = logging.getLogger(__name__)


def parse_favorites(blob: str) -> list[Station]:
    """Parse an exported favorites payload.

    All-or-nothing: raises ImportValidationError unless the payload is a
    JSON array whose every item is a valid station record.
    """
    try:
        data = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise ImportValidationError(f"Favorites payload is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ImportValidationError(
            f"Favorites payload must be an array, got {type(data).__name__}"
        )

    stations: list[Station] = []
    seen: set[str] = set()
    for position, item in enumerate(data):
        try:
            station = Station.from_api(item)
        except ValueError as e:
            raise ImportValidationError(f"Invalid record at position {position}: {e}") from e
        if station.id in seen:
            continue
        seen.add(station.id)
        stations.append(station)
    return stations


class FavoritesStore:
    """Favorite stations, saved to the key-value store after every change."""

    def __init__(self, storage: KeyValueStore, key: str = FAVORITES_KEY):
        self.storage = storage
        self.key = key
        self._favorites: dict[str, Station] = {}
        self._load()

    def _load(self) -> None:
        blob = self.storage.get(self.key)
        if not blob:
            return
        try:
            stations = parse_favorites(blob)
        except ImportValidationError as e:
            logger.error("Ignoring saved favorites: %s", e)
            return
        self._favorites = {s.id: s for s in stations}
        logger.debug("Loaded %d favorites", len(self._favorites))

    def _save(self) -> None:
        try:
            self.storage.set(self.key, self.export_all())
        except PersistenceError as e:
            logger.error("Could not save favorites: %s", e)

    def __len__(self) -> int:
        return len(self._favorites)

    def __contains__(self, station_id: object) -> bool:
        return station_id in self._favorites

    @property
    def favorites(self) -> list[Station]:
        return list(self._favorites.values())

    def get(self, station_id: str) -> Station | None:
        return self._favorites.get(station_id)

    def is_favorite(self, station_id: str) -> bool:
        return station_id in self._favorites

    def add(self, station: Station) -> bool:
        """Add a station. Returns False if it was already a favorite."""
        if station.id in self._favorites:
            return False
        self._favorites[station.id] = station
        self._save()
        logger.info("Added %s to favorites", station.name)
        return True

    def remove(self, station_id: str) -> bool:
        station = self._favorites.pop(station_id, None)
        if station is None:
            return False
        self._save()
        logger.info("Removed %s from favorites", station.name)
        return True

    def toggle(self, station: Station) -> bool:
        """Flip membership and return whether the station is now a favorite."""
        if station.id in self._favorites:
            self.remove(station.id)
            return False
        self.add(station)
        return True

    def export_all(self) -> str:
        return json.dumps(
            [s.to_api() for s in self._favorites.values()],
            indent=2,
            ensure_ascii=False,
        )

    def import_all(self, blob: str) -> int:
        """Replace all favorites with the payload. Returns the new count."""
        stations = parse_favorites(blob)
        self._favorites = {s.id: s for s in stations}
        self._save()
        logger.info("Imported %d favorites", len(self._favorites))
        return len(self._favorites)

    def clear_all(self) -> None:
        """Remove every favorite. Callers are expected to confirm first."""
        self._favorites = {}
        self._save()
        logger.info("Cleared favorites")
