"""Selection coordinator: from a station id to a playing session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from radiomap.exceptions import DirectoryUnavailable, StationNotFound
from radiomap.favorites import FavoritesStore
from radiomap.models import Bounds, MarkerInteracted, Station, ViewportChanged
from radiomap.player import PlaybackController
from radiomap.store import StationStore

logger = logging.getLogger(__name__)


class SelectionPhase(StrEnum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"
    CLEARED = "cleared"


@dataclass(frozen=True)
class SelectionEvent:
    """Notification sent to URL sync, map centering and similar listeners."""

    phase: SelectionPhase
    station_id: str | None = None
    station: Station | None = None
    error: Exception | None = None


SelectionListener = Callable[[SelectionEvent], None]


class SelectionCoordinator:
    """Resolves selections and hands them to the playback controller.

    Each ``select`` call supersedes the previous one: if a newer selection
    was made while details were being fetched, the older result is dropped.
    """

    def __init__(
        self,
        store: StationStore,
        player: PlaybackController,
        favorites: FavoritesStore,
    ):
        self.store = store
        self.player = player
        self.favorites = favorites
        self.viewport: Bounds | None = None
        self._current: Station | None = None
        self._pending_id: str | None = None
        self._generation = 0
        self._listeners: list[SelectionListener] = []
        self._tasks: set[asyncio.Task] = set()

    @property
    def current(self) -> Station | None:
        return self._current

    @property
    def pending_id(self) -> str | None:
        return self._pending_id

    def subscribe(self, callback: SelectionListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: SelectionEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    async def select(self, station_id: str) -> Station | None:
        """Select a station and start playing it.

        Returns the station, or None if the selection failed or was
        superseded before its details arrived.
        """
        self._generation += 1
        generation = self._generation
        self._pending_id = station_id
        self._emit(SelectionEvent(SelectionPhase.PENDING, station_id))

        station = self.store.get_cached(station_id)
        if station is None:
            # the previous session must not time out or retry while we wait
            if self.player.station is not None:
                self.player.stop()
            try:
                station = await self.store.resolve_full(station_id)
            except (StationNotFound, DirectoryUnavailable) as e:
                if generation != self._generation:
                    return None
                logger.warning("Selection of %s failed: %s", station_id, e)
                self._pending_id = None
                self._current = None
                self.player.stop()
                self._emit(SelectionEvent(SelectionPhase.FAILED, station_id, error=e))
                return None
            if generation != self._generation:
                logger.debug("Discarding details for superseded selection %s", station_id)
                return None

        self._pending_id = None
        self._current = station
        self._emit(SelectionEvent(SelectionPhase.READY, station_id, station))
        self.player.start(station)
        return station

    async def select_random(self) -> Station | None:
        light = self.store.pick_random()
        if light is None:
            logger.info("No stations loaded, nothing to pick")
            return None
        return await self.select(light.id)

    def clear(self) -> None:
        """Drop the selection and stop playback."""
        self._generation += 1
        self._pending_id = None
        self._current = None
        self.player.stop()
        self._emit(SelectionEvent(SelectionPhase.CLEARED))

    def handle(self, message: MarkerInteracted | ViewportChanged) -> asyncio.Task | None:
        """Entry point for messages from the rendering layer.

        Marker interactions are scheduled, not awaited, so the caller is
        never blocked on the network.
        """
        if isinstance(message, MarkerInteracted):
            task = asyncio.ensure_future(self.select(message.station_id))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task
        if isinstance(message, ViewportChanged):
            # informational only; loading is not region-scoped
            self.viewport = message.bounds
            logger.debug("Viewport changed to %s (zoom %d)", message.bounds, message.zoom)
            return None
        raise TypeError(f"Unsupported message: {message!r}")

    def is_favorite(self) -> bool:
        return self._current is not None and self.favorites.is_favorite(self._current.id)

    def toggle_favorite(self) -> bool:
        """Toggle the current station in favorites. Returns new membership."""
        if self._current is None:
            return False
        return self.favorites.toggle(self._current)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.player.aclose()
