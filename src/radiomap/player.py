"""Playback session controller: load, retry, fallback and timeout handling."""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Protocol

from radiomap.exceptions import (
    NoStreamUrl,
    PlaybackBlocked,
    PlaybackError,
    PlaybackFailed,
    PlaybackTimeout,
    RadioMapError,
)
from radiomap.models import PlaybackSession, PlaybackStatus, Station

logger = logging.getLogger(__name__)

LOAD_TIMEOUT = 10.0
RETRY_DELAY = 1.5
MAX_RETRIES = 1


class TransportEvent(StrEnum):
    """What an audio transport can report back."""

    PLAYING = "playing"
    PAUSED = "paused"
    ERROR = "error"
    BLOCKED = "blocked"


TransportListener = Callable[[TransportEvent, str], None]
SessionListener = Callable[[PlaybackSession], None]
ClickRegistrar = Callable[[str], Awaitable[None]]


class AudioTransport(Protocol):
    """The audio output a controller drives.

    ``open`` starts loading and playing ``url``; progress is reported by
    calling ``listener(event, detail)``, possibly much later.
    """

    def open(self, url: str, listener: TransportListener) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def close(self) -> None: ...


class PlaybackController:
    """Owns the single live playback session.

    Every ``start`` bumps a generation counter. Transport events, the load
    timeout and the retry timer all carry the generation they were
    registered under and are dropped if it is no longer current, so a
    superseded session cannot touch the state of the new one.

    Must be driven from inside a running asyncio event loop. Failures end up
    on the session as ``status=ERROR`` with a message; nothing is raised.
    """

    def __init__(
        self,
        transport: AudioTransport,
        register_click: ClickRegistrar | None = None,
        load_timeout: float = LOAD_TIMEOUT,
        retry_delay: float = RETRY_DELAY,
        max_retries: int = MAX_RETRIES,
    ):
        self.transport = transport
        self.register_click = register_click
        self.load_timeout = load_timeout
        self.retry_delay = retry_delay
        self.max_retries = max_retries

        self._session = PlaybackSession()
        self._station: Station | None = None
        self._generation = 0
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._retry_handle: asyncio.TimerHandle | None = None
        self._transport_open = False
        self._clicked = False
        self._listeners: list[SessionListener] = []
        self._pending_clicks: set[asyncio.Task] = set()

    @property
    def session(self) -> PlaybackSession:
        """A snapshot of the current session."""
        return dataclasses.replace(
            self._session, attempted_urls=list(self._session.attempted_urls),
        )

    @property
    def status(self) -> PlaybackStatus:
        return self._session.status

    @property
    def station(self) -> Station | None:
        return self._station

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, callback: SessionListener) -> Callable[[], None]:
        """Call ``callback`` with a session snapshot after every change."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.session
        for listener in list(self._listeners):
            listener(snapshot)

    def _set_status(self, status: PlaybackStatus) -> None:
        self._session.status = status
        self._notify()

    def _set_error(self, error: PlaybackError) -> None:
        self._session.error = error
        self._session.error_message = str(error)
        self._set_status(PlaybackStatus.ERROR)

    # -- session lifecycle -------------------------------------------------

    def start(self, station: Station) -> PlaybackSession:
        """Supersede any current session and start playing ``station``."""
        self._teardown()
        self._generation += 1
        self._station = station
        self._clicked = False
        self._session = PlaybackSession(station_id=station.id, generation=self._generation)
        logger.info("Starting playback of %s (session %d)", station.name, self._generation)

        url = station.resolved_stream_url or station.stream_url
        if not url:
            self._set_error(NoStreamUrl())
            return self.session

        self._attempt(url)
        return self.session

    def stop(self) -> None:
        """Tear down the transport and timers and go back to idle."""
        self._teardown()
        self._generation += 1
        self._station = None
        self._session = PlaybackSession(generation=self._generation)
        self._notify()

    def retry(self) -> PlaybackSession | None:
        """Start over with the current station, as a fresh session."""
        if self._station is None:
            return None
        return self.start(self._station)

    def pause(self) -> None:
        if self._session.status is not PlaybackStatus.PLAYING:
            return
        self.transport.pause()
        self._set_status(PlaybackStatus.PAUSED)

    def resume(self) -> None:
        if self._session.status is not PlaybackStatus.PAUSED:
            return
        self.transport.resume()
        self._set_status(PlaybackStatus.PLAYING)

    def toggle(self) -> None:
        """The play/pause button: also the manual retry after an error."""
        status = self._session.status
        if status is PlaybackStatus.PLAYING:
            self.pause()
        elif status is PlaybackStatus.PAUSED:
            self.resume()
        elif status in (PlaybackStatus.ERROR, PlaybackStatus.IDLE):
            self.retry()

    async def aclose(self) -> None:
        """Stop and wait for outstanding click registrations."""
        self.stop()
        if self._pending_clicks:
            await asyncio.gather(*self._pending_clicks, return_exceptions=True)

    # -- internals ---------------------------------------------------------

    def _attempt(self, url: str) -> None:
        generation = self._generation
        self._close_transport()
        self._session.attempted_urls.append(url)
        self._session.error = None
        self._session.error_message = ""
        self._set_status(PlaybackStatus.LOADING)

        loop = asyncio.get_running_loop()
        self._timeout_handle = loop.call_later(self.load_timeout, self._on_timeout, generation)

        # events from a transport opened for an earlier attempt are dropped
        attempt = len(self._session.attempted_urls)
        logger.debug("Opening %s (attempt %d)", url, attempt)
        self._transport_open = True
        try:
            self.transport.open(url, functools.partial(self._on_event, generation, attempt))
        except (OSError, RuntimeError, ValueError) as e:
            logger.warning("Transport could not open %s: %s", url, e)
            if generation == self._generation:
                self._on_failure(PlaybackFailed())

    def _on_event(
        self, generation: int, attempt: int, event: TransportEvent, detail: str = "",
    ) -> None:
        if generation != self._generation:
            logger.debug("Ignoring %s from superseded session %d", event, generation)
            return
        if attempt != len(self._session.attempted_urls):
            logger.debug("Ignoring %s from abandoned attempt %d", event, attempt)
            return

        event = TransportEvent(event)
        status = self._session.status
        if event == TransportEvent.PLAYING:
            if status in (PlaybackStatus.LOADING, PlaybackStatus.PAUSED):
                self._cancel_timeout()
                self._set_status(PlaybackStatus.PLAYING)
                self._on_first_play()
        elif event == TransportEvent.PAUSED:
            if status is PlaybackStatus.PLAYING:
                self._set_status(PlaybackStatus.PAUSED)
        elif event == TransportEvent.BLOCKED:
            if status in (PlaybackStatus.LOADING, PlaybackStatus.PLAYING):
                # needs a user gesture, not a retry
                self._cancel_timeout()
                self._close_transport()
                self._set_error(PlaybackBlocked())
        elif event == TransportEvent.ERROR:
            if status in (PlaybackStatus.LOADING, PlaybackStatus.PLAYING):
                logger.warning("Stream error on %s: %s", self._session.attempted_urls[-1], detail)
                self._on_failure(PlaybackFailed())

    def _on_timeout(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._timeout_handle = None
        if self._session.status is PlaybackStatus.LOADING:
            logger.warning("Timed out loading %s", self._session.attempted_urls[-1])
            self._on_failure(PlaybackTimeout())

    def _on_failure(self, error: PlaybackError) -> None:
        self._cancel_timeout()
        self._close_transport()
        self._set_error(error)

        attempted = self._session.attempted_urls[-1] if self._session.attempted_urls else ""
        fallback = self._station.stream_url if self._station else ""
        if self._session.retry_count < self.max_retries and fallback and fallback != attempted:
            self._session.retry_count += 1
            logger.info("Retrying with fallback URL %s in %.1fs", fallback, self.retry_delay)
            loop = asyncio.get_running_loop()
            self._retry_handle = loop.call_later(
                self.retry_delay, self._on_retry, self._generation, fallback,
            )
        else:
            logger.info("Giving up on %s: %s", self._session.station_id, error)

    def _on_retry(self, generation: int, url: str) -> None:
        if generation != self._generation:
            return
        self._retry_handle = None
        if self._session.status is PlaybackStatus.ERROR:
            self._attempt(url)

    def _on_first_play(self) -> None:
        if self._clicked or self.register_click is None or self._station is None:
            return
        self._clicked = True
        task = asyncio.ensure_future(self._send_click(self._station.id))
        self._pending_clicks.add(task)
        task.add_done_callback(self._pending_clicks.discard)

    async def _send_click(self, station_id: str) -> None:
        try:
            await self.register_click(station_id)
        except RadioMapError as e:
            logger.debug("Click registration for %s failed: %s", station_id, e)

    def _cancel_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _teardown(self) -> None:
        self._cancel_timeout()
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
        self._close_transport()

    def _close_transport(self) -> None:
        if self._transport_open:
            self._transport_open = False
            self.transport.close()
