"""Tests for the playback session controller."""

from __future__ import annotations

import asyncio
import dataclasses

import pytest

from radiomap.exceptions import (
    DirectoryUnavailable,
    NoStreamUrl,
    PlaybackBlocked,
    PlaybackFailed,
    PlaybackTimeout,
)
from radiomap.models import PlaybackStatus
from radiomap.player import PlaybackController, TransportEvent

pytestmark = pytest.mark.anyio


@pytest.fixture
def controller(transport, directory) -> PlaybackController:
    return PlaybackController(
        transport,
        register_click=directory.register_playback_click,
        load_timeout=0.2,
        retry_delay=0,
    )


async def _settle(seconds: float = 0.01) -> None:
    await asyncio.sleep(seconds)


class TestStart:
    async def test_uses_resolved_url_first(self, controller, transport, sample_station):
        session = controller.start(sample_station)

        assert session.status == PlaybackStatus.LOADING
        assert session.station_id == sample_station.id
        assert transport.opened == [sample_station.resolved_stream_url]

    async def test_falls_back_to_stream_url_when_unresolved(self, controller, transport, sample_station):
        station = dataclasses.replace(sample_station, resolved_stream_url="")

        session = controller.start(station)
        assert session.status == PlaybackStatus.LOADING
        assert session.attempted_urls == [station.stream_url]

    async def test_no_stream_url(self, controller, transport, sample_station):
        station = dataclasses.replace(sample_station, resolved_stream_url="", stream_url="")

        session = controller.start(station)
        assert session.status == PlaybackStatus.ERROR
        assert isinstance(session.error, NoStreamUrl)
        assert "No stream URL" in session.error_message
        assert transport.opened == []

    async def test_playing_registers_click_once(self, controller, transport, directory, sample_station):
        controller.start(sample_station)
        transport.fire(TransportEvent.PLAYING)
        controller.pause()
        controller.resume()
        transport.fire(TransportEvent.PLAYING)
        await _settle()

        assert controller.status == PlaybackStatus.PLAYING
        assert directory.clicks == [sample_station.id]

    async def test_click_failure_is_swallowed(self, controller, transport, directory, sample_station):
        directory.click_error = DirectoryUnavailable("down")

        controller.start(sample_station)
        transport.fire(TransportEvent.PLAYING)
        await controller.aclose()

        assert directory.clicks == []

    async def test_playing_cancels_timeout(self, controller, transport, sample_station):
        controller.start(sample_station)
        transport.fire(TransportEvent.PLAYING)
        await _settle(0.08)

        assert controller.status == PlaybackStatus.PLAYING


class TestRetry:
    async def test_error_retries_fallback_then_gives_up(self, controller, transport, sample_station):
        controller.start(sample_station)
        transport.fire(TransportEvent.ERROR, "decode error")
        assert controller.status == PlaybackStatus.ERROR

        await _settle()
        assert controller.status == PlaybackStatus.LOADING
        assert transport.opened == [sample_station.resolved_stream_url, sample_station.stream_url]

        transport.fire(TransportEvent.ERROR, "decode error")
        await _settle()

        session = controller.session
        assert session.status == PlaybackStatus.ERROR
        assert session.retry_count == 1
        assert session.attempted_urls == [sample_station.resolved_stream_url, sample_station.stream_url]
        assert isinstance(session.error, PlaybackFailed)
        assert len(transport.opened) == 2

    async def test_no_retry_when_fallback_is_the_same_url(self, controller, transport, sample_station):
        station = dataclasses.replace(sample_station, resolved_stream_url=sample_station.stream_url)

        controller.start(station)
        transport.fire(TransportEvent.ERROR)
        await _settle()

        assert controller.status == PlaybackStatus.ERROR
        assert controller.session.retry_count == 0
        assert len(transport.opened) == 1

    async def test_timeout_then_retry_then_timeout(self, transport, sample_station):
        controller = PlaybackController(transport, load_timeout=0.1, retry_delay=0)
        controller.start(sample_station)
        await _settle(0.15)
        assert controller.session.attempted_urls == [
            sample_station.resolved_stream_url, sample_station.stream_url,
        ]

        await _settle(0.15)
        session = controller.session
        assert session.status == PlaybackStatus.ERROR
        assert isinstance(session.error, PlaybackTimeout)
        assert "Timed out" in session.error_message
        assert session.retry_count == 1

    async def test_fallback_succeeds(self, controller, transport, sample_station):
        controller.start(sample_station)
        transport.fire(TransportEvent.ERROR)
        await _settle()
        transport.fire(TransportEvent.PLAYING)

        session = controller.session
        assert session.status == PlaybackStatus.PLAYING
        assert session.error is None
        assert session.error_message == ""

    async def test_late_event_from_first_attempt_is_ignored(self, controller, transport, sample_station):
        controller.start(sample_station)
        transport.fire(TransportEvent.ERROR)
        await _settle()

        # first attempt's listener fires again after the retry started
        transport.fire(TransportEvent.PLAYING, attempt=0)
        assert controller.status == PlaybackStatus.LOADING

    async def test_blocked_is_not_retried(self, controller, transport, sample_station):
        controller.start(sample_station)
        transport.fire(TransportEvent.BLOCKED)
        await _settle(0.08)

        session = controller.session
        assert session.status == PlaybackStatus.ERROR
        assert session.is_blocked
        assert isinstance(session.error, PlaybackBlocked)
        assert session.retry_count == 0
        assert len(transport.opened) == 1

    async def test_manual_retry_after_error(self, controller, transport, sample_station):
        controller.start(sample_station)
        transport.fire(TransportEvent.BLOCKED)

        controller.toggle()
        session = controller.session
        assert session.status == PlaybackStatus.LOADING
        assert session.retry_count == 0
        assert session.attempted_urls == [sample_station.resolved_stream_url]


class TestSupersede:
    async def test_new_station_ignores_old_callbacks(self, controller, transport, sample_station, other_station):
        controller.start(sample_station)
        controller.start(other_station)

        transport.fire(TransportEvent.ERROR, attempt=0)
        transport.fire(TransportEvent.PLAYING, attempt=0)
        await _settle(0.03)

        session = controller.session
        assert session.station_id == other_station.id
        assert session.status == PlaybackStatus.LOADING
        assert session.attempted_urls == [other_station.resolved_stream_url]
        assert transport.closed >= 1

    async def test_old_timeout_does_not_fire_on_new_session(self, transport, sample_station, other_station):
        controller = PlaybackController(transport, load_timeout=0.1, retry_delay=0)
        controller.start(sample_station)
        await _settle(0.05)
        controller.start(other_station)
        await _settle(0.07)

        assert controller.status == PlaybackStatus.LOADING

    async def test_pending_retry_is_cancelled(self, transport, sample_station, other_station):
        controller = PlaybackController(transport, load_timeout=1, retry_delay=0.02)
        controller.start(sample_station)
        transport.fire(TransportEvent.ERROR)
        controller.start(other_station)
        await _settle(0.05)

        assert transport.opened == [sample_station.resolved_stream_url, other_station.resolved_stream_url]

    async def test_generation_increments(self, controller, sample_station, other_station):
        controller.start(sample_station)
        first = controller.generation
        controller.start(other_station)
        assert controller.generation == first + 1
        assert controller.session.generation == controller.generation


class TestControls:
    async def test_pause_and_resume(self, controller, transport, sample_station):
        controller.start(sample_station)
        transport.fire(TransportEvent.PLAYING)

        controller.toggle()
        assert controller.status == PlaybackStatus.PAUSED
        assert transport.paused == 1

        controller.toggle()
        assert controller.status == PlaybackStatus.PLAYING
        assert transport.resumed == 1

    async def test_pause_ignored_while_loading(self, controller, transport, sample_station):
        controller.start(sample_station)
        controller.pause()
        assert controller.status == PlaybackStatus.LOADING
        assert transport.paused == 0

    async def test_external_pause(self, controller, transport, sample_station):
        controller.start(sample_station)
        transport.fire(TransportEvent.PLAYING)
        transport.fire(TransportEvent.PAUSED)
        assert controller.status == PlaybackStatus.PAUSED

    async def test_stop_tears_down(self, controller, transport, sample_station):
        controller.start(sample_station)
        controller.stop()

        assert controller.status == PlaybackStatus.IDLE
        assert controller.station is None
        assert transport.closed == 1

        transport.fire(TransportEvent.PLAYING)
        await _settle(0.08)
        assert controller.status == PlaybackStatus.IDLE

    async def test_subscribers_see_transitions(self, controller, transport, sample_station):
        seen: list[PlaybackStatus] = []
        unsubscribe = controller.subscribe(lambda s: seen.append(s.status))

        controller.start(sample_station)
        transport.fire(TransportEvent.ERROR)
        await _settle()
        transport.fire(TransportEvent.PLAYING)
        unsubscribe()
        controller.stop()

        assert seen == [
            PlaybackStatus.LOADING,
            PlaybackStatus.ERROR,
            PlaybackStatus.LOADING,
            PlaybackStatus.PLAYING,
        ]

    async def test_transport_open_failure_becomes_error(self, sample_station):
        class Broken:
            def open(self, url, listener):
                raise OSError("no audio device")

            def pause(self):
                pass

            def resume(self):
                pass

            def close(self):
                pass

        controller = PlaybackController(Broken(), load_timeout=0.05, retry_delay=0)
        station = dataclasses.replace(sample_station, resolved_stream_url="")
        session = controller.start(station)

        assert session.status == PlaybackStatus.ERROR
        assert isinstance(session.error, PlaybackFailed)
