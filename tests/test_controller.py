"""Tests for PlaybackController state handling."""
from __future__ import annotations

import logging
import math
import random
from unittest.mock import MagicMock

import pytest

from mediactl.core.controller import (
    STATE_CHANGE,
    PlaybackController,
    Status,
)
from mediactl.core.media import MEDIA_EVENTS, MediaError, SimulatedMedia


LOGGER_NAME = "test.controller"


@pytest.fixture
def media() -> SimulatedMedia:
    return SimulatedMedia()


@pytest.fixture
def controller(media: SimulatedMedia) -> PlaybackController:
    return PlaybackController(media, logger=logging.getLogger(LOGGER_NAME))


def _record(controller: PlaybackController) -> list:
    changes: list = []
    controller.add_event_listener(STATE_CHANGE, lambda name, data: changes.append(controller.status))
    return changes


def _start(controller: PlaybackController, media: SimulatedMedia, duration: float = 120.0) -> None:
    media.load("clip.mp4", duration)
    controller.play()
    assert controller.status == Status.PLAYING


class TestInitialState:
    def test_defaults(self) -> None:
        controller = PlaybackController()

        assert controller.status == Status.EMPTY
        assert controller.position is None
        assert controller.duration is None
        assert controller.playback_rate == 1.0
        assert controller.repeat is False
        assert controller.autoplay is False
        assert controller.media is None

    def test_commands_require_media(self) -> None:
        controller = PlaybackController()

        with pytest.raises(RuntimeError, match="No media attached"):
            controller.play()
        with pytest.raises(RuntimeError):
            controller.volume = 10

    def test_initial_volume_applied_on_attach(self, media: SimulatedMedia) -> None:
        controller = PlaybackController(volume=30)
        controller.media = media

        assert media.volume == pytest.approx(0.3)
        assert controller.volume == pytest.approx(30)


class TestMetadata:
    def test_loadedmetadata_without_autoplay_stops(self, controller, media) -> None:
        changes = _record(controller)

        media.load("clip.mp4", 120.0)

        assert controller.status == Status.STOPPED
        assert controller.duration == 120.0
        assert changes == [Status.STOPPED]
        assert media.paused is True

    def test_loadedmetadata_with_autoplay_plays(self, media) -> None:
        controller = PlaybackController(media, autoplay=True)

        media.load("clip.mp4", 120.0)

        assert controller.status == Status.PLAYING
        assert controller.duration == 120.0
        assert media.paused is False

    def test_loadedmetadata_with_invalid_duration_is_ignored(self, controller, media) -> None:
        media.load("stream.m3u8")
        controller.handle_loadedmetadata("loadedmetadata", {})

        assert controller.status == Status.EMPTY
        assert controller.duration is None

    def test_duration_rejects_nan(self, controller) -> None:
        controller.duration = 120.0
        controller.duration = math.nan
        controller.duration = "long"

        assert controller.duration == 120.0


class TestStateMachine:
    def test_play_and_pause_events(self, controller, media) -> None:
        changes = _record(controller)
        _start(controller, media)

        controller.pause()
        assert controller.status == Status.PAUSED

        controller.unpause()
        assert controller.status == Status.PLAYING
        # play and playing each request PLAYING but only one change is published
        assert changes == [Status.STOPPED, Status.PLAYING, Status.PAUSED, Status.PLAYING]

    def test_pause_while_stopped_is_ignored(self, controller, media) -> None:
        _start(controller, media)
        controller.status = Status.STOPPED

        media.pause()

        assert controller.status == Status.STOPPED

    def test_ended_stops_and_pauses_primitive(self, controller, media) -> None:
        _start(controller, media, duration=10.0)

        media.advance(15.0)

        assert controller.status == Status.STOPPED
        assert media.paused is True

        controller.play()
        assert controller.status == Status.PLAYING

    def test_ended_pauses_primitive_that_keeps_running(self, controller, media) -> None:
        _start(controller, media)
        assert media.paused is False

        controller.handle_ended("ended", {})

        assert media.paused is True
        assert controller.status == Status.STOPPED

    @pytest.mark.parametrize("trigger", ["abort", "empty"])
    def test_abort_and_emptied_stop(self, controller, media, trigger) -> None:
        _start(controller, media)

        getattr(media, trigger)()

        assert controller.status == Status.STOPPED

    def test_random_sequences_stay_consistent(self, controller, media) -> None:
        media.load("clip.mp4", 30.0)
        rng = random.Random(1234)
        operations = [
            controller.play,
            controller.pause,
            controller.unpause,
            controller.stop,
            media.play,
            lambda: media.advance(rng.uniform(0.0, 12.0)),
        ]

        for _ in range(500):
            if rng.random() < 0.2:
                before = controller.status
                fires = not media.paused
                media.pause()
                if fires:
                    expected = Status.STOPPED if before == Status.STOPPED else Status.PAUSED
                    assert controller.status == expected
            else:
                rng.choice(operations)()
            assert controller.status in set(Status)


class TestCommands:
    @pytest.mark.parametrize("status", list(Status))
    def test_stop_always_resets(self, controller, media, status) -> None:
        media.load("clip.mp4", 60.0)
        if status == Status.PLAYING:
            controller.play()
            media.advance(12.0)
        else:
            controller.status = status

        controller.stop()

        assert controller.status == Status.STOPPED
        assert controller.position == 0
        assert media.current_time == 0
        assert media.paused is True

    def test_reset_only_stops_when_needed(self, controller, media) -> None:
        media.load("clip.mp4", 60.0)
        changes = _record(controller)

        controller.reset()
        assert changes == []

        controller.status = Status.PAUSED
        controller.reset()
        assert controller.status == Status.STOPPED
        assert changes == [Status.PAUSED, Status.STOPPED]

    def test_play_restarts_from_zero(self, controller, media) -> None:
        media.load("clip.mp4", 60.0)
        media.current_time = 42.0

        controller.play()

        assert media.current_time == 0.0

    def test_play_pause_return_value(self, controller, media) -> None:
        media.load("clip.mp4", 60.0)

        assert controller.play_pause() is True
        assert controller.status == Status.PLAYING

        assert controller.play_pause() is False
        assert controller.status == Status.PAUSED

    def test_play_pause_resets_rate(self, controller, media) -> None:
        _start(controller, media)
        controller.fast_forward()
        assert media.playback_rate == 4.0

        controller.play_pause()

        assert controller.playback_rate == media.default_playback_rate
        assert media.playback_rate == 1.0

    def test_rewind_and_fast_forward_while_playing(self, controller, media) -> None:
        _start(controller, media)

        controller.rewind()
        assert controller.playback_rate == -4.0
        assert media.playback_rate == -4.0

        controller.fast_forward()
        assert controller.playback_rate == 4.0

    @pytest.mark.parametrize("status", [Status.PAUSED, Status.STOPPED, Status.EMPTY])
    def test_rewind_and_fast_forward_ignored_unless_playing(self, controller, media, status) -> None:
        controller.status = status

        controller.rewind()
        controller.fast_forward()

        assert controller.playback_rate == 1.0
        assert media.playback_rate == 1.0

    def test_playback_rate_only_forwarded_on_change(self, controller, media) -> None:
        media.playback_rate = 3.0

        controller.playback_rate = 1.0
        assert media.playback_rate == 3.0

        controller.playback_rate = 2.0
        assert media.playback_rate == 2.0

    def test_commands_leave_status_to_primitive_events(self) -> None:
        media = MagicMock()
        media.duration = 120.0
        media.default_playback_rate = 1.0
        controller = PlaybackController(media)
        controller.status = Status.STOPPED

        controller.play()
        assert controller.status == Status.STOPPED
        media.play.assert_called_once()

        controller.status = Status.PLAYING
        controller.pause()
        assert controller.status == Status.PLAYING
        media.pause.assert_called_once()

        assert controller.play_pause() is False
        assert controller.status == Status.PLAYING
        assert media.pause.call_count == 2

        controller.status = Status.PAUSED
        assert controller.play_pause() is True
        assert controller.status == Status.PAUSED
        assert media.play.call_count == 2

    def test_stop_pauses_silent_primitive(self) -> None:
        media = MagicMock()
        media.duration = 120.0
        controller = PlaybackController(media)
        controller.status = Status.PLAYING

        controller.stop()

        media.pause.assert_called_once()
        assert controller.status == Status.STOPPED
        assert controller.position == 0
        assert media.current_time == 0


class TestPosition:
    def test_timeupdate_refreshes_position(self, controller, media) -> None:
        _start(controller, media)

        media.advance(10.0)

        assert controller.position == 10.0

    def test_timeupdate_ignored_while_stopped(self, controller, media) -> None:
        _start(controller, media)
        media.advance(10.0)
        controller.status = Status.STOPPED

        media.advance(5.0)

        assert controller.position == 10.0

    def test_suppressed_write_does_not_seek(self, controller, media) -> None:
        media.load("clip.mp4", 120.0)

        controller.set_position(30.0, forward=False)
        assert controller.position == 30.0
        assert media.current_time == 0.0

        controller.position = 45.0
        assert media.current_time == 45.0

    def test_seek_rejected_without_duration(self, controller, media, caplog) -> None:
        media.load("stream.m3u8")

        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            controller.position = 5.0

        assert controller.position == 5.0
        assert media.current_time == 0.0
        assert "duration is not valid" in caplog.text

    def test_seek_exception_is_logged(self, controller, media, caplog) -> None:
        media.load("clip.mp4", 120.0)

        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            controller.current_time = math.nan

        assert "Exception in set current_time" in caplog.text
        assert media.current_time == 0.0

    def test_timeupdate_threshold(self, media) -> None:
        controller = PlaybackController(media, timeupdate_threshold=0.25)
        _start(controller, media)

        media.advance(0.1)
        assert controller.position is None

        media.advance(0.2)
        assert controller.position == pytest.approx(0.3)


class TestVolumeAndFlags:
    @pytest.mark.parametrize(
        "value, expected",
        [(150, 100), (-5, 0), (None, 50), (75, 75)],
    )
    def test_volume_clamping(self, controller, media, value, expected) -> None:
        changes = _record(controller)

        controller.volume = value

        assert controller.volume == pytest.approx(expected)
        assert media.volume == pytest.approx(expected / 100)
        assert len(changes) == 1

    def test_volume_steps(self, controller, media) -> None:
        controller.volume = 95
        controller.volume_increase()
        assert controller.volume == pytest.approx(100)

        controller.volume = 5
        controller.volume_decrease()
        assert controller.volume == pytest.approx(0)

        controller.volume_increase()
        assert controller.volume == pytest.approx(10)

    def test_toggle_mute(self, controller, media) -> None:
        controller.toggle_mute()
        assert media.muted is True
        assert controller.mute is True

        controller.toggle_mute()
        assert media.muted is False

    def test_toggle_repeat_updates_loop_attribute(self, controller, media) -> None:
        changes = _record(controller)

        controller.toggle_repeat()
        assert controller.repeat is True
        assert media.loop is True

        controller.repeat = True
        controller.toggle_repeat()
        assert media.loop is False
        assert len(changes) == 2

    def test_repeat_uses_configured_element(self, media) -> None:
        element = MagicMock()
        controller = PlaybackController(media, element=element)

        controller.repeat = True
        controller.repeat = False

        element.set_attribute.assert_called_once_with("loop", "true")
        element.remove_attribute.assert_called_once_with("loop")
        assert media.loop is False

    def test_show_poster(self, media) -> None:
        controller = PlaybackController(media, poster_src="poster.png")

        controller.show_poster()
        assert media.poster == "poster.png"

        controller.poster_src = None
        controller.show_poster()
        assert media.poster is None


class TestErrors:
    @pytest.mark.parametrize(
        "code, message",
        [
            (MediaError.MEDIA_ERR_ABORTED, "You aborted the media playback."),
            (MediaError.MEDIA_ERR_NETWORK, "A network error caused the media download to fail part-way."),
            (MediaError.MEDIA_ERR_DECODE, "corruption problem"),
            (99, "An unknown error occurred."),
        ],
    )
    def test_error_categories(self, controller, media, caplog, code, message) -> None:
        _start(controller, media)

        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            media.fail(code)

        assert controller.status == Status.STOPPED
        assert message in caplog.text

    def test_unsupported_source_names_source(self, controller, media, caplog) -> None:
        media.load("http://example.com/missing.webm")

        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            media.fail(MediaError.MEDIA_ERR_SRC_NOT_SUPPORTED)

        assert "The media at http://example.com/missing.webm could not be loaded" in caplog.text

    def test_unsupported_without_source(self, controller, media, caplog) -> None:
        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            media.fail(MediaError.MEDIA_ERR_SRC_NOT_SUPPORTED)

        assert controller.status == Status.STOPPED
        assert "No media has been selected." in caplog.text

    def test_error_event_without_detail(self, controller, media) -> None:
        _start(controller, media)

        controller.handle_error("error", {})

        assert controller.status == Status.STOPPED


class TestBinding:
    def test_swapping_media_moves_subscriptions(self, controller, media) -> None:
        other = SimulatedMedia()

        controller.media = other
        controller.media = other

        assert media.listener_count() == 0
        assert other.listener_count() == len(MEDIA_EVENTS)
        assert len(controller.subscriptions) == len(MEDIA_EVENTS)

        media.load("old.mp4", 10.0)
        assert controller.status == Status.EMPTY

        other.load("new.mp4", 20.0)
        assert controller.status == Status.STOPPED
        assert controller.duration == 20.0

    def test_swapping_media_restarts_timeupdate_threshold(self, media) -> None:
        controller = PlaybackController(media, timeupdate_threshold=0.25)
        _start(controller, media)
        media.advance(0.4)
        assert controller.position == pytest.approx(0.4)

        other = SimulatedMedia()
        controller.media = other
        _start(controller, other, 60.0)
        other.advance(0.3)

        assert controller.position == pytest.approx(0.3)

    def test_same_media_is_noop(self, controller, media) -> None:
        controller.media = media

        assert media.listener_count() == len(MEDIA_EVENTS)

    def test_detach(self, controller, media) -> None:
        controller.media = None

        assert media.listener_count() == 0
        assert controller.subscriptions == []

    def test_state_listener_removal(self, controller, media) -> None:
        changes = []

        def listener(event_name, data):
            changes.append(event_name)

        controller.add_event_listener(STATE_CHANGE, listener)
        controller.status = Status.STOPPED
        controller.remove_event_listener(STATE_CHANGE, listener)
        controller.status = Status.PAUSED

        assert changes == [STATE_CHANGE]
