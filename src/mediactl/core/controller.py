"""Observable playback controller for audio/video widgets.

:class:`PlaybackController` wraps one media primitive at a time (anything
implementing :class:`~mediactl.core.media.MediaPrimitive`), forwards commands
to it and folds the events it fires into a small status state machine:

    EMPTY --loadedmetadata--> STOPPED --play/playing--> PLAYING
    PLAYING --pause--> PAUSED
    * --stop()/ended/abort/emptied/error--> STOPPED

Bound widgets listen for ``mediaStateChange`` and re-read the properties
they display.
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from .events import EventBus, EventCallback
from .media import (
    ABORT,
    EMPTIED,
    ENDED,
    ERROR,
    LOADEDMETADATA,
    PAUSE,
    PLAY,
    PLAYING,
    TIMEUPDATE,
    MediaElement,
    MediaError,
    MediaPrimitive,
    is_media_element,
    is_valid_time,
)


STATE_CHANGE = "mediaStateChange"

# Recommended minimum position delta between two timeupdate refreshes.
TIMEUPDATE_FREQUENCY = 0.25

DEFAULT_VOLUME = 50
SEEK_RATE = 4.0


class Status(IntEnum):
    STOPPED = 0
    PLAYING = 1
    PAUSED = 2
    EMPTY = 3


class PlaybackController:
    """Coordinate a media primitive with the widgets bound to it."""

    def __init__(
        self,
        media: Optional[MediaPrimitive] = None,
        *,
        element: Optional[MediaElement] = None,
        autoplay: bool = False,
        poster_src: Optional[str] = None,
        volume: Optional[float] = None,
        timeupdate_threshold: float = 0.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or logging.getLogger("mediactl.PlaybackController")
        self._events = EventBus(self._logger)
        self._media: Optional[MediaPrimitive] = None
        self._subscriptions: List[Tuple[str, EventCallback]] = []
        self._status = Status.EMPTY
        self._position: Optional[float] = None
        self._duration: Optional[float] = None
        self._playback_rate: float = 1.0
        self._repeat = False
        self._last_current_time = 0.0
        self.element = element
        self.autoplay = autoplay
        self.poster_src = poster_src
        self.initial_volume = volume
        self.timeupdate_threshold = timeupdate_threshold
        if media is not None:
            self.media = media

    # Observers

    def add_event_listener(self, event_name: str, callback: EventCallback) -> None:
        self._events.subscribe(event_name, callback)

    def remove_event_listener(self, event_name: str, callback: EventCallback) -> None:
        self._events.unsubscribe(event_name, callback)

    def _dispatch_state_change(self) -> None:
        self._events.emit(STATE_CHANGE, {})

    # Primitive binding

    @property
    def media(self) -> Optional[MediaPrimitive]:
        return self._media

    @media.setter
    def media(self, media: Optional[MediaPrimitive]) -> None:
        if media is self._media:
            return
        if self._media is not None:
            self._remove_control_event_handlers()
        self._media = media
        self._last_current_time = 0.0
        if media is None:
            return
        self._install_control_event_handlers()
        if self.initial_volume is not None:
            self.volume = self.initial_volume

    @property
    def subscriptions(self) -> List[Tuple[str, EventCallback]]:
        return list(self._subscriptions)

    def _require_media(self) -> MediaPrimitive:
        if self._media is None:
            raise RuntimeError("No media attached")
        return self._media

    def _install_control_event_handlers(self) -> None:
        media = self._require_media()
        handlers: Dict[str, EventCallback] = {
            LOADEDMETADATA: self.handle_loadedmetadata,
            TIMEUPDATE: self.handle_timeupdate,
            PLAY: self.handle_play,
            PLAYING: self.handle_playing,
            PAUSE: self.handle_pause,
            ABORT: self.handle_abort,
            ERROR: self.handle_error,
            EMPTIED: self.handle_emptied,
            ENDED: self.handle_ended,
        }
        for event_name, handler in handlers.items():
            media.add_event_listener(event_name, handler)
            self._subscriptions.append((event_name, handler))

    def _remove_control_event_handlers(self) -> None:
        media = self._require_media()
        for event_name, handler in self._subscriptions:
            media.remove_event_listener(event_name, handler)
        self._subscriptions.clear()

    def _resolve_element(self) -> Optional[MediaElement]:
        if self.element is not None:
            return self.element
        if self._media is not None and is_media_element(self._media):
            return self._media  # type: ignore[return-value]
        return None

    # Status & attributes

    @property
    def status(self) -> Status:
        return self._status

    @status.setter
    def status(self, status: Status) -> None:
        if status != self._status:
            self._logger.debug("status: %s", Status(status).name)
            self._status = Status(status)
            self._dispatch_state_change()

    @property
    def is_playing(self) -> bool:
        return self._status == Status.PLAYING

    @property
    def position(self) -> Optional[float]:
        return self._position

    @position.setter
    def position(self, time: float) -> None:
        self.set_position(time)

    def set_position(self, time: float, forward: bool = True) -> None:
        """Record *time* as the current position.

        With ``forward=False`` the primitive is not asked to seek; this is the
        path used when the primitive itself reported the time.
        """
        self._position = time
        if forward:
            self.current_time = time

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    @duration.setter
    def duration(self, time: float) -> None:
        if not is_valid_time(time):
            self._logger.debug("set duration: duration is not valid (%r)", time)
            return
        self._logger.debug("set duration: duration=%s", time)
        self._duration = time

    @property
    def playback_rate(self) -> float:
        return self._playback_rate

    @playback_rate.setter
    def playback_rate(self, playback_rate: float) -> None:
        if self._playback_rate != playback_rate:
            self._playback_rate = playback_rate
            self._require_media().playback_rate = playback_rate

    @property
    def current_time(self) -> float:
        return self._require_media().current_time

    @current_time.setter
    def current_time(self, current_time: float) -> None:
        media = self._media
        if media is None:
            self._logger.error("set current_time: no media attached")
            return
        try:
            if not is_valid_time(media.duration):
                self._logger.error("set current_time: duration is not valid")
                return
            self._logger.debug(
                "current time: %s, new time: %s", media.current_time, current_time
            )
            media.current_time = current_time
        except Exception:
            self._logger.exception("Exception in set current_time %s", current_time)

    @property
    def repeat(self) -> bool:
        return self._repeat

    @repeat.setter
    def repeat(self, repeat: bool) -> None:
        if repeat == self._repeat:
            return
        self._repeat = repeat
        element = self._resolve_element()
        if element is None:
            self._logger.debug("repeat=%s: no media element to update", repeat)
        elif repeat:
            element.set_attribute("loop", "true")
        else:
            element.remove_attribute("loop")
        self._dispatch_state_change()

    # Media commands

    def play(self) -> None:
        """Restart playback from the beginning.

        Status changes once the primitive fires ``play``/``playing``.
        """
        self._logger.debug("play()")
        media = self._require_media()
        media.current_time = 0
        media.play()

    def pause(self) -> None:
        self._logger.debug("pause()")
        self._require_media().pause()

    def unpause(self) -> None:
        self._logger.debug("unpause()")
        self._require_media().unpause()

    def play_pause(self) -> bool:
        """Toggle playback. Returns True if playback is now starting."""
        self._logger.debug("play_pause()")
        playing = self.is_playing
        self.playback_rate = self._require_media().default_playback_rate
        if playing:
            self.pause()
        else:
            self.play()
        return not playing

    def rewind(self) -> None:
        if self.is_playing:
            self._logger.debug("rewind")
            self.playback_rate = -SEEK_RATE

    def fast_forward(self) -> None:
        if self.is_playing:
            self._logger.debug("fast_forward")
            self.playback_rate = SEEK_RATE

    def stop(self) -> None:
        self._logger.debug("stop()")
        if self.is_playing:
            self._logger.debug("stop while PLAYING: will pause")
            self.pause()
        self.status = Status.STOPPED
        self._last_current_time = 0.0
        self.position = 0

    def reset(self) -> None:
        self._logger.debug("reset()")
        if self._status != Status.STOPPED:
            self.stop()

    def show_poster(self) -> None:
        element = self._resolve_element()
        if element is None:
            self._logger.warning("show_poster: no media element attached")
            return
        element.poster = self.poster_src or None

    def toggle_repeat(self) -> None:
        self.repeat = not self.repeat

    # Volume commands

    @property
    def volume(self) -> float:
        return self._require_media().volume * 100

    @volume.setter
    def volume(self, vol: Optional[float]) -> None:
        if vol is None:
            vol = DEFAULT_VOLUME
        elif vol > 100:
            vol = 100
        elif vol < 0:
            vol = 0
        self._require_media().volume = vol / 100.0
        self._dispatch_state_change()

    def volume_increase(self) -> None:
        self.volume += 10

    def volume_decrease(self) -> None:
        self.volume -= 10

    @property
    def mute(self) -> bool:
        return self._require_media().muted

    @mute.setter
    def mute(self, muted: bool) -> None:
        media = self._require_media()
        if muted != media.muted:
            media.muted = muted

    def toggle_mute(self) -> None:
        self.mute = not self.mute

    # Event handlers

    def handle_loadedmetadata(self, event_name: str, data: Dict[str, Any]) -> None:
        media = self._require_media()
        self._logger.debug(
            "loadedmetadata: PLAYING=%s duration=%s", self.is_playing, media.duration
        )
        if not is_valid_time(media.duration):
            self._logger.debug("loadedmetadata: duration is not valid")
            return
        self.duration = media.duration
        if self.autoplay:
            self._logger.debug("loadedmetadata: autoplay")
            self.play()
        else:
            self.status = Status.STOPPED

    def handle_timeupdate(self, event_name: str, data: Dict[str, Any]) -> None:
        # A last timeupdate follows stop(); applying it would restore the old position.
        if self._status == Status.STOPPED:
            return
        current_time = self._require_media().current_time
        if (
            self.timeupdate_threshold > 0
            and abs(self._last_current_time - current_time) < self.timeupdate_threshold
        ):
            return
        self._last_current_time = current_time
        self.set_position(current_time, forward=False)

    def handle_play(self, event_name: str, data: Dict[str, Any]) -> None:
        self._logger.debug("handle_play")
        self.status = Status.PLAYING

    def handle_playing(self, event_name: str, data: Dict[str, Any]) -> None:
        self._logger.debug("handle_playing: PLAYING")
        self.status = Status.PLAYING

    def handle_pause(self, event_name: str, data: Dict[str, Any]) -> None:
        if self._status != Status.STOPPED:
            self._logger.debug("handle_pause: PAUSED")
            self.status = Status.PAUSED
        else:
            self._logger.debug("handle_pause: STOPPED")

    def handle_ended(self, event_name: str, data: Dict[str, Any]) -> None:
        self._logger.debug("handle_ended")
        # The primitive must be paused or it will not fire play on the next start
        self._require_media().pause()
        self.status = Status.STOPPED

    def handle_abort(self, event_name: str, data: Dict[str, Any]) -> None:
        self._logger.debug("handle_abort: STOPPED")
        self.status = Status.STOPPED

    def handle_emptied(self, event_name: str, data: Dict[str, Any]) -> None:
        self._logger.debug("handle_emptied: STOPPED")
        self.status = Status.STOPPED

    def handle_error(self, event_name: str, data: Dict[str, Any]) -> None:
        self._logger.debug("handle_error: STOPPED")
        media = self._require_media()
        error = media.error
        self.status = Status.STOPPED
        if error is None:
            return
        if error.code == MediaError.MEDIA_ERR_ABORTED:
            self._logger.error("You aborted the media playback.")
        elif error.code == MediaError.MEDIA_ERR_NETWORK:
            self._logger.error("A network error caused the media download to fail part-way.")
        elif error.code == MediaError.MEDIA_ERR_DECODE:
            self._logger.error(
                "The media playback was aborted due to a corruption problem "
                "or because the media used features the player does not support."
            )
        elif error.code == MediaError.MEDIA_ERR_SRC_NOT_SUPPORTED:
            if media.src:
                self._logger.error(
                    "The media at %s could not be loaded, either because the server "
                    "or network failed or because the format is not supported.",
                    media.src,
                )
            else:
                self._logger.error("No media has been selected.")
        else:
            self._logger.error("An unknown error occurred.")
