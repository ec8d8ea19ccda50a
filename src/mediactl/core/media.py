from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from .events import EventBus, EventCallback


LOADEDMETADATA = "loadedmetadata"
TIMEUPDATE = "timeupdate"
PLAY = "play"
PLAYING = "playing"
PAUSE = "pause"
ABORT = "abort"
ERROR = "error"
EMPTIED = "emptied"
ENDED = "ended"
VOLUMECHANGE = "volumechange"

MEDIA_EVENTS = (
    LOADEDMETADATA,
    TIMEUPDATE,
    PLAY,
    PLAYING,
    PAUSE,
    ABORT,
    ERROR,
    EMPTIED,
    ENDED,
)


@dataclass(frozen=True)
class MediaError:
    """Playback failure reported by a primitive, using the HTML media error codes."""

    code: int
    message: str = ""

    MEDIA_ERR_ABORTED = 1
    MEDIA_ERR_NETWORK = 2
    MEDIA_ERR_DECODE = 3
    MEDIA_ERR_SRC_NOT_SUPPORTED = 4


class MediaPrimitive(Protocol):
    """Capabilities the playback controller expects from a wrapped player."""

    current_time: float
    volume: float
    muted: bool
    playback_rate: float

    @property
    def duration(self) -> float: ...

    @property
    def default_playback_rate(self) -> float: ...

    @property
    def src(self) -> str: ...

    @property
    def error(self) -> Optional[MediaError]: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def unpause(self) -> None: ...

    def add_event_listener(self, event_name: str, callback: EventCallback) -> None: ...

    def remove_event_listener(self, event_name: str, callback: EventCallback) -> None: ...


class MediaElement(Protocol):
    """The visual element hosting the media (poster image and loop attribute)."""

    poster: Optional[str]

    def set_attribute(self, name: str, value: str) -> None: ...

    def remove_attribute(self, name: str) -> None: ...


def is_media_element(candidate: Any) -> bool:
    return all(
        hasattr(candidate, attribute)
        for attribute in ("poster", "set_attribute", "remove_attribute")
    )


def is_valid_time(value: Any) -> bool:
    """True for real numbers that are not NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


class SimulatedMedia:
    """Headless primitive that plays back a virtual clock.

    Used when no multimedia backend is available and in tests. Events are
    fired synchronously in the order an HTML media element fires them.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("mediactl.SimulatedMedia")
        self._events = EventBus(self._logger)
        self._attributes: Dict[str, str] = {}
        self._src = ""
        self._duration = math.nan
        self._current_time = 0.0
        self._volume = 1.0
        self._error: Optional[MediaError] = None
        self.muted = False
        self.playback_rate = 1.0
        self.default_playback_rate = 1.0
        self.paused = True
        self.poster: Optional[str] = None

    # Event target

    def add_event_listener(self, event_name: str, callback: EventCallback) -> None:
        self._events.subscribe(event_name, callback)

    def remove_event_listener(self, event_name: str, callback: EventCallback) -> None:
        self._events.unsubscribe(event_name, callback)

    def listener_count(self, event_name: Optional[str] = None) -> int:
        return self._events.subscriber_count(event_name)

    def _fire(self, event_name: str) -> None:
        self._logger.debug("%s: %s", self._src or "<no source>", event_name)
        self._events.emit(event_name, {"target": self})

    # Element attributes

    def set_attribute(self, name: str, value: str) -> None:
        self._attributes[name] = value

    def remove_attribute(self, name: str) -> None:
        self._attributes.pop(name, None)

    def get_attribute(self, name: str) -> Optional[str]:
        return self._attributes.get(name)

    @property
    def loop(self) -> bool:
        return "loop" in self._attributes

    # Media state

    @property
    def src(self) -> str:
        return self._src

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def error(self) -> Optional[MediaError]:
        return self._error

    @property
    def current_time(self) -> float:
        return self._current_time

    @current_time.setter
    def current_time(self, value: float) -> None:
        if not is_valid_time(value):
            raise ValueError(f"Invalid playback position: {value!r}")
        upper = self._duration if is_valid_time(self._duration) else 0.0
        self._current_time = min(max(float(value), 0.0), upper)
        self._fire(TIMEUPDATE)

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"Volume {value!r} outside of [0, 1]")
        if value != self._volume:
            self._volume = value
            self._fire(VOLUMECHANGE)

    # Commands

    def load(self, src: str, duration: float = math.nan) -> None:
        """Replace the source and report its metadata when *duration* is known."""
        if self._src:
            self.paused = True
            self._src = ""
            self._duration = math.nan
            self._current_time = 0.0
            self._fire(EMPTIED)
        self._src = src
        self._duration = duration
        self._current_time = 0.0
        self._error = None
        if is_valid_time(duration):
            self._fire(LOADEDMETADATA)

    def play(self) -> None:
        if is_valid_time(self._duration) and self._current_time >= self._duration:
            self._current_time = 0.0
        if self.paused:
            self.paused = False
            self._fire(PLAY)
        self._fire(PLAYING)

    def unpause(self) -> None:
        self.play()

    def pause(self) -> None:
        if not self.paused:
            self.paused = True
            self._fire(PAUSE)

    def advance(self, seconds: float) -> None:
        """Move the virtual clock forward by *seconds* of wall time."""
        if self.paused or not is_valid_time(self._duration):
            return
        position = self._current_time + seconds * self.playback_rate
        if position >= self._duration:
            if self.loop:
                self._current_time = 0.0
                self._fire(TIMEUPDATE)
                return
            self._current_time = self._duration
            self._fire(TIMEUPDATE)
            self.paused = True
            self._fire(PAUSE)
            self._fire(ENDED)
            return
        self._current_time = max(position, 0.0)
        self._fire(TIMEUPDATE)

    def fail(self, code: int, message: str = "") -> None:
        self._error = MediaError(code, message)
        self._fire(ERROR)

    def abort(self) -> None:
        self._error = MediaError(MediaError.MEDIA_ERR_ABORTED)
        self._fire(ABORT)

    def empty(self) -> None:
        """Drop the current source."""
        self.paused = True
        self._src = ""
        self._duration = math.nan
        self._current_time = 0.0
        self._fire(EMPTIED)
