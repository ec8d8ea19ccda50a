"""PySide6 bindings for the playback controller.

``QtMediaPrimitive`` turns the signals of a ``QMediaPlayer`` into the named
media events the controller subscribes to (times in seconds instead of
milliseconds), and ``QtStateBridge`` re-emits controller notifications as a
Qt signal so widgets can connect to them directly.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

from PySide6.QtCore import QObject, QUrl, Signal  # type: ignore[import-not-found]
from PySide6.QtMultimedia import QAudioOutput, QMediaPlayer  # type: ignore[import-not-found]

from .controller import STATE_CHANGE, PlaybackController
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
    MediaError,
)


INFINITE_LOOPS = -1
SINGLE_LOOP = 1

_UNKNOWN_DURATION_STATUSES = (
    QMediaPlayer.MediaStatus.NoMedia,
    QMediaPlayer.MediaStatus.LoadingMedia,
    QMediaPlayer.MediaStatus.InvalidMedia,
)

_ERROR_CODES = {
    QMediaPlayer.Error.ResourceError: MediaError.MEDIA_ERR_SRC_NOT_SUPPORTED,
    QMediaPlayer.Error.FormatError: MediaError.MEDIA_ERR_DECODE,
    QMediaPlayer.Error.NetworkError: MediaError.MEDIA_ERR_NETWORK,
    QMediaPlayer.Error.AccessDeniedError: MediaError.MEDIA_ERR_SRC_NOT_SUPPORTED,
}


def _to_url(src: str) -> QUrl:
    if "://" in src:
        return QUrl(src)
    return QUrl.fromLocalFile(src)


class QtMediaPrimitive:
    """Media primitive backed by ``QMediaPlayer`` and ``QAudioOutput``.

    Also acts as the media element: the ``loop`` attribute switches the
    player to infinite loops and ``poster`` is kept for the hosting widget.
    """

    def __init__(
        self,
        player: Optional[QMediaPlayer] = None,
        audio_output: Optional[QAudioOutput] = None,
        parent: Optional[QObject] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or logging.getLogger("mediactl.QtMediaPrimitive")
        self._events = EventBus(self._logger)
        if player is None:
            player = QMediaPlayer(parent)
        if audio_output is None:
            audio_output = QAudioOutput(parent)
            player.setAudioOutput(audio_output)
        self._player = player
        self._audio_output = audio_output
        self._attributes: Dict[str, str] = {}
        self._error: Optional[MediaError] = None
        self._paused = True
        self._metadata_loaded = False
        self.default_playback_rate = 1.0
        self.poster: Optional[str] = None

        self._player.positionChanged.connect(self._on_position_changed)
        self._player.playbackStateChanged.connect(self._on_playback_state_changed)
        self._player.mediaStatusChanged.connect(self._on_media_status_changed)
        self._player.errorOccurred.connect(self._on_error_occurred)

    @property
    def player(self) -> QMediaPlayer:
        return self._player

    # Event target

    def add_event_listener(self, event_name: str, callback: EventCallback) -> None:
        self._events.subscribe(event_name, callback)

    def remove_event_listener(self, event_name: str, callback: EventCallback) -> None:
        self._events.unsubscribe(event_name, callback)

    def listener_count(self, event_name: Optional[str] = None) -> int:
        return self._events.subscriber_count(event_name)

    def _fire(self, event_name: str, **data: Any) -> None:
        data["target"] = self
        self._events.emit(event_name, data)

    # Element attributes

    def set_attribute(self, name: str, value: str) -> None:
        self._attributes[name] = value
        if name == "loop":
            self._player.setLoops(INFINITE_LOOPS)

    def remove_attribute(self, name: str) -> None:
        self._attributes.pop(name, None)
        if name == "loop":
            self._player.setLoops(SINGLE_LOOP)

    def get_attribute(self, name: str) -> Optional[str]:
        return self._attributes.get(name)

    # Media state

    @property
    def src(self) -> str:
        return self._player.source().toString()

    @property
    def error(self) -> Optional[MediaError]:
        return self._error

    @property
    def duration(self) -> float:
        if self._player.mediaStatus() in _UNKNOWN_DURATION_STATUSES:
            return math.nan
        return self._player.duration() / 1000.0

    @property
    def current_time(self) -> float:
        return self._player.position() / 1000.0

    @current_time.setter
    def current_time(self, value: float) -> None:
        self._player.setPosition(int(round(value * 1000)))

    @property
    def volume(self) -> float:
        return self._audio_output.volume()

    @volume.setter
    def volume(self, value: float) -> None:
        self._audio_output.setVolume(value)

    @property
    def muted(self) -> bool:
        return self._audio_output.isMuted()

    @muted.setter
    def muted(self, muted: bool) -> None:
        self._audio_output.setMuted(muted)

    @property
    def playback_rate(self) -> float:
        return self._player.playbackRate()

    @playback_rate.setter
    def playback_rate(self, rate: float) -> None:
        self._player.setPlaybackRate(rate)

    # Commands

    def load(self, src: str) -> None:
        """Point the player at *src*, a URL or a local path."""
        if self._player.mediaStatus() == QMediaPlayer.MediaStatus.LoadingMedia:
            self._error = MediaError(MediaError.MEDIA_ERR_ABORTED)
            self._fire(ABORT)
        self._error = None
        self._metadata_loaded = False
        self._player.setSource(_to_url(src))

    def play(self) -> None:
        self._player.play()

    def unpause(self) -> None:
        self._player.play()

    def pause(self) -> None:
        self._player.pause()

    # Qt signal translation

    def _on_position_changed(self, position: int) -> None:
        self._fire(TIMEUPDATE, current_time=position / 1000.0)

    def _on_playback_state_changed(self, state: Any) -> None:
        if state == QMediaPlayer.PlaybackState.PlayingState:
            if self._paused:
                self._paused = False
                self._fire(PLAY)
            self._fire(PLAYING)
        elif not self._paused:
            self._paused = True
            self._fire(PAUSE)

    def _on_media_status_changed(self, status: Any) -> None:
        if status == QMediaPlayer.MediaStatus.LoadedMedia:
            if not self._metadata_loaded:
                self._metadata_loaded = True
                self._fire(LOADEDMETADATA)
        elif status == QMediaPlayer.MediaStatus.EndOfMedia:
            self._fire(ENDED)
        elif status == QMediaPlayer.MediaStatus.NoMedia:
            self._metadata_loaded = False
            self._fire(EMPTIED)

    def _on_error_occurred(self, error: Any, message: str = "") -> None:
        if error == QMediaPlayer.Error.NoError:
            return
        code = _ERROR_CODES.get(error, 0)
        self._logger.debug("QMediaPlayer error %s: %s", error, message)
        self._error = MediaError(code, message)
        self._fire(ERROR)


class QtStateBridge(QObject):
    """Expose a controller's state notifications as ``stateChanged``."""

    stateChanged = Signal()

    def __init__(self, controller: PlaybackController, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._controller: Optional[PlaybackController] = controller
        controller.add_event_listener(STATE_CHANGE, self._relay)

    @property
    def controller(self) -> Optional[PlaybackController]:
        return self._controller

    def _relay(self, event_name: str, data: Dict[str, Any]) -> None:
        self.stateChanged.emit()

    def detach(self) -> None:
        if self._controller is not None:
            self._controller.remove_event_listener(STATE_CHANGE, self._relay)
            self._controller = None
