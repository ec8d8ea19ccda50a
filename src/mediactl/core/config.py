from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


@dataclass
class PlaybackSettings:
    """Controller options persisted per player."""

    autoplay: bool = False
    poster_src: Optional[str] = None
    volume: Optional[float] = None
    timeupdate_threshold: float = 0.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "PlaybackSettings":
        """Build settings from stored values, dropping entries of the wrong type."""
        settings = cls()
        autoplay = values.get("autoplay")
        if isinstance(autoplay, bool):
            settings.autoplay = autoplay
        poster_src = values.get("poster_src")
        if isinstance(poster_src, str) and poster_src:
            settings.poster_src = poster_src
        volume = values.get("volume")
        if isinstance(volume, (int, float)) and not isinstance(volume, bool):
            settings.volume = float(volume)
        threshold = values.get("timeupdate_threshold")
        if isinstance(threshold, (int, float)) and not isinstance(threshold, bool) and threshold >= 0:
            settings.timeupdate_threshold = float(threshold)
        return settings

    def to_mapping(self) -> Dict[str, Any]:
        return asdict(self)


class SettingsStore:
    """Thread-safe JSON file holding the playback settings of each player.

    Player names are case-insensitive. A missing or unreadable file behaves
    like an empty one and is rewritten on the next save.
    """

    def __init__(self, path: Path, logger: Optional[logging.Logger] = None) -> None:
        self._path = path
        self._lock = threading.RLock()
        self._logger = logger or logging.getLogger("mediactl.SettingsStore")
        self._data: Dict[str, Dict[str, Any]] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
            return
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            self._logger.warning("Ignoring unreadable settings %s: %s", self._path, exc)
            return
        if isinstance(raw, dict):
            self._data = {key.lower(): value for key, value in raw.items() if isinstance(value, dict)}

    def _write(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            json.dump(self._data, handle, indent=2, sort_keys=True)

    def load(self, name: str) -> PlaybackSettings:
        with self._lock:
            values = dict(self._data.get(name.lower(), {}))
        return PlaybackSettings.from_mapping(values)

    def save(self, name: str, settings: PlaybackSettings) -> None:
        with self._lock:
            self._data[name.lower()] = settings.to_mapping()
            self._write()
        self._logger.debug("Saved settings for '%s'", name)
