from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .config import PlaybackSettings, SettingsStore
from .controller import PlaybackController
from .media import MediaElement, MediaPrimitive, SimulatedMedia


MEDIA_BACKENDS = ("simulated", "qt")


class CoreServices:
    """Shared logging, configuration and controller construction."""

    def __init__(
        self,
        app_name: str = "mediactl",
        data_dir: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.app_name = app_name
        self.data_dir = data_dir or self._resolve_data_dir(app_name)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._logger = logger or self._configure_logger(app_name)
        self._settings_store = SettingsStore(
            self.data_dir / "config.json", self.get_logger("SettingsStore")
        )

    @staticmethod
    def _resolve_data_dir(app_name: str) -> Path:
        if os.name == "nt":
            base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
        else:
            base = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
        return base / app_name.lower()

    @staticmethod
    def _configure_logger(app_name: str) -> logging.Logger:
        logger = logging.getLogger(app_name)
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        return logger

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def get_logger(self, name: str) -> logging.Logger:
        return self._logger.getChild(name)

    @property
    def settings_store(self) -> SettingsStore:
        return self._settings_store

    def load_playback_settings(self, name: str) -> PlaybackSettings:
        return self._settings_store.load(name)

    def save_playback_settings(self, name: str, settings: PlaybackSettings) -> None:
        self._settings_store.save(name, settings)

    def create_media(self, backend: str = "simulated") -> MediaPrimitive:
        """Instantiate a media primitive for *backend* ("simulated" or "qt")."""
        if backend not in MEDIA_BACKENDS:
            raise ValueError(f"Unknown media backend '{backend}'")
        if backend == "qt":
            from .qt_media import QtMediaPrimitive

            return QtMediaPrimitive(logger=self.get_logger("QtMediaPrimitive"))
        return SimulatedMedia(self.get_logger("SimulatedMedia"))

    def create_controller(
        self,
        name: str = "player",
        media: Optional[MediaPrimitive] = None,
        element: Optional[MediaElement] = None,
    ) -> PlaybackController:
        """Build a controller configured from the *name* section."""
        settings = self.load_playback_settings(name)
        logger = self.get_logger(f"PlaybackController.{name}")
        logger.debug("Creating controller with %s", settings)
        return PlaybackController(
            media,
            element=element,
            autoplay=settings.autoplay,
            poster_src=settings.poster_src,
            volume=settings.volume,
            timeupdate_threshold=settings.timeupdate_threshold,
            logger=logger,
        )
