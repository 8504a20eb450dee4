"""Player preferences kept between sessions.

The last used volume and icon set live in a small JSON file. Reads happen once
at startup; writes are coalesced on the event loop so that holding down a
volume key does not hit the disk on every step.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from audiohook.icons import ICON_SETS

logger = logging.getLogger(__name__)


class _Unset:
    """Marker for keyword arguments that were not passed."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()

# Seconds without further changes before they are written
SAVE_DELAY = 5.0

CONFIG_DIR_ENV_VAR = "AUDIOHOOK_CONFIG_DIR"
SETTINGS_FILENAME = "settings.json"

_VOLUME_MAX = 2.0


def _clamp_volume(volume: float) -> float:
    return max(0.0, min(_VOLUME_MAX, float(volume)))


@dataclass
class Settings:
    """Persisted player preferences."""

    volume: float = 1.0
    icons: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Build settings from parsed JSON, replacing bad values with defaults."""
        volume = data.get("volume", 1.0)
        if isinstance(volume, bool) or not isinstance(volume, (int, float)):
            logger.debug("Ignoring stored volume %r", volume)
            volume = 1.0
        icons = data.get("icons")
        if icons is not None and icons not in ICON_SETS:
            logger.debug("Ignoring stored icon set %r", icons)
            icons = None
        return cls(volume=_clamp_volume(volume), icons=icons)


class SettingsManager:
    """Owns the settings file for one process.

    ``update()`` marks the settings dirty and (re)arms a timer on the running
    loop; the file is written once the timer fires or when ``flush()`` is
    awaited, whichever comes first. File I/O runs in the default executor.
    """

    def __init__(self, settings_file: Path) -> None:
        """Initialize the manager for ``settings_file``. Nothing is read yet."""
        self._settings_file = settings_file
        self._settings = Settings()
        self._pending_save: asyncio.TimerHandle | None = None
        self._dirty = False

    @property
    def settings_file(self) -> Path:
        """Location of the settings file."""
        return self._settings_file

    @property
    def volume(self) -> float:
        """Last used volume (0.0-2.0)."""
        return self._settings.volume

    @property
    def icons(self) -> str | None:
        """Preferred icon set name, or None for auto-detection."""
        return self._settings.icons

    async def load(self) -> None:
        """Read the settings file, keeping defaults if it is missing or broken."""
        await asyncio.get_running_loop().run_in_executor(None, self._read)

    def update(
        self,
        *,
        volume: float | _Unset = UNSET,
        icons: str | None | _Unset = UNSET,
    ) -> None:
        """Change some settings and schedule a save if anything differs.

        Must be called from the event loop thread.

        Args:
            volume: New volume, clamped to 0.0-2.0.
            icons: New icon set name, or None for auto-detection.
        """
        current = self._settings
        new_volume = current.volume if isinstance(volume, _Unset) else _clamp_volume(volume)
        new_icons = current.icons if isinstance(icons, _Unset) else icons
        if (new_volume, new_icons) == (current.volume, current.icons):
            return

        current.volume = new_volume
        current.icons = new_icons
        self._dirty = True
        self._cancel_pending_save()
        loop = asyncio.get_running_loop()
        self._pending_save = loop.call_later(SAVE_DELAY, self._save_in_background, loop)

    async def flush(self) -> None:
        """Write pending changes now."""
        self._cancel_pending_save()
        if self._dirty:
            await asyncio.get_running_loop().run_in_executor(None, self._write)

    def _cancel_pending_save(self) -> None:
        if self._pending_save is not None:
            self._pending_save.cancel()
            self._pending_save = None

    def _save_in_background(self, loop: asyncio.AbstractEventLoop) -> None:
        self._pending_save = None
        loop.run_in_executor(None, self._write)

    def _read(self) -> None:
        path = self._settings_file
        if not path.is_file():
            logger.debug("No settings file at %s, using defaults", path)
            return
        try:
            data = json.loads(path.read_text())
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
        except (ValueError, OSError) as err:
            logger.warning("Ignoring unreadable settings file %s: %s", path, err)
            return

        self._settings = Settings.from_dict(data)
        logger.info(
            "Loaded settings from %s (volume %d%%, icons %s)",
            path,
            round(self._settings.volume * 100),
            self._settings.icons or "auto",
        )

    def _write(self) -> None:
        path = self._settings_file
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(self._settings.to_dict(), indent=2) + "\n")
        except OSError as err:
            logger.warning("Could not save settings to %s: %s", path, err)
            return
        self._dirty = False
        logger.debug("Saved settings to %s", path)


def default_config_dir() -> Path:
    """Directory holding the settings file; AUDIOHOOK_CONFIG_DIR overrides it."""
    override = os.environ.get(CONFIG_DIR_ENV_VAR)
    if override:
        return Path(override)
    return Path.home() / ".config" / "audiohook"


async def get_settings_manager(config_dir: Path | str | None = None) -> SettingsManager:
    """Create a SettingsManager for ``config_dir`` and load it.

    Call once at startup and hand the instance to whatever records changes.
    """
    directory = default_config_dir() if config_dir is None else Path(config_dir)
    manager = SettingsManager(directory / SETTINGS_FILENAME)
    await manager.load()
    return manager
