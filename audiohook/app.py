"""Wires the collaborators of one playback session together."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from audiohook.audio import DeviceSink, resolve_audio_device
from audiohook.duration import resolve_duration
from audiohook.errors import AudioHookError, PlaybackCancelled
from audiohook.icons import resolve_icon_set
from audiohook.meta import format_header, probe_track
from audiohook.player import VOLUME_MAX, PlaybackController, PlaybackSession
from audiohook.render import ProgressRenderer
from audiohook.settings import SettingsManager, get_settings_manager
from audiohook.terminal import KeyReader, TerminalModeGuard

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130


@dataclass
class PlayConfig:
    """Already validated parameters for one playback session."""

    path: Path
    duration: float | None = None
    volume: float | None = None
    icons: str | None = None
    quiet: bool = False
    audio_device: str | None = None
    config_dir: Path | None = None


class PlayerApp:
    """Plays one file with the interactive progress display."""

    def __init__(self, config: PlayConfig, *, console: Console | None = None) -> None:
        """Initialize the application."""
        self._config = config
        self._console = console if console is not None else Console(stderr=True)
        self._settings: SettingsManager | None = None
        self._interrupted = False

    def _print_error(self, message: str) -> None:
        """Print a fatal error on the error stream."""
        print(f"Error: {message}", file=sys.stderr)  # noqa: T201

    def _check_signals(self) -> None:
        """Raise PlaybackCancelled once SIGINT or SIGTERM has been received."""
        if self._interrupted:
            raise PlaybackCancelled("Interrupted")

    def _on_signal(self) -> None:
        logger.debug("Received interrupt signal, stopping playback...")
        self._interrupted = True

    def _build_session(self) -> tuple[PlaybackSession, ProgressRenderer | None, bool]:
        """Open the file and the device and set up the session state.

        Returns:
            The session, its renderer (None when nothing is drawn) and whether
            keys are read during playback.

        Raises:
            AudioHookError: If the file or the device cannot be opened.
            ValueError: If the requested device or icon set does not exist.
        """
        config = self._config
        assert self._settings is not None

        info = probe_track(config.path)
        device = resolve_audio_device(config.audio_device)
        sink = DeviceSink(config.path, device=device)

        total = resolve_duration(config.duration, sink.total_duration(), info.duration)
        volume = config.volume if config.volume is not None else self._settings.volume
        icons = resolve_icon_set(config.icons or self._settings.icons)
        if config.icons:
            self._settings.update(icons=icons.name)

        session = PlaybackSession(
            sink=sink,
            total=total,
            volume=min(volume, VOLUME_MAX),
            header=format_header(info, icons),
        )

        if config.quiet or not self._console.is_terminal:
            return session, None, False

        # Keyboard controls need both a long enough track and a real terminal
        read_keys = session.interactive and sys.stdin.isatty()
        renderer = ProgressRenderer(
            icons,
            volume_max=VOLUME_MAX,
            interactive=read_keys,
            header=session.header,
            console=self._console,
        )
        return session, renderer, read_keys

    async def run(self) -> int:
        """Run the playback session and return the process exit code."""
        config = self._config
        self._settings = await get_settings_manager(config.config_dir)

        try:
            session, renderer, read_keys = self._build_session()
        except (AudioHookError, ValueError) as err:
            self._print_error(str(err))
            return EXIT_ERROR

        guard = (
            TerminalModeGuard(self._console, interactive=read_keys)
            if renderer is not None
            else None
        )

        controller = PlaybackController(
            session,
            renderer=renderer,
            key_source=KeyReader().poll if read_keys else None,
            guard=guard,
            check_signals=self._check_signals,
            settings=self._settings,
        )

        # Signal handlers aren't supported on this platform (e.g., Windows)
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGINT, self._on_signal)
            loop.add_signal_handler(signal.SIGTERM, self._on_signal)

        try:
            await controller.run()
        except PlaybackCancelled:
            logger.info("Playback cancelled")
            return EXIT_CANCELLED
        except AudioHookError as err:
            self._print_error(str(err))
            return EXIT_ERROR
        finally:
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(signal.SIGINT)
                loop.remove_signal_handler(signal.SIGTERM)
            await self._settings.flush()

        return EXIT_OK
