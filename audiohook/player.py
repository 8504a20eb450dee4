"""Playback session controller.

The controller runs a single cooperative loop on the asyncio event loop. Each
tick it reads the sink position, polls for at most one key press, applies the
resulting transition to the sink and redraws the progress display at a capped
rate. The audio itself is produced by the sink's own output thread.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Protocol

import readchar

from audiohook.errors import SeekError

if TYPE_CHECKING:
    from audiohook.settings import SettingsManager

logger = logging.getLogger(__name__)

VOLUME_MAX = 2.0
VOLUME_STEP = 0.05
SEEK_STEP = 5.0

# Tracks at least this long (in seconds) get keyboard controls
CONTROLS_THRESHOLD = 60.0

TICK_INTERVAL = 0.2
RENDER_INTERVAL = 0.5


class AudioSink(Protocol):
    """Output sink driven by the controller."""

    def play(self) -> None:
        """Start or resume output."""

    def pause(self) -> None:
        """Pause output, keeping the position."""

    def stop(self) -> None:
        """Stop output and release the device."""

    def set_volume(self, volume: float) -> None:
        """Set the linear gain."""

    def get_position(self) -> float:
        """Return the playback position in seconds."""

    def seek(self, position: float) -> None:
        """Move to ``position`` seconds, raising SeekError when not possible."""

    def is_empty(self) -> bool:
        """Return True once the stream has been played to the end."""


class Renderer(Protocol):
    """Draws the progress display."""

    def render(self, elapsed: float, total: float, *, paused: bool, volume: float) -> None:
        """Redraw the display for the given values."""


class SessionState(Enum):
    """Lifecycle of a playback session."""

    STARTING = auto()
    PLAYING = auto()
    PAUSED = auto()
    DRAINING = auto()
    """The loop is finishing; no further input is processed."""
    STOPPED = auto()


def clamp_volume(volume: float) -> float:
    """Clamp a gain value to [0, VOLUME_MAX], rounding away float drift."""
    return max(0.0, min(VOLUME_MAX, round(volume, 4)))


@dataclass
class PlaybackSession:
    """State owned by one controller for the lifetime of a session."""

    sink: AudioSink
    total: float
    volume: float = 1.0
    header: str | None = None
    elapsed: float = 0.0
    paused: bool = False
    state: SessionState = SessionState.STARTING
    pre_mute_volume: float = field(init=False)
    interactive: bool = field(init=False)

    def __post_init__(self) -> None:
        self.volume = clamp_volume(self.volume)
        self.pre_mute_volume = self.volume
        # Decided once; seeking or pausing never changes it
        self.interactive = self.total >= CONTROLS_THRESHOLD

    @property
    def running(self) -> bool:
        """Whether the session is still accepting ticks."""
        return self.state in (SessionState.PLAYING, SessionState.PAUSED)


class PlaybackController:
    """Drives a PlaybackSession until it finishes, is quit or is cancelled."""

    def __init__(
        self,
        session: PlaybackSession,
        *,
        renderer: Renderer | None = None,
        key_source: Callable[[], str | None] | None = None,
        guard: contextlib.AbstractContextManager[object] | None = None,
        check_signals: Callable[[], None] | None = None,
        settings: SettingsManager | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the controller.

        Args:
            session: Session state, including the sink to drive.
            renderer: Progress display; None plays silently.
            key_source: Returns the next pending key without blocking.
                Only used for interactive sessions.
            guard: Context manager owning the terminal mode for the session.
            check_signals: Called once per tick; raising aborts the session.
            settings: Settings to record volume changes in.
            clock: Monotonic clock used to pace redraws.
            sleep: Coroutine used to wait between ticks.
        """
        self._session = session
        self._renderer = renderer
        self._key_source = key_source
        self._guard = guard if guard is not None else contextlib.nullcontext()
        self._check_signals = check_signals or (lambda: None)
        self._settings = settings
        self._clock = clock
        self._sleep = sleep
        self._sink_stopped = False

        # Key dispatch table: key -> action returning whether anything changed.
        # Letter keys are matched case-insensitively.
        self._shortcuts: dict[str, Callable[[], bool]] = {
            " ": self.toggle_pause,
            "m": self.toggle_mute,
            "q": self.quit,
            readchar.key.ESC: self.quit,
            # Seek
            "l": lambda: self.seek_by(SEEK_STEP),
            "h": lambda: self.seek_by(-SEEK_STEP),
            readchar.key.RIGHT: lambda: self.seek_by(SEEK_STEP),
            readchar.key.LEFT: lambda: self.seek_by(-SEEK_STEP),
            # Volume
            "k": lambda: self.change_volume(VOLUME_STEP),
            "j": lambda: self.change_volume(-VOLUME_STEP),
            readchar.key.UP: lambda: self.change_volume(VOLUME_STEP),
            readchar.key.DOWN: lambda: self.change_volume(-VOLUME_STEP),
        }

    def handle_key(self, key: str) -> bool:
        """Apply the transition bound to ``key``.

        Returns:
            True when the key changed the session and a redraw is due.
        """
        action = self._shortcuts.get(key) or self._shortcuts.get(key.lower())
        if action is None:
            return False
        return action()

    def toggle_pause(self) -> bool:
        """Toggle between playing and paused."""
        session = self._session
        if session.paused:
            session.sink.play()
            session.paused = False
            session.state = SessionState.PLAYING
        else:
            session.sink.pause()
            session.paused = True
            session.state = SessionState.PAUSED
        logger.debug("Playback %s", "paused" if session.paused else "resumed")
        return True

    def seek_by(self, delta: float) -> bool:
        """Seek relative to the current position, clamped to the track."""
        session = self._session
        target = min(max(session.elapsed + delta, 0.0), session.total)
        try:
            session.sink.seek(target)
        except SeekError as err:
            logger.debug("Seek to %.1fs rejected: %s", target, err)
            return True
        session.elapsed = target
        logger.debug("Seeked to %.1fs", target)
        return True

    def change_volume(self, delta: float) -> bool:
        """Raise or lower the volume by ``delta``, clamped to [0, VOLUME_MAX]."""
        session = self._session
        if delta > 0 and session.volume >= VOLUME_MAX:
            return False
        if delta < 0 and session.volume <= 0.0:
            return False
        self._apply_volume(clamp_volume(session.volume + delta))
        if session.volume > 0.0:
            session.pre_mute_volume = session.volume
        return True

    def toggle_mute(self) -> bool:
        """Mute, or restore the volume from before muting."""
        session = self._session
        if session.volume > 0.0:
            session.pre_mute_volume = session.volume
            self._apply_volume(0.0)
        else:
            self._apply_volume(max(session.pre_mute_volume, VOLUME_STEP))
        return True

    def quit(self) -> bool:
        """Stop the sink and finish the session."""
        self._stop_sink()
        self._session.state = SessionState.DRAINING
        logger.debug("Playback stopped by user at %.1fs", self._session.elapsed)
        return True

    def update_position(self) -> None:
        """Refresh ``elapsed`` from the sink, clamped to [0, total]."""
        session = self._session
        position = session.sink.get_position()
        session.elapsed = min(max(position, 0.0), session.total)

    def _apply_volume(self, volume: float) -> None:
        session = self._session
        session.volume = volume
        session.sink.set_volume(volume)
        # Only audible volumes are saved; a new session never starts muted
        if self._settings is not None and volume > 0.0:
            self._settings.update(volume=volume)
        logger.debug("Volume set to %d%%", round(volume * 100))

    def _stop_sink(self) -> None:
        if not self._sink_stopped:
            self._sink_stopped = True
            self._session.sink.stop()

    def _render(self) -> None:
        if self._renderer is None:
            return
        session = self._session
        self._renderer.render(
            session.elapsed, session.total, paused=session.paused, volume=session.volume
        )

    async def run(self) -> None:
        """Play the session to completion.

        Returns once the session is stopped. Cancellation, raised either by
        ``check_signals`` or by cancelling the task, propagates after the
        terminal has been restored and the sink released.
        """
        session = self._session
        session.sink.set_volume(session.volume)
        try:
            with self._guard:
                session.sink.play()
                session.state = SessionState.PLAYING
                logger.debug(
                    "Playing %.1fs session (interactive=%s)", session.total, session.interactive
                )
                try:
                    await self._loop()
                finally:
                    session.state = SessionState.DRAINING
                    self._render()
        finally:
            self._stop_sink()
            session.state = SessionState.STOPPED

    async def _loop(self) -> None:
        session = self._session
        poll_keys = session.interactive and self._key_source is not None
        needs_render = True
        last_render = 0.0

        while session.running:
            self._check_signals()
            self.update_position()

            if poll_keys:
                assert self._key_source is not None
                key = self._key_source()
                if key is not None and self.handle_key(key):
                    needs_render = True
                if not session.running:
                    break

            if session.elapsed >= session.total or session.sink.is_empty():
                logger.debug("Reached end of playback at %.1fs", session.elapsed)
                session.state = SessionState.DRAINING
                break

            now = self._clock()
            if needs_render or now - last_render >= RENDER_INTERVAL:
                self._render()
                last_render = now
                needs_render = False

            await self._sleep(TICK_INTERVAL)
