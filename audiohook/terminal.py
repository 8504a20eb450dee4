"""Terminal input mode handling and non-blocking keyboard polling."""

from __future__ import annotations

import collections
import logging
import os
import select
import sys
from typing import TYPE_CHECKING, Self, TextIO

import readchar

from audiohook.errors import RawModeError
from audiohook.render import CLEAR_LINE

if sys.platform != "win32":
    import termios
    import tty

if TYPE_CHECKING:
    from rich.console import Console

logger = logging.getLogger(__name__)

_IS_WINDOWS = sys.platform == "win32"

# Bytes read from stdin per poll; enough for several escape sequences
_READ_CHUNK = 64

# SS3 arrow sequences ("\x1bOA") as sent in application cursor mode
_SS3_ARROWS = {
    "\x1bOA": readchar.key.UP,
    "\x1bOB": readchar.key.DOWN,
    "\x1bOC": readchar.key.RIGHT,
    "\x1bOD": readchar.key.LEFT,
}


def split_keys(data: str) -> list[str]:
    """Split raw terminal input into individual keys.

    CSI and SS3 escape sequences are kept together and arrow keys are
    normalized to the ``readchar.key`` constants. A lone ESC byte is reported
    as ``readchar.key.ESC``.
    """
    keys: list[str] = []
    i = 0
    n = len(data)
    while i < n:
        char = data[i]
        if char == "\x1b" and i + 1 < n and data[i + 1] in "[O":
            j = i + 2
            while j < n and data[j] in "0123456789;":
                j += 1
            if j < n:
                j += 1
            seq = data[i:j]
            keys.append(_SS3_ARROWS.get(seq, seq))
            i = j
            continue
        keys.append(char)
        i += 1
    return keys


class RawMode:
    """Switches a POSIX terminal into cbreak mode and back.

    cbreak keeps signal generation enabled, so Ctrl+C still interrupts the
    process while single key presses are delivered without waiting for Enter.
    On Windows the console already delivers key presses individually, so this
    is a no-op there.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        """Initialize for ``stream`` (defaults to stdin)."""
        self._stream = stream if stream is not None else sys.stdin
        self._saved: list | None = None

    @property
    def enabled(self) -> bool:
        """Whether the terminal is currently in cbreak mode."""
        return self._saved is not None

    def enable(self) -> None:
        """Enter cbreak mode.

        Raises:
            RawModeError: If the stream is not a terminal or its attributes
                cannot be changed.
        """
        if _IS_WINDOWS or self._saved is not None:
            return
        try:
            fd = self._stream.fileno()
            saved = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        except (termios.error, OSError, ValueError) as err:
            raise RawModeError(f"Cannot enable interactive terminal mode: {err}") from err
        self._saved = saved
        logger.debug("Terminal switched to cbreak mode")

    def disable(self) -> None:
        """Restore the terminal attributes saved by enable()."""
        if self._saved is None:
            return
        saved = self._saved
        self._saved = None
        try:
            termios.tcsetattr(self._stream.fileno(), termios.TCSADRAIN, saved)
        except (termios.error, OSError, ValueError) as err:
            logger.warning("Failed to restore terminal mode: %s", err)
            return
        logger.debug("Terminal mode restored")


class KeyReader:
    """Returns pending key presses without ever blocking."""

    def __init__(self, stream: TextIO | None = None) -> None:
        """Initialize for ``stream`` (defaults to stdin)."""
        self._stream = stream if stream is not None else sys.stdin
        self._pending: collections.deque[str] = collections.deque()

    def poll(self) -> str | None:
        """Return the next pending key, or None when no key is waiting."""
        if not self._pending:
            self._pending.extend(self._read_available())
        if self._pending:
            return self._pending.popleft()
        return None

    def _read_available(self) -> list[str]:
        if _IS_WINDOWS:
            import msvcrt

            if not msvcrt.kbhit():
                return []
            return [readchar.readkey()]

        fd = self._stream.fileno()
        ready, _, _ = select.select([fd], [], [], 0)
        if not ready:
            return []
        data = os.read(fd, _READ_CHUNK)
        return split_keys(data.decode("utf-8", errors="ignore"))


class TerminalModeGuard:
    """Scoped cursor and input-mode ownership for one playback session.

    Entering hides the cursor and, for interactive sessions, enables cbreak
    input. Leaving always restores the input mode, clears the progress line
    and shows the cursor again, whatever caused the session to end.
    """

    def __init__(
        self,
        console: Console,
        *,
        interactive: bool,
        raw_mode: RawMode | None = None,
    ) -> None:
        """Initialize the guard.

        Args:
            console: Console the progress display is written to.
            interactive: Whether keyboard input is needed.
            raw_mode: Input mode switcher, defaults to one on stdin.
        """
        self._console = console
        self._interactive = interactive
        self._raw_mode = raw_mode if raw_mode is not None else RawMode()

    def __enter__(self) -> Self:
        """Hide the cursor and enter raw input mode if interactive."""
        self._console.show_cursor(False)
        if self._interactive:
            try:
                self._raw_mode.enable()
            except RawModeError:
                self._console.show_cursor(True)
                raise
        return self

    def __exit__(self, *_: object) -> None:
        """Restore input mode, clear the progress line and show the cursor."""
        try:
            if self._interactive:
                self._raw_mode.disable()
        finally:
            try:
                self._console.file.write(CLEAR_LINE)
                self._console.file.flush()
            except (OSError, ValueError) as err:
                logger.debug("Failed to clear progress line: %s", err)
            self._console.show_cursor(True)
