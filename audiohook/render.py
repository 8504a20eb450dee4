"""Single-line progress display for a playback session.

The renderer owns nothing but a reference to the output console. Every call
builds a fresh frame from the values it is given and writes it with one
buffered write, so the progress line is redrawn in place without flicker.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from rich.cells import cell_len, get_character_cell_size
from rich.console import Console

from audiohook.icons import IconSet

logger = logging.getLogger(__name__)

# Below this many columns nothing is drawn at all
MIN_RENDER_WIDTH = 40
DEFAULT_WIDTH = 80

MIN_BAR = 10
MAX_BAR = 60
MIN_VOLUME_BAR = 5
# " [" and "]" around the volume bar
VOLUME_BAR_FRAME = 3

CLEAR_LINE = "\r\x1b[2K"
CURSOR_UP = "\x1b[1A"


def format_time(seconds: float, *, hours: bool = False) -> str:
    """Format seconds as MM:SS, or H:MM:SS when ``hours`` is set."""
    total = max(0, int(seconds))
    mins, secs = divmod(total, 60)
    if hours:
        hrs, mins = divmod(mins, 60)
        return f"{hrs}:{mins:02d}:{secs:02d}"
    return f"{mins:02d}:{secs:02d}"


def completion_ratio(elapsed: float, total: float) -> float:
    """Return elapsed/total clamped to [0, 1], or 0 when total is not positive."""
    if total <= 0:
        return 0.0
    return min(1.0, max(0.0, elapsed / total))


def render_bar(ratio: float, width: int, icons: IconSet) -> str:
    """Draw a bar of exactly ``width`` cells filled to ``ratio``.

    Icon sets with fractional glyphs get sub-cell precision: whole cells are
    floored and the remainder is drawn with one of eight partial glyphs.
    """
    if width <= 0:
        return ""
    ratio = min(1.0, max(0.0, ratio))

    if not icons.fractional:
        filled = min(width, round(ratio * width))
        return icons.bar_filled * filled + icons.bar_empty * (width - filled)

    exact = ratio * width
    filled = min(width, math.floor(exact))
    bar = icons.bar_filled * filled
    if filled < width:
        level = int((exact - filled) * 8)
        if level > 0:
            bar += icons.bar_partials[level]
            filled += 1
    return bar + icons.bar_empty * (width - filled)


def compute_bar_widths(available: int) -> tuple[int, int]:
    """Split the free columns between the progress bar and the volume bar.

    The volume bar is about a third of the progress bar and never narrower
    than MIN_VOLUME_BAR; its brackets and leading space take VOLUME_BAR_FRAME
    more columns. When both do not fit, the progress bar shrinks down to
    MIN_BAR and then the volume bar is dropped (width 0), handing its columns
    back to the progress bar. Only when even MIN_BAR does not fit is the
    progress bar narrowed further, down to nothing.
    """
    main = max(MIN_BAR, min(MAX_BAR, available * 3 // 4))
    volume = max(MIN_VOLUME_BAR, main // 3)
    if main + volume + VOLUME_BAR_FRAME > available:
        main = max(MIN_BAR, available - volume - VOLUME_BAR_FRAME)
    if main + volume + VOLUME_BAR_FRAME > available:
        return max(0, min(MAX_BAR, available)), 0
    return main, volume


def truncate_to_width(text: str, width: int, ellipsis: str = "…") -> str:
    """Cut ``text`` so that it occupies at most ``width`` terminal cells.

    Wide characters count as two cells. When the text is cut, ``ellipsis`` is
    appended and counted within ``width``.
    """
    if cell_len(text) <= width:
        return text
    budget = width - cell_len(ellipsis)
    if budget <= 0:
        return ellipsis[: max(0, width)]

    used = 0
    chars: list[str] = []
    for char in text:
        size = get_character_cell_size(char)
        if used + size > budget:
            break
        chars.append(char)
        used += size
    return "".join(chars) + ellipsis


def control_hint(icons: IconSet, *, paused: bool) -> str:
    """Key legend shown after the progress line in interactive sessions."""
    label = "play" if paused else "pause"
    return (
        f"  [space] {label}"
        f"  [{icons.seek_keys}] {icons.rewind}/{icons.fast_forward}"
        f"  [{icons.volume_keys}] vol"
        "  [m] mute  [q] quit"
    )


@dataclass(frozen=True, slots=True)
class RenderFrame:
    """Everything needed to print one progress line."""

    status: str
    elapsed: str
    total: str
    ratio: float
    percent: int
    volume_glyph: str
    volume_percent: int
    bar: str
    volume_bar: str
    hint: str


def format_line(frame: RenderFrame) -> str:
    """Lay out a frame as a single line of text."""
    line = (
        f"{frame.status} {frame.elapsed}/{frame.total} [{frame.bar}] {frame.percent:>3}%"
        f" {frame.volume_glyph}"
    )
    if frame.volume_bar:
        line += f" [{frame.volume_bar}]"
    return line + f" {frame.volume_percent:>3}%{frame.hint}"


def build_frame(
    elapsed: float,
    total: float,
    *,
    paused: bool,
    volume: float,
    volume_max: float,
    interactive: bool,
    icons: IconSet,
    width: int,
) -> RenderFrame:
    """Compute a frame whose line fits into ``width`` columns whenever its text does."""
    ratio = completion_ratio(elapsed, total)
    hours = total >= 3600
    hint = control_hint(icons, paused=paused) if interactive else ""

    frame = RenderFrame(
        status=icons.pause if paused else icons.play,
        elapsed=format_time(min(elapsed, total), hours=hours),
        total=format_time(total, hours=hours),
        ratio=ratio,
        percent=round(ratio * 100),
        volume_glyph=icons.volume_glyph(volume),
        volume_percent=round(volume * 100),
        bar="",
        volume_bar="",
        hint=hint,
    )

    # Leave the last column free so the terminal never wraps the line
    overhead = cell_len(format_line(frame)) + 1
    available = width - overhead
    if hint and available < MIN_BAR + MIN_VOLUME_BAR:
        available += cell_len(hint)
        hint = ""

    bar_width, volume_width = compute_bar_widths(available)
    volume_ratio = min(1.0, max(0.0, volume / volume_max)) if volume_max > 0 else 0.0
    return RenderFrame(
        status=frame.status,
        elapsed=frame.elapsed,
        total=frame.total,
        ratio=ratio,
        percent=frame.percent,
        volume_glyph=frame.volume_glyph,
        volume_percent=frame.volume_percent,
        bar=render_bar(ratio, bar_width, icons),
        volume_bar=render_bar(volume_ratio, volume_width, icons),
        hint=hint,
    )


def build_output(
    frame: RenderFrame,
    *,
    header: str | None,
    first: bool,
    width: int,
    ellipsis: str,
) -> str:
    """Assemble the escape sequences and text for one redraw.

    The cursor is left at the end of the progress line. When a header is shown,
    later redraws move up one line to repaint it as well.
    """
    parts: list[str] = []
    if header is not None:
        if not first:
            parts.append(CURSOR_UP)
        parts.append(f"{CLEAR_LINE}{truncate_to_width(header, width, ellipsis)}\n")
    parts.append(f"{CLEAR_LINE}{format_line(frame)}")
    return "".join(parts)


class ProgressRenderer:
    """Redraws the progress line (and optional header) on the error stream."""

    def __init__(
        self,
        icons: IconSet,
        *,
        volume_max: float,
        interactive: bool = False,
        header: str | None = None,
        console: Console | None = None,
    ) -> None:
        """Initialize the renderer.

        Args:
            icons: Glyph palette to draw with.
            volume_max: Volume that fills the volume bar completely.
            interactive: Whether to append the key legend.
            header: Optional "artist - title" line drawn above the progress line.
            console: Console to write to, defaults to one on stderr.
        """
        self._icons = icons
        self._volume_max = volume_max
        self._interactive = interactive
        self._header = header
        self._console = console if console is not None else Console(stderr=True)
        self._first = True

    def terminal_width(self) -> int:
        """Current terminal width, or DEFAULT_WIDTH when it cannot be queried."""
        try:
            width = self._console.width
        except (OSError, ValueError):
            return DEFAULT_WIDTH
        return width if width > 0 else DEFAULT_WIDTH

    def render(self, elapsed: float, total: float, *, paused: bool, volume: float) -> None:
        """Redraw the display. Write failures are logged and ignored."""
        width = self.terminal_width()
        if width < MIN_RENDER_WIDTH:
            return

        frame = build_frame(
            elapsed,
            total,
            paused=paused,
            volume=volume,
            volume_max=self._volume_max,
            interactive=self._interactive,
            icons=self._icons,
            width=width,
        )
        if cell_len(format_line(frame)) >= width:
            logger.debug("Progress line does not fit in %d columns, skipping frame", width)
            return
        output = build_output(
            frame,
            header=self._header,
            first=self._first,
            width=width,
            ellipsis=self._icons.ellipsis,
        )
        try:
            stream = self._console.file
            stream.write(output)
            stream.flush()
        except (OSError, ValueError) as err:
            logger.debug("Failed to draw progress frame: %s", err)
            return
        self._first = False
