import pytest
from rich.cells import cell_len

from audiohook.icons import ASCII_ICONS, RICH_ICONS, UNICODE_ICONS
from audiohook.render import (
    CLEAR_LINE,
    CURSOR_UP,
    MIN_RENDER_WIDTH,
    ProgressRenderer,
    build_frame,
    completion_ratio,
    compute_bar_widths,
    format_line,
    format_time,
    render_bar,
    truncate_to_width,
)

from conftest import BrokenFile, FakeConsole


class TestFormatting:
    """Tests for the small formatting helpers."""

    def test_format_time(self):
        assert format_time(75) == "01:15"
        assert format_time(75.9) == "01:15"
        assert format_time(-3) == "00:00"
        assert format_time(3725, hours=True) == "1:02:05"

    def test_completion_ratio_is_clamped(self):
        assert completion_ratio(45, 90) == 0.5
        assert completion_ratio(120, 90) == 1.0
        assert completion_ratio(-1, 90) == 0.0
        assert completion_ratio(10, 0) == 0.0

    def test_truncate_keeps_short_text(self):
        assert truncate_to_width("abcdef", 10) == "abcdef"

    def test_truncate_counts_ellipsis(self):
        assert truncate_to_width("abcdef", 4, "...") == "a..."

    def test_truncate_wide_characters(self):
        result = truncate_to_width("日本語テキスト", 7, "…")
        assert result == "日本語…"
        assert cell_len(result) <= 7


class TestRenderBar:
    """Tests for progress bar drawing."""

    def test_ascii_half(self):
        assert render_bar(0.5, 10, ASCII_ICONS) == "#####-----"

    def test_full_and_empty(self):
        assert render_bar(1.0, 6, ASCII_ICONS) == "######"
        assert render_bar(0.0, 6, ASCII_ICONS) == "------"
        assert render_bar(1.7, 6, ASCII_ICONS) == "######"

    def test_rich_partial_cell(self):
        assert render_bar(0.5625, 8, RICH_ICONS) == "████▌░░░"

    def test_zero_width(self):
        assert render_bar(0.5, 0, RICH_ICONS) == ""

    @pytest.mark.parametrize("icons", [ASCII_ICONS, UNICODE_ICONS, RICH_ICONS])
    def test_always_exact_width(self, icons):
        for width in range(1, 61):
            for step in range(0, 101):
                bar = render_bar(step / 100, width, icons)
                assert cell_len(bar) == width, (width, step)


class TestLayout:
    """Tests for fitting the line into the terminal width."""

    @pytest.mark.parametrize(
        ("available", "expected"),
        [(100, (60, 20)), (20, (12, 5)), (12, (12, 0)), (5, (5, 0)), (-3, (0, 0))],
    )
    def test_compute_bar_widths(self, available, expected):
        assert compute_bar_widths(available) == expected

    @pytest.mark.parametrize("icons", [ASCII_ICONS, UNICODE_ICONS])
    @pytest.mark.parametrize("interactive", [True, False])
    def test_line_never_fills_last_column(self, icons, interactive):
        for width in range(60, 160):
            frame = build_frame(
                45,
                90,
                paused=False,
                volume=1.0,
                volume_max=2.0,
                interactive=interactive,
                icons=icons,
                width=width,
            )
            assert cell_len(format_line(frame)) <= width - 1, width

    @pytest.mark.parametrize("icons", [ASCII_ICONS, UNICODE_ICONS, RICH_ICONS])
    @pytest.mark.parametrize("interactive", [True, False])
    @pytest.mark.parametrize("total", [90, 3600])
    def test_narrow_terminals_never_wrap(self, icons, interactive, total):
        for width in range(MIN_RENDER_WIDTH, 60):
            frame = build_frame(
                1800,
                total,
                paused=True,
                volume=1.0,
                volume_max=2.0,
                interactive=interactive,
                icons=icons,
                width=width,
            )
            assert cell_len(format_line(frame)) <= width - 1, width

    def test_hint_only_when_interactive(self):
        kwargs = dict(paused=False, volume=1.0, volume_max=2.0, icons=ASCII_ICONS, width=140)
        assert "[q] quit" in build_frame(45, 90, interactive=True, **kwargs).hint
        assert build_frame(45, 90, interactive=False, **kwargs).hint == ""

    def test_hint_dropped_when_narrow(self):
        frame = build_frame(
            45,
            90,
            paused=False,
            volume=1.0,
            volume_max=2.0,
            interactive=True,
            icons=ASCII_ICONS,
            width=60,
        )
        assert frame.hint == ""
        assert len(frame.bar) >= 10

    def test_paused_status_and_hint(self):
        frame = build_frame(
            45,
            90,
            paused=True,
            volume=0.0,
            volume_max=2.0,
            interactive=True,
            icons=ASCII_ICONS,
            width=140,
        )
        assert frame.status == "||"
        assert frame.volume_glyph == "(x)"
        assert "[space] play" in frame.hint

    def test_hours_format_for_long_sessions(self):
        frame = build_frame(
            61,
            3600,
            paused=False,
            volume=1.0,
            volume_max=2.0,
            interactive=False,
            icons=ASCII_ICONS,
            width=100,
        )
        assert frame.elapsed == "0:01:01"
        assert frame.total == "1:00:00"


class TestProgressRenderer:
    """Tests for the stateful renderer."""

    def _renderer(self, console, **kwargs):
        kwargs.setdefault("volume_max", 2.0)
        return ProgressRenderer(ASCII_ICONS, console=console, **kwargs)

    def test_renders_progress_line(self):
        console = FakeConsole(width=80)
        self._renderer(console).render(12, 90, paused=False, volume=1.0)
        output = console.file.getvalue()
        assert output.startswith(CLEAR_LINE)
        assert "00:12/01:30" in output
        assert "\n" not in output

    def test_nothing_drawn_below_minimum_width(self):
        console = FakeConsole(width=MIN_RENDER_WIDTH - 1)
        self._renderer(console).render(12, 90, paused=False, volume=1.0)
        assert console.file.getvalue() == ""

    def test_long_session_fits_minimum_width(self):
        console = FakeConsole(width=MIN_RENDER_WIDTH)
        renderer = self._renderer(console, interactive=True)
        renderer.render(1800, 3600, paused=True, volume=1.0)
        line = console.file.getvalue()[len(CLEAR_LINE) :]
        assert "0:30:00/1:00:00" in line
        assert cell_len(line) <= MIN_RENDER_WIDTH - 1

    def test_header_redrawn_in_place(self):
        console = FakeConsole(width=80)
        renderer = self._renderer(console, header="* Artist - Title")
        renderer.render(1, 90, paused=False, volume=1.0)
        first = console.file.getvalue()
        assert first.startswith(CLEAR_LINE + "* Artist - Title\n")
        assert CURSOR_UP not in first

        renderer.render(2, 90, paused=False, volume=1.0)
        second = console.file.getvalue()[len(first) :]
        assert second.startswith(CURSOR_UP + CLEAR_LINE + "* Artist - Title\n")

    def test_long_header_is_truncated(self):
        console = FakeConsole(width=50)
        renderer = self._renderer(console, header="* " + "x" * 200)
        renderer.render(1, 90, paused=False, volume=1.0)
        header_line = console.file.getvalue().split("\n")[0][len(CLEAR_LINE) :]
        assert cell_len(header_line) <= 50
        assert header_line.endswith("...")

    def test_write_failure_is_swallowed(self):
        console = FakeConsole(width=80)
        console.file = BrokenFile()
        renderer = self._renderer(console, header="* Title")
        renderer.render(1, 90, paused=False, volume=1.0)

        # The failed frame never reached the screen, so the next one is still the first
        console.file = FakeConsole().file
        renderer.render(2, 90, paused=False, volume=1.0)
        assert CURSOR_UP not in console.file.getvalue()

    def test_unknown_width_uses_default(self):
        console = FakeConsole(width=0)
        assert self._renderer(console).terminal_width() == 80
