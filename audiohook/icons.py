"""Glyph palettes for the progress display and the logic that picks one."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Volume at or above this value uses the "high" glyph.
VOLUME_HIGH_THRESHOLD = 0.5

ICONS_ENV_VAR = "AUDIOHOOK_ICONS"
NERD_FONT_ENV_VARS = ("NERD_FONT", "NERD_FONTS")

_TRUTHY = {"1", "true", "yes", "on"}
_WINDOWS_TERM_PROGRAMS = {"vscode", "wezterm"}
_LOCALE_VARS = ("LC_ALL", "LC_CTYPE", "LANG")


@dataclass(frozen=True, slots=True)
class IconSet:
    """An immutable set of glyphs used by the renderer."""

    name: str
    play: str
    pause: str
    rewind: str
    fast_forward: str
    now_playing: str
    bar_filled: str
    bar_empty: str
    volume_muted: str
    volume_low: str
    volume_high: str
    ellipsis: str
    seek_keys: str = "\u2190/\u2192"
    volume_keys: str = "\u2191/\u2193"
    separator: str = " \u2014 "
    bar_partials: tuple[str, ...] = ()
    """Eight glyphs of increasing horizontal fill, empty for sets without sub-cell precision."""

    @property
    def fractional(self) -> bool:
        """Whether progress bars can draw partially filled cells."""
        return len(self.bar_partials) == 8

    def volume_glyph(self, volume: float) -> str:
        """Pick the volume glyph for a linear gain value."""
        if volume <= 0.0:
            return self.volume_muted
        if volume < VOLUME_HIGH_THRESHOLD:
            return self.volume_low
        return self.volume_high


RICH_ICONS = IconSet(
    name="rich",
    play="\uf04b",
    pause="\uf04c",
    rewind="\uf04a",
    fast_forward="\uf04e",
    now_playing="\uf001",
    bar_filled="█",
    bar_empty="░",
    volume_muted="\U000f0581",
    volume_low="\U000f057f",
    volume_high="\U000f057e",
    ellipsis="…",
    bar_partials=(" ", "▏", "▎", "▍", "▌", "▋", "▊", "▉"),
)

UNICODE_ICONS = IconSet(
    name="unicode",
    play="▶",
    pause="⏸",
    rewind="⏪",
    fast_forward="⏩",
    now_playing="♪",
    bar_filled="█",
    bar_empty="░",
    volume_muted="🔇",
    volume_low="🔈",
    volume_high="🔊",
    ellipsis="…",
)

ASCII_ICONS = IconSet(
    name="ascii",
    play=">",
    pause="||",
    rewind="<<",
    fast_forward=">>",
    now_playing="*",
    bar_filled="#",
    bar_empty="-",
    volume_muted="(x)",
    volume_low="(-)",
    volume_high="(+)",
    ellipsis="...",
    seek_keys="h/l",
    volume_keys="j/k",
    separator=" - ",
)

ICON_SETS: dict[str, IconSet] = {
    icons.name: icons for icons in (RICH_ICONS, UNICODE_ICONS, ASCII_ICONS)
}


def get_icon_set(name: str) -> IconSet:
    """Look up an icon set by name.

    Raises:
        ValueError: If no icon set has that name.
    """
    try:
        return ICON_SETS[name.strip().lower()]
    except KeyError:
        choices = ", ".join(ICON_SETS)
        raise ValueError(f"Unknown icon set {name!r} (choose from {choices})") from None


def icons_from_env(env: Mapping[str, str]) -> IconSet | None:
    """Return the icon set requested through environment variables, if any."""
    requested = env.get(ICONS_ENV_VAR, "").strip().lower()
    if requested:
        if requested in ICON_SETS:
            return ICON_SETS[requested]
        logger.debug("Ignoring unknown %s value: %s", ICONS_ENV_VAR, requested)

    for var in NERD_FONT_ENV_VARS:
        if env.get(var, "").strip().lower() in _TRUTHY:
            return RICH_ICONS
    return None


def probe_unicode_support(env: Mapping[str, str], platform: str) -> bool:
    """Guess whether the terminal can draw unicode glyphs.

    On Windows the console itself is not reliable, so only terminals that are
    known to render unicode are trusted. Elsewhere the locale decides.
    Anything inconclusive counts as unsupported.
    """
    if platform.startswith("win"):
        if env.get("WT_SESSION"):
            return True
        if env.get("TERM_PROGRAM", "").lower() in _WINDOWS_TERM_PROGRAMS:
            return True
        return env.get("ConEmuANSI", "").upper() == "ON"

    for var in _LOCALE_VARS:
        value = env.get(var)
        if value:
            normalized = value.lower().replace("-", "")
            return "utf8" in normalized
    return False


def resolve_icon_set(
    explicit: str | None = None,
    env: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> IconSet:
    """Decide which icon set the renderer uses.

    Priority is the explicit choice, then the environment signal, then the
    terminal capability probe, and finally plain ASCII.

    Args:
        explicit: Icon set name from the command line or settings.
        env: Environment mapping, defaults to ``os.environ``.
        platform: Platform string, defaults to ``sys.platform``.

    Raises:
        ValueError: If ``explicit`` names an unknown icon set.
    """
    if explicit:
        return get_icon_set(explicit)

    env = os.environ if env is None else env
    platform = sys.platform if platform is None else platform

    from_env = icons_from_env(env)
    if from_env is not None:
        return from_env

    if probe_unicode_support(env, platform):
        return UNICODE_ICONS
    return ASCII_ICONS
