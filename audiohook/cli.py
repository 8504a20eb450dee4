"""Command-line interface for the audiohook player."""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import sys
from collections.abc import Sequence
from pathlib import Path

from audiohook.app import EXIT_CANCELLED, EXIT_ERROR, EXIT_OK, PlayConfig, PlayerApp
from audiohook.audio import query_devices
from audiohook.errors import DecodeError
from audiohook.icons import ICON_SETS
from audiohook.meta import probe_track
from audiohook.player import VOLUME_MAX

_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "m": 60.0,
    "min": 60.0,
    "h": 3600.0,
    "hr": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*(ms|sec|min|hr|s|m|h)", re.IGNORECASE)


def parse_duration(value: str) -> float:
    """Parse a duration such as ``90``, ``90s``, ``5min``, ``1h30m`` or ``250ms``.

    Used as an argparse ``type``; returns seconds.
    """
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        seconds = None

    if seconds is None:
        parts = _DURATION_PART.findall(text)
        if not parts or _DURATION_PART.sub("", text).strip():
            raise argparse.ArgumentTypeError(f"invalid duration: {value!r}")
        seconds = sum(float(number) * _UNIT_SECONDS[unit.lower()] for number, unit in parts)

    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"duration must be positive: {value!r}")
    return seconds


def parse_amplify(value: str) -> float:
    """Parse a linear gain within [0, VOLUME_MAX]."""
    try:
        amplify = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid amplify value: {value!r}") from None
    if not 0.0 <= amplify <= VOLUME_MAX:
        raise argparse.ArgumentTypeError(f"amplify must be between 0 and {VOLUME_MAX:g}")
    return amplify


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the audiohook player."""
    parser = argparse.ArgumentParser(description="Play audio files in the terminal")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level to use",
    )
    parser.add_argument(
        "--list-audio-devices",
        action="store_true",
        help="List available audio output devices and exit",
    )
    subparsers = parser.add_subparsers(dest="command")

    play = subparsers.add_parser("play", help="Play an audio file")
    play.add_argument("file", type=Path, help="Audio file to play")
    play.add_argument(
        "-d",
        "--duration",
        type=parse_duration,
        default=None,
        help="Stop after this long (e.g. 90, 90s, 5min, 1h30m, 250ms)",
    )
    play.add_argument(
        "-a",
        "--amplify",
        type=parse_amplify,
        default=None,
        help="Initial volume from 0.0 to 2.0 (defaults to the last used volume)",
    )
    play.add_argument(
        "--icons",
        choices=list(ICON_SETS),
        default=None,
        help="Icon set for the progress display (defaults to auto-detection)",
    )
    play.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Play without the progress display",
    )
    play.add_argument(
        "--audio-device",
        type=str,
        default=None,
        help=(
            "Audio output device by index (e.g., 0, 1, 2) or name prefix (e.g., 'MacBook'). "
            "Use --list-audio-devices to see available devices."
        ),
    )

    meta = subparsers.add_parser("meta", help="Show the metadata of an audio file")
    meta.add_argument("file", type=Path, help="Audio file to inspect")

    args = parser.parse_args(argv)
    if args.command is None and not args.list_audio_devices:
        parser.error("a command is required (play or meta)")
    return args


def list_audio_devices() -> int:
    """List all available audio output devices."""
    try:
        devices = query_devices()
    except Exception as e:  # noqa: BLE001
        print(f"Error listing audio devices: {e}")  # noqa: T201
        return EXIT_ERROR

    print("Available audio output devices:")  # noqa: T201
    print()  # noqa: T201
    for device in devices:
        default_marker = " (default)" if device.is_default else ""
        print(  # noqa: T201
            f"  [{device.index}] {device.name}{default_marker}\n"
            f"       Channels: {device.output_channels}, "
            f"Sample rate: {device.sample_rate} Hz"
        )
    if devices:
        print("\nTo select an audio device:\n  audiohook play FILE --audio-device 0")  # noqa: T201
    return EXIT_OK


def show_meta(path: Path) -> int:
    """Print the metadata of ``path``."""
    try:
        info = probe_track(path)
    except DecodeError as e:
        print(f"Error: {e}", file=sys.stderr)  # noqa: T201
        return EXIT_ERROR
    print(info.describe())  # noqa: T201
    return EXIT_OK


def configure_logging(log_level: str, *, interactive: bool) -> None:
    """Set up root logging.

    Log records share the error stream with the progress line, so interactive
    terminal sessions only show warnings unless DEBUG was asked for.
    """
    if interactive and log_level != "DEBUG":
        logging.basicConfig(level=logging.WARNING)
    else:
        logging.basicConfig(level=getattr(logging, log_level))


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI."""
    args = parse_args(sys.argv[1:] if argv is None else argv)

    if args.list_audio_devices:
        configure_logging(args.log_level, interactive=False)
        return list_audio_devices()

    if args.command == "meta":
        configure_logging(args.log_level, interactive=False)
        return show_meta(args.file)

    configure_logging(args.log_level, interactive=not args.quiet and sys.stderr.isatty())
    config = PlayConfig(
        path=args.file,
        duration=args.duration,
        volume=args.amplify,
        icons=args.icons,
        quiet=args.quiet,
        audio_device=args.audio_device,
    )

    app = PlayerApp(config)
    try:
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        return EXIT_CANCELLED


if __name__ == "__main__":
    raise SystemExit(main())
