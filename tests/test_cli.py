import argparse
from pathlib import Path

import pytest

from audiohook import cli
from audiohook.meta import TrackInfo


class TestParseDuration:
    """Tests for duration arguments."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("90", 90.0),
            ("2.5", 2.5),
            ("90s", 90.0),
            ("5min", 300.0),
            ("1h30m", 5400.0),
            ("250ms", 0.25),
            ("1h 5s", 3605.0),
            ("2H", 7200.0),
        ],
    )
    def test_valid(self, value, expected):
        assert cli.parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "abc", "5 parsecs", "0", "-3", "10x"])
    def test_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_duration(value)


class TestParseAmplify:
    """Tests for the initial volume argument."""

    def test_bounds(self):
        assert cli.parse_amplify("0") == 0.0
        assert cli.parse_amplify("2") == 2.0

    @pytest.mark.parametrize("value", ["2.01", "-0.1", "loud"])
    def test_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_amplify(value)


class TestParseArgs:
    """Tests for the argument parser."""

    def test_play_defaults(self):
        args = cli.parse_args(["play", "song.mp3"])
        assert args.command == "play"
        assert args.file == Path("song.mp3")
        assert args.duration is None
        assert args.amplify is None
        assert args.icons is None
        assert not args.quiet
        assert args.log_level == "INFO"

    def test_play_options(self):
        args = cli.parse_args(
            ["--log-level", "DEBUG", "play", "song.mp3", "-d", "1m", "-a", "0.5", "--icons", "ascii"]
        )
        assert args.duration == 60.0
        assert args.amplify == 0.5
        assert args.icons == "ascii"
        assert args.log_level == "DEBUG"

    def test_meta(self):
        args = cli.parse_args(["meta", "song.flac"])
        assert args.command == "meta"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])

    def test_list_devices_needs_no_command(self):
        assert cli.parse_args(["--list-audio-devices"]).list_audio_devices

    def test_rejects_bad_amplify(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["play", "song.mp3", "-a", "3"])


class TestMain:
    """Tests for the entry point wiring."""

    def test_meta_prints_description(self, monkeypatch, capsys):
        info = TrackInfo(path=Path("song.mp3"), title="Song", artist="Band", duration=61.5)
        monkeypatch.setattr(cli, "probe_track", lambda path: info)

        assert cli.main(["meta", "song.mp3"]) == 0
        out = capsys.readouterr().out
        assert "Title: Song" in out
        assert "Duration: 61.50 s" in out

    def test_play_passes_config(self, monkeypatch):
        seen = {}

        class App:
            def __init__(self, config):
                seen["config"] = config

            async def run(self):
                return 0

        monkeypatch.setattr(cli, "PlayerApp", App)
        assert cli.main(["play", "song.mp3", "-d", "90s", "-a", "1.5", "--quiet"]) == 0
        config = seen["config"]
        assert config.duration == 90.0
        assert config.volume == 1.5
        assert config.quiet

    def test_keyboard_interrupt_exit_code(self, monkeypatch):
        class App:
            def __init__(self, config):
                pass

            async def run(self):
                raise KeyboardInterrupt

        monkeypatch.setattr(cli, "PlayerApp", App)
        assert cli.main(["play", "song.mp3", "--quiet"]) == 130
