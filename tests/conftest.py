import io
import sys
import wave
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from audiohook.errors import RawModeError, SeekError


class FakeSink:
    """In-memory sink whose position only moves when the fake clock advances."""

    def __init__(self, length=None, seek_fails=False):
        self.length = length
        self.seek_fails = seek_fails
        self.position = 0.0
        self.volume = None
        self.playing = False
        self.empty = False
        self.play_calls = 0
        self.pause_calls = 0
        self.stop_calls = 0
        self.seeks = []

    def advance(self, seconds):
        if self.playing:
            self.position += seconds

    def play(self):
        self.play_calls += 1
        self.playing = True

    def pause(self):
        self.pause_calls += 1
        self.playing = False

    def stop(self):
        self.stop_calls += 1
        self.playing = False

    def set_volume(self, volume):
        self.volume = volume

    def get_position(self):
        return self.position

    def seek(self, position):
        self.seeks.append(position)
        if self.seek_fails:
            raise SeekError("not seekable")
        self.position = position

    def is_empty(self):
        if self.empty:
            return True
        return self.length is not None and self.position >= self.length


class FakeTime:
    """Monotonic clock plus an async sleep that advances it and the sink."""

    def __init__(self, sink=None):
        self.now = 0.0
        self.sink = sink
        self.sleeps = 0

    def clock(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps += 1
        self.now += seconds
        if self.sink is not None:
            self.sink.advance(seconds)


class ScriptedKeys:
    """Key source that releases each key once the fake clock reaches its time."""

    def __init__(self, fake_time, script):
        self.fake_time = fake_time
        self.script = sorted(script)
        self.polls = 0

    def __call__(self):
        self.polls += 1
        if self.script and self.fake_time.now >= self.script[0][0] - 1e-9:
            return self.script.pop(0)[1]
        return None


class FakeRenderer:
    def __init__(self):
        self.frames = []

    def render(self, elapsed, total, *, paused, volume):
        self.frames.append((elapsed, total, paused, volume))


class FakeConsole:
    """Stands in for rich.console.Console in the renderer and the guard."""

    def __init__(self, width=80, is_terminal=True):
        self.file = io.StringIO()
        self.width = width
        self.is_terminal = is_terminal
        self.cursor_calls = []

    def show_cursor(self, show=True):
        self.cursor_calls.append(show)
        return True


class BrokenFile:
    def write(self, text):
        raise OSError("stream closed")

    def flush(self):
        raise OSError("stream closed")


class FakeRawMode:
    def __init__(self, fail=False):
        self.fail = fail
        self.enable_calls = 0
        self.disable_calls = 0

    def enable(self):
        self.enable_calls += 1
        if self.fail:
            raise RawModeError("not a terminal")

    def disable(self):
        self.disable_calls += 1


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def fake_time(sink):
    return FakeTime(sink)


@pytest.fixture
def console():
    return FakeConsole()


@pytest.fixture
def raw_mode():
    return FakeRawMode()


RAMP_RATE = 8000


@pytest.fixture
def ramp_wav(tmp_path):
    """One second of mono 16-bit audio whose n-th sample has the value n."""
    path = tmp_path / "ramp.wav"
    with wave.open(str(path), "wb") as out:
        out.setnchannels(1)
        out.setsampwidth(2)
        out.setframerate(RAMP_RATE)
        out.writeframes(np.arange(RAMP_RATE, dtype="<i2").tobytes())
    return path
