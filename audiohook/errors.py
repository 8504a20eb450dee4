"""Exceptions raised by the audiohook player."""

from __future__ import annotations


class AudioHookError(Exception):
    """Base exception for audiohook."""


class DeviceError(AudioHookError):
    """The audio output device could not be opened or driven."""


class DecodeError(AudioHookError):
    """The input file could not be opened or decoded."""


class RawModeError(AudioHookError):
    """The terminal could not be switched into interactive input mode."""


class PlaybackCancelled(AudioHookError):
    """Playback was interrupted by a signal or an external cancellation."""


class SeekError(AudioHookError):
    """The sink rejected a seek request."""
