"""Audio output for the audiohook player.

This module provides DeviceSink, which plays a decoded file through a
sounddevice output stream, and device enumeration utilities for listing and
resolving audio output devices.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import numpy as np
import sounddevice

from audiohook.decoder import FileDecoder
from audiohook.errors import DeviceError, SeekError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AudioDevice:
    """An output-capable device as reported by PortAudio."""

    index: int
    name: str
    output_channels: int
    sample_rate: float
    """Default sample rate in Hz."""
    is_default: bool


def query_devices() -> list[AudioDevice]:
    """Return every device that has at least one output channel."""
    default_index = int(sounddevice.default.device[1])
    return [
        AudioDevice(
            index=index,
            name=str(info["name"]),
            output_channels=int(info["max_output_channels"]),
            sample_rate=float(info["default_samplerate"]),
            is_default=index == default_index,
        )
        for index, info in enumerate(sounddevice.query_devices())
        if info["max_output_channels"] > 0
    ]


def resolve_audio_device(device: str | None) -> int | None:
    """Resolve audio device by index or name prefix.

    Args:
        device: Device index (numeric string) or name prefix to match.

    Returns:
        Device index if valid, None for default device.

    Raises:
        ValueError: If device is invalid or not found.
    """
    if device is None:
        return None

    devices = query_devices()

    # If numeric, treat as device index
    if device.isnumeric():
        device_id = int(device)
        for dev in devices:
            if dev.index == device_id:
                return device_id
        raise ValueError(f"Device {device_id} is not an output device")

    # Otherwise, find first output device whose name starts with the prefix
    for dev in devices:
        if dev.name.startswith(device):
            return dev.index
    raise ValueError(f"No audio output device matching {device!r}")


class DeviceSink:
    """Plays a decoded file on an output device.

    The sounddevice callback runs on the audio thread and pulls samples from
    the decoder; every other method is called from the controller. A lock
    guards the decoder and the position counter shared by both sides.
    """

    _BLOCKSIZE: Final[int] = 2048
    """Frames requested per audio callback."""

    def __init__(
        self,
        path: Path | str,
        *,
        device: int | None = None,
        decoder: FileDecoder | None = None,
    ) -> None:
        """Open the file and the output device.

        Args:
            path: Audio file to play.
            device: Output device index, None for the system default.
            decoder: Already opened decoder for ``path``.

        Raises:
            DecodeError: If the file cannot be decoded.
            DeviceError: If the output device cannot be opened.
        """
        self._decoder = decoder if decoder is not None else FileDecoder(path)
        self._lock = threading.Lock()
        self._volume = 1.0
        self._paused = True
        self._frames_played = 0
        self._drained = False
        self._closed = False

        try:
            self._stream = sounddevice.OutputStream(
                samplerate=self._decoder.sample_rate,
                channels=self._decoder.channels,
                dtype="float32",
                blocksize=self._BLOCKSIZE,
                callback=self._audio_callback,
                device=device,
            )
        except (sounddevice.PortAudioError, ValueError) as err:
            self._decoder.close()
            raise DeviceError(f"Cannot open audio output: {err}") from err

        logger.info(
            "Audio stream configured: rate=%d channels=%d device=%s",
            self._decoder.sample_rate,
            self._decoder.channels,
            device if device is not None else "default",
        )

    def total_duration(self) -> float | None:
        """Duration reported by the decoder, if known."""
        return self._decoder.total_duration()

    def play(self) -> None:
        """Start or resume output."""
        if self._closed:
            return
        with self._lock:
            self._paused = False
        if not self._stream.active:
            try:
                self._stream.start()
            except sounddevice.PortAudioError as err:
                raise DeviceError(f"Cannot start audio output: {err}") from err

    def pause(self) -> None:
        """Output silence and hold the position."""
        with self._lock:
            self._paused = True

    def stop(self) -> None:
        """Stop output and release the device and the decoder."""
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.stop()
            self._stream.close()
        except sounddevice.PortAudioError:
            logger.exception("Failed to close audio output stream")
        with self._lock:
            self._decoder.close()

    def set_volume(self, volume: float) -> None:
        """Set the linear gain applied to every sample."""
        with self._lock:
            self._volume = max(0.0, volume)

    def get_position(self) -> float:
        """Playback position in seconds, as consumed by the device."""
        with self._lock:
            return self._frames_played / self._decoder.sample_rate

    def seek(self, position: float) -> None:
        """Move playback to ``position`` seconds.

        Raises:
            SeekError: If the sink is stopped or the decoder cannot seek.
        """
        if self._closed:
            raise SeekError("Sink is stopped")
        with self._lock:
            self._decoder.seek(position)
            self._frames_played = int(position * self._decoder.sample_rate)
            self._drained = False

    def is_empty(self) -> bool:
        """Whether the whole stream has been handed to the device."""
        with self._lock:
            return self._drained

    def _audio_callback(
        self,
        outdata: np.ndarray,
        frames: int,
        time: Any,  # noqa: ARG002
        status: sounddevice.CallbackFlags,
    ) -> None:
        """Fill the device buffer from the decoder."""
        if status:
            logger.debug("Audio callback status: %s", status)

        with self._lock:
            if self._paused or self._closed or self._drained:
                outdata.fill(0)
                return

            samples = self._decoder.read(frames)
            count = len(samples)
            if count:
                np.multiply(samples, self._volume, out=outdata[:count])
                np.clip(outdata[:count], -1.0, 1.0, out=outdata[:count])
            if count < frames:
                outdata[count:].fill(0)
            self._frames_played += count
            if self._decoder.finished:
                self._drained = True
