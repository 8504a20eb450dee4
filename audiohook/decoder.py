"""Audio file decoding with PyAV."""

from __future__ import annotations

import logging
from pathlib import Path

import av
import numpy as np
from av.audio.stream import AudioStream
from av.container import InputContainer

from audiohook.errors import DecodeError, SeekError

logger = logging.getLogger(__name__)


class FileDecoder:
    """Decodes an audio file into packed float32 sample blocks.

    Frames are decoded lazily as samples are requested, resampled to packed
    float32 at the stream's native rate, and downmixed to at most two channels.
    """

    def __init__(self, path: Path | str) -> None:
        """Open ``path`` and select its first audio stream.

        Raises:
            DecodeError: If the file cannot be opened or has no audio stream.
        """
        self._path = Path(path)
        try:
            container = av.open(str(self._path))
        except (av.FFmpegError, OSError) as err:
            raise DecodeError(f"Cannot open {self._path}: {err}") from err

        assert isinstance(container, InputContainer)
        if not container.streams.audio:
            container.close()
            raise DecodeError(f"No audio stream in {self._path}")

        self._container: InputContainer = container
        self._stream: AudioStream = container.streams.audio[0]
        self._sample_rate = int(self._stream.rate or self._stream.codec_context.sample_rate)
        self._channels = 1 if (self._stream.channels or 2) == 1 else 2
        self._resampler = self._new_resampler()
        self._resampler_flushed = False
        self._frames = self._container.decode(self._stream)
        self._pending = np.zeros((0, self._channels), dtype=np.float32)
        self._skip_until: float | None = None
        self._finished = False

        logger.debug(
            "Opened %s: codec=%s rate=%d channels=%d",
            self._path,
            self._stream.codec_context.name,
            self._sample_rate,
            self._channels,
        )

    @property
    def sample_rate(self) -> int:
        """Output sample rate in Hz."""
        return self._sample_rate

    @property
    def channels(self) -> int:
        """Number of output channels (1 or 2)."""
        return self._channels

    @property
    def finished(self) -> bool:
        """Whether every sample of the stream has been returned."""
        return self._finished and len(self._pending) == 0

    def total_duration(self) -> float | None:
        """Duration derived from the stream itself, if the codec reports one."""
        stream = self._stream
        if stream.duration is None or stream.time_base is None:
            return None
        duration = float(stream.duration * stream.time_base)
        return duration if duration > 0 else None

    def read(self, frames: int) -> np.ndarray:
        """Return up to ``frames`` samples with shape ``(n, channels)``.

        Fewer rows are returned only at the end of the stream.
        """
        while len(self._pending) < frames and not self._finished:
            try:
                block = self._decode_next()
            except av.FFmpegError as err:
                logger.warning("Decode error in %s, ending stream: %s", self._path, err)
                block = None
            if block is None:
                self._finished = True
                break
            self._pending = np.concatenate((self._pending, block))

        out = self._pending[:frames]
        self._pending = self._pending[frames:]
        return out

    def seek(self, position: float) -> None:
        """Move the decoder to ``position`` seconds.

        Raises:
            SeekError: If the container cannot seek.
        """
        stream = self._stream
        if stream.time_base is None:
            raise SeekError("Stream has no time base")
        offset = int(position / stream.time_base)
        try:
            self._container.seek(offset, stream=stream, backward=True)
        except av.FFmpegError as err:
            raise SeekError(str(err)) from err

        self._frames = self._container.decode(stream)
        self._resampler = self._new_resampler()
        self._resampler_flushed = False
        self._pending = np.zeros((0, self._channels), dtype=np.float32)
        self._skip_until = position
        self._finished = False

    def close(self) -> None:
        """Release the container."""
        self._container.close()

    def _new_resampler(self) -> av.AudioResampler:
        return av.AudioResampler(
            format="flt",
            layout="mono" if self._channels == 1 else "stereo",
            rate=self._sample_rate,
        )

    def _resample(self, frame: av.AudioFrame | None) -> np.ndarray | None:
        """Run ``frame`` (None to drain) through the resampler as ``(n, channels)``."""
        blocks = [
            out.to_ndarray() for out in self._resampler.resample(frame) if out is not None
        ]
        if not blocks:
            return None
        # Packed float output has shape (1, samples * channels)
        return np.concatenate(blocks, axis=1).reshape(-1, self._channels)

    def _decode_next(self) -> np.ndarray | None:
        """Decode the next frame into a float32 block, or None at end of stream."""
        for frame in self._frames:
            start = frame.time
            samples = self._resample(frame)
            if samples is None:
                continue

            if self._skip_until is not None and start is not None:
                skip = round((self._skip_until - start) * self._sample_rate)
                if skip >= len(samples):
                    continue
                samples = samples[max(0, skip) :]
                self._skip_until = None
            return samples.astype(np.float32, copy=False)

        # Samples still buffered in the resampler come out once, after the last frame
        if not self._resampler_flushed:
            self._resampler_flushed = True
            tail = self._resample(None)
            if tail is not None and len(tail):
                return tail.astype(np.float32, copy=False)
        return None
