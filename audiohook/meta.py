"""Track metadata read from the container header."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import av
from av.container import InputContainer

from audiohook.errors import DecodeError
from audiohook.icons import IconSet

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TrackInfo:
    """Facts about an audio file, as far as its container knows them."""

    path: Path
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    duration: float | None = None
    """Duration stored in the container header, None when unknown or zero."""
    bitrate: int | None = None
    sample_rate: int | None = None
    channels: int | None = None
    format: str | None = None
    size: int | None = None

    def describe(self) -> str:
        """Return a human-friendly description of the track."""
        lines: list[str] = [f"File: {self.path}"]
        if self.title:
            lines.append(f"Title: {self.title}")
        if self.artist:
            lines.append(f"Artist: {self.artist}")
        if self.album:
            lines.append(f"Album: {self.album}")
        if self.duration is not None:
            lines.append(f"Duration: {self.duration:.2f} s")
        if self.format:
            lines.append(f"Format: {self.format}")
        if self.bitrate:
            lines.append(f"Bitrate: {self.bitrate // 1000} kb/s")
        if self.sample_rate:
            lines.append(f"Sample rate: {self.sample_rate} Hz")
        if self.channels:
            lines.append(f"Channels: {self.channels}")
        if self.size is not None:
            lines.append(f"Size: {self.size} bytes")
        return "\n".join(lines)


def _tag(metadata: Mapping[str, str], *names: str) -> str | None:
    """Case-insensitive lookup of the first non-empty tag among ``names``."""
    lowered = {key.lower(): value for key, value in metadata.items()}
    for name in names:
        value = lowered.get(name)
        if value and value.strip():
            return value.strip()
    return None


def probe_track(path: Path | str) -> TrackInfo:
    """Read tags and stream facts from ``path`` without decoding audio.

    Raises:
        DecodeError: If the file cannot be opened as a media container.
    """
    path = Path(path)
    try:
        container = av.open(str(path))
    except (av.FFmpegError, OSError) as err:
        raise DecodeError(f"Cannot open {path}: {err}") from err

    assert isinstance(container, InputContainer)
    try:
        info = TrackInfo(path=path, format=path.suffix.lstrip(".").lower() or None)
        try:
            info.size = path.stat().st_size
        except OSError:
            info.size = None

        # Tags may live on the container (ID3, MP4) or on the stream (Ogg)
        tags: dict[str, str] = {}
        if container.streams.audio:
            stream = container.streams.audio[0]
            tags.update(stream.metadata)
            info.sample_rate = stream.rate or None
            info.channels = stream.channels or None
        tags.update(container.metadata)

        info.title = _tag(tags, "title")
        info.artist = _tag(tags, "artist", "album_artist")
        info.album = _tag(tags, "album")
        info.bitrate = container.bit_rate or None
        if container.duration:
            info.duration = container.duration / av.time_base
    finally:
        container.close()

    logger.debug("Probed %s: %s", path, info)
    return info


def format_header(info: TrackInfo, icons: IconSet) -> str | None:
    """Build the "now playing" header, or None when the track has no tags."""
    if info.artist and info.title:
        text = f"{info.artist}{icons.separator}{info.title}"
    else:
        text = info.title or info.artist
    if not text:
        return None
    return f"{icons.now_playing} {text}"
