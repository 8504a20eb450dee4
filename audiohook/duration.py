"""Resolve the playback length of a session from several candidate sources."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# Used when neither the caller, the decoder nor the container knows the length.
FALLBACK_DURATION = 3600.0


def _present(value: float | None) -> bool:
    return value is not None and value > 0


def resolve_duration(
    override: float | None = None,
    decoder: float | None = None,
    header: float | None = None,
) -> float:
    """Return the authoritative playback duration in seconds.

    The first present source wins: an explicit override, then the duration
    reported by the decoder, then the duration stored in the container header.
    Zero or negative values count as absent. When nothing is known the session
    is capped at one hour so it can never wait forever.

    Args:
        override: Duration requested by the caller.
        decoder: Duration reported by the decoder, if it can compute one.
        header: Duration read from the container header.

    Returns:
        The duration in seconds.
    """
    for source, value in (("override", override), ("decoder", decoder), ("header", header)):
        if _present(value):
            assert value is not None
            logger.debug("Using %s duration: %.3fs", source, value)
            return float(value)

    logger.warning("Duration unavailable, falling back to %.0fs", FALLBACK_DURATION)
    return FALLBACK_DURATION
