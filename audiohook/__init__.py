"""Terminal audio player with an interactive progress line."""

__version__ = "0.1.0"
