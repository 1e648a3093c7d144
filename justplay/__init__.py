"""JustPlay: a local video player session core."""

__version__ = "0.1.0"
