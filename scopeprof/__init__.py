"""Scope profiler: binary session recording, reading, analysis and plotting."""

__version__ = "0.1.0"