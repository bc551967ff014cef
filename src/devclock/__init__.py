"""Passive coding-time tracker with period summaries."""

__version__ = "0.1.0"
