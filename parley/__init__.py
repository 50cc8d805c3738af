"""Parley - direct messaging and social graph service."""

__version__ = "0.1.0"
