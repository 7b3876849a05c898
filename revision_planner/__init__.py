"""Spaced-repetition tracker for coding practice problems."""

__version__ = "0.1.0"
