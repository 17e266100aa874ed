"""Splitting, scheduling and merging of mixture-of-experts inference tasks."""

__version__ = "0.1.0"