"""Duplicate detection for movie and series libraries."""

__version__ = "0.1.0"
