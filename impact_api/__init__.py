"""Meteoroid entry, impact and deflection physics behind a small HTTP API."""

__version__ = "1.0.0"
