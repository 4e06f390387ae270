"""Availability and reservation engine for a nine-room chalet."""

__version__ = "0.1.0"
