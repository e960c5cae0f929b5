"""Signed prompt relay with a durable job queue."""

__version__ = "0.1.0"
