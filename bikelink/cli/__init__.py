"""Command-line interface for bikelink."""

from ._main import main

__all__ = ["main"]
