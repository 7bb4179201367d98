"""Command-line interface for htree."""

from .main import main

__all__ = ["main"]
