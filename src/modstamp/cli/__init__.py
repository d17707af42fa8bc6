"""Command-line front-end for modstamp."""

from modstamp.cli.app import app

__all__ = ["app"]
