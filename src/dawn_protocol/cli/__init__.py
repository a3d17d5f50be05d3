"""Command line interface."""

from dawn_protocol.cli.main import app

__all__ = ["app"]
