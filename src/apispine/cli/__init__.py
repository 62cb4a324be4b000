"""api-spine command line interface."""

from apispine.cli.app import app

__all__ = ["app"]
