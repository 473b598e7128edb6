"""distcron command line (typer)."""

from distcron.cli.app import app

__all__ = ["app"]
