"""
Root Typer application for the distcron CLI.

    distcron db init|seed
    distcron jobs list|show|create|delete|trigger|history
    distcron scheduler run|tick
    distcron serve
"""

from __future__ import annotations

import typer
from typer import Typer

from distcron import __version__
from distcron.cli.db import app as db_app
from distcron.cli.jobs import app as jobs_app
from distcron.cli.scheduler import app as scheduler_app
from distcron.cli.serve import serve
from distcron.cli.utils import load_settings
from distcron.core.logging import configure_logging

app = Typer(
    name="distcron",
    help="distcron: distributed cron scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"distcron {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override DISTCRON_LOG_LEVEL."),
) -> None:
    """distcron CLI: manage jobs and run scheduler nodes."""
    settings = load_settings(log_level=log_level)
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(jobs_app, name="jobs", help="Job management.")
app.add_typer(scheduler_app, name="scheduler", help="Run a scheduler node.")
app.command("serve", help="Start the API server.")(serve)
