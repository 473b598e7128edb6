"""
CLI: ``distcron db``: schema creation and demo data.
"""

from __future__ import annotations

import typer

from distcron.cli.utils import console, load_settings, open_runtime, output_result
from distcron.ops.jobs import seed_demo_jobs

app = typer.Typer(no_args_is_help=True)


@app.command("init")
def init(
    database_url: str | None = typer.Option(None, "--database-url", "-d"),
) -> None:
    """Create the jobs and job_history tables if they do not exist."""
    settings = load_settings(database_url, lock_backend="memory")
    with open_runtime(settings):
        pass
    console.print("[green]Schema ready[/green]")


@app.command("seed")
def seed(
    database_url: str | None = typer.Option(None, "--database-url", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Insert the demo jobs ("Send Email", "Database Backup") if missing."""
    settings = load_settings(database_url, lock_backend="memory")
    with open_runtime(settings) as runtime:
        output_result(
            seed_demo_jobs(runtime.operation_context(caller="cli")),
            as_json=json_out,
            title="Seeded Jobs",
        )
