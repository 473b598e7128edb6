"""
CLI: ``distcron serve``: start the API server.
"""

from __future__ import annotations

import os
from typing import Any

import typer
import uvicorn

from distcron.cli.utils import console, load_settings


def export_overrides(**overrides: Any) -> None:
    """Copy non-``None`` CLI overrides into ``DISTCRON_*`` environment variables.

    ``--reload`` builds the app in a reloader subprocess from the environment
    alone.
    """
    for name, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        os.environ[f"DISTCRON_{name.upper()}"] = str(value)


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    embed_scheduler: bool | None = typer.Option(
        None, "--embed-scheduler/--no-embed-scheduler", help="Run a scheduler loop inside the server"
    ),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the distcron REST API."""
    settings = load_settings(api_host=host, api_port=port, embed_scheduler=embed_scheduler)

    from distcron.api import create_app

    console.print(
        f"[bold green]Starting distcron API[/bold green] on {settings.api_host}:{settings.api_port}"
    )
    if reload:
        export_overrides(api_host=host, api_port=port, embed_scheduler=embed_scheduler)
        uvicorn.run(
            "distcron.api:create_app",
            factory=True,
            host=settings.api_host,
            port=settings.api_port,
            reload=True,
            log_level=log_level,
        )
        return
    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=log_level,
    )
