"""
CLI: ``distcron scheduler``: run a scheduler node.

``run`` blocks until SIGINT/SIGTERM, which set the loop's cancellation
token; the in-flight tick finishes and held locks are left to expire.
"""

from __future__ import annotations

import signal
import threading
from types import FrameType

import typer

from distcron.cli.utils import console, load_settings, open_runtime, print_table
from distcron.core.logging import get_logger
from distcron.ops.jobs import seed_demo_jobs

app = typer.Typer(no_args_is_help=True)
logger = get_logger(__name__)


def install_signal_handlers(cancel: threading.Event) -> None:
    """Set *cancel* on SIGINT / SIGTERM."""

    def _handler(signum: int, _frame: FrameType | None) -> None:
        logger.info("shutdown_signal_received", signal=signal.Signals(signum).name)
        cancel.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


@app.command("run")
def run(
    database_url: str | None = typer.Option(None, "--database-url", "-d"),
    interval: float | None = typer.Option(None, "--interval", "-i", help="Seconds between ticks"),
    lock_ttl: int | None = typer.Option(None, "--lock-ttl", help="Lock TTL in seconds"),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Jobs processed in parallel per tick"),
    lock_backend: str | None = typer.Option(None, "--lock-backend", help="redis or memory"),
    seed: bool = typer.Option(False, "--seed", help="Insert the demo jobs before starting"),
) -> None:
    """Run the scheduler loop until interrupted."""
    settings = load_settings(
        database_url,
        tick_interval_seconds=interval,
        lock_ttl_seconds=lock_ttl,
        max_workers=workers,
        lock_backend=lock_backend,
    )
    with open_runtime(settings) as runtime:
        if seed or settings.seed_demo_jobs:
            seed_demo_jobs(runtime.operation_context(caller="cli"))

        loop = runtime.scheduler()
        cancel = threading.Event()
        install_signal_handlers(cancel)

        console.print(
            f"[bold green]Scheduler {loop.instance_id} running[/bold green] "
            f"(interval={loop.interval_seconds}s, lock_ttl={loop.lock_ttl_seconds}s, "
            f"workers={loop.max_workers}, locks={settings.lock_backend})"
        )
        loop.run(cancel)

        stats = loop.get_stats()
        console.print(
            f"[dim]Stopped after {stats.tick_count} tick(s): "
            f"{stats.jobs_executed} executed, {stats.jobs_failed} failed, "
            f"{stats.jobs_skipped_locked} skipped (locked)[/dim]"
        )


@app.command("tick")
def tick(
    database_url: str | None = typer.Option(None, "--database-url", "-d"),
    lock_backend: str | None = typer.Option(None, "--lock-backend", help="redis or memory"),
) -> None:
    """Run exactly one tick and report what happened to each due job."""
    settings = load_settings(database_url, lock_backend=lock_backend)
    with open_runtime(settings) as runtime:
        outcomes = runtime.scheduler().run_once()

    if not outcomes:
        console.print("[dim]No jobs due.[/dim]")
        return
    print_table(
        [{"job_id": job_id, "outcome": outcome.value} for job_id, outcome in outcomes.items()],
        title="Tick",
    )
