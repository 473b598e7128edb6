"""
CLI: ``distcron jobs``: job CRUD, manual trigger and history.
"""

from __future__ import annotations

import typer

from distcron.cli.utils import operation_context, output_result
from distcron.ops import jobs as job_ops

app = typer.Typer(no_args_is_help=True)

DatabaseOption = typer.Option(None, "--database-url", "-d", help="SQLAlchemy URL of the job store")
JsonOption = typer.Option(False, "--json", help="Emit JSON")


@app.command("list")
def list_jobs(
    database_url: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """List all jobs, newest first."""
    with operation_context(database_url) as ctx:
        output_result(job_ops.list_jobs(ctx), as_json=json_out, title="Jobs")


@app.command("show")
def show_job(
    job_id: int = typer.Argument(..., help="Job ID"),
    database_url: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Show one job."""
    with operation_context(database_url) as ctx:
        output_result(job_ops.get_job(ctx, job_id), as_json=json_out, title=f"Job {job_id}")


@app.command("create")
def create_job(
    name: str = typer.Argument(..., help="Job name"),
    cron: str = typer.Option(..., "--cron", "-c", help="Five-field cron expression"),
    database_url: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Create a job."""
    with operation_context(database_url) as ctx:
        output_result(job_ops.create_job(ctx, name, cron), as_json=json_out, title="Job Created")


@app.command("delete")
def delete_job(
    job_id: int = typer.Argument(..., help="Job ID"),
    database_url: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Delete a job and its history."""
    with operation_context(database_url) as ctx:
        output_result(job_ops.delete_job(ctx, job_id), as_json=json_out, title="Job Deleted")


@app.command("trigger")
def trigger_job(
    job_id: int = typer.Argument(..., help="Job ID"),
    database_url: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Make a job due now; the next scheduler tick runs it."""
    with operation_context(database_url) as ctx:
        output_result(job_ops.trigger_now(ctx, job_id), as_json=json_out, title="Job Scheduled Now")


@app.command("history")
def job_history(
    job_id: int | None = typer.Option(None, "--job-id", "-j", help="Restrict to one job"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1, help="Max records"),
    database_url: str | None = DatabaseOption,
    json_out: bool = JsonOption,
) -> None:
    """Show recent executions, most recent first."""
    with operation_context(database_url) as ctx:
        output_result(
            job_ops.list_history(ctx, job_id=job_id, limit=limit),
            as_json=json_out,
            title="Execution History",
        )
