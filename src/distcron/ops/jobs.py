"""
Job operations.

CRUD and manual triggering for cron jobs, shared by the HTTP API and the
CLI.  Each function takes an :class:`OperationContext` and returns an
:class:`OperationResult`; store failures become ``UNAVAILABLE`` results
instead of exceptions.
"""

from __future__ import annotations

from distcron.core.errors import ErrorCategory, InvalidExpressionError, StoreUnavailableError
from distcron.core.logging import get_logger
from distcron.core.models import ExecutionRecord, Job
from distcron.ops.context import OperationContext
from distcron.ops.result import OperationResult, start_timer

logger = get_logger(__name__)

DEMO_JOBS: tuple[tuple[str, str], ...] = (
    ("Send Email", "*/1 * * * *"),
    ("Database Backup", "*/2 * * * *"),
)


def _unavailable(exc: StoreUnavailableError, elapsed_ms: float) -> OperationResult:
    logger.error("job_store_unavailable", error=str(exc))
    return OperationResult.fail(
        "UNAVAILABLE",
        "Job store unavailable",
        category=ErrorCategory.DATABASE,
        details={"cause": str(exc.cause) if exc.cause else exc.message},
        retryable=True,
        elapsed_ms=elapsed_ms,
    )


def _not_found(job_id: int, elapsed_ms: float) -> OperationResult:
    return OperationResult.fail(
        "NOT_FOUND",
        f"Job {job_id} not found",
        category=ErrorCategory.NOT_FOUND,
        details={"job_id": job_id},
        elapsed_ms=elapsed_ms,
    )


def create_job(ctx: OperationContext, name: str, cron_schedule: str) -> OperationResult[Job]:
    """Validate the expression and persist a job due at its next fire time."""
    timer = start_timer()

    name = (name or "").strip()
    if not name:
        return OperationResult.fail(
            "VALIDATION_FAILED", "name is required", elapsed_ms=timer.elapsed_ms
        )

    cron_schedule = (cron_schedule or "").strip()
    try:
        next_run_at = ctx.evaluator.next(cron_schedule, ctx.clock())
    except InvalidExpressionError as exc:
        return OperationResult.fail(
            "VALIDATION_FAILED",
            "Invalid Cron Schedule",
            category=ErrorCategory.VALIDATION,
            details={"cron_schedule": cron_schedule, "reason": exc.message},
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        job = ctx.store.create(name, cron_schedule, next_run_at)
    except StoreUnavailableError as exc:
        return _unavailable(exc, timer.elapsed_ms)
    return OperationResult.ok(job, elapsed_ms=timer.elapsed_ms)


def get_job(ctx: OperationContext, job_id: int) -> OperationResult[Job]:
    timer = start_timer()
    try:
        job = ctx.store.get(job_id)
    except StoreUnavailableError as exc:
        return _unavailable(exc, timer.elapsed_ms)
    if job is None:
        return _not_found(job_id, timer.elapsed_ms)
    return OperationResult.ok(job, elapsed_ms=timer.elapsed_ms)


def list_jobs(ctx: OperationContext) -> OperationResult[list[Job]]:
    """All jobs, newest first."""
    timer = start_timer()
    try:
        jobs = ctx.store.list_all()
    except StoreUnavailableError as exc:
        return _unavailable(exc, timer.elapsed_ms)
    return OperationResult.ok(jobs, elapsed_ms=timer.elapsed_ms)


def delete_job(ctx: OperationContext, job_id: int) -> OperationResult[dict[str, str]]:
    """Delete a job and, by cascade, its history."""
    timer = start_timer()
    try:
        deleted = ctx.store.delete(job_id)
    except StoreUnavailableError as exc:
        return _unavailable(exc, timer.elapsed_ms)
    if not deleted:
        return _not_found(job_id, timer.elapsed_ms)
    return OperationResult.ok({"status": "deleted"}, elapsed_ms=timer.elapsed_ms)


def trigger_now(ctx: OperationContext, job_id: int) -> OperationResult[Job]:
    """Set ``next_run_at`` to now so the next tick on any node picks it up."""
    timer = start_timer()
    now = ctx.clock()
    try:
        if not ctx.store.trigger(job_id, now):
            return _not_found(job_id, timer.elapsed_ms)
        job = ctx.store.get(job_id)
    except StoreUnavailableError as exc:
        return _unavailable(exc, timer.elapsed_ms)
    if job is None:
        return _not_found(job_id, timer.elapsed_ms)
    logger.info("job_triggered", job_id=job_id, caller=ctx.caller)
    return OperationResult.ok(job, elapsed_ms=timer.elapsed_ms)


def list_history(
    ctx: OperationContext,
    job_id: int | None = None,
    limit: int | None = None,
) -> OperationResult[list[ExecutionRecord]]:
    """Most recent execution records first, capped at ``ctx.history_limit``."""
    timer = start_timer()
    if limit is not None and limit < 1:
        return OperationResult.fail(
            "VALIDATION_FAILED", "limit must be at least 1", elapsed_ms=timer.elapsed_ms
        )
    effective = min(limit or ctx.history_limit, ctx.history_limit)
    try:
        records = ctx.store.list_history(job_id=job_id, limit=effective)
    except StoreUnavailableError as exc:
        return _unavailable(exc, timer.elapsed_ms)
    return OperationResult.ok(records, elapsed_ms=timer.elapsed_ms)


def seed_demo_jobs(ctx: OperationContext) -> OperationResult[list[Job]]:
    """Insert the demo jobs that are missing (matched by name), due immediately."""
    timer = start_timer()
    created: list[Job] = []
    try:
        for name, expression in DEMO_JOBS:
            if ctx.store.find_by_name(name) is not None:
                continue
            created.append(ctx.store.create(name, expression, ctx.clock()))
    except StoreUnavailableError as exc:
        return _unavailable(exc, timer.elapsed_ms)
    if created:
        logger.info("demo_jobs_seeded", count=len(created))
    return OperationResult.ok(created, elapsed_ms=timer.elapsed_ms)


__all__ = [
    "DEMO_JOBS",
    "create_job",
    "delete_job",
    "get_job",
    "list_history",
    "list_jobs",
    "seed_demo_jobs",
    "trigger_now",
]
