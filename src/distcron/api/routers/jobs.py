"""
Job router: CRUD, manual trigger and execution history.

GET    /jobs
POST   /jobs
GET    /jobs/history?job_id=
GET    /jobs/{job_id}
DELETE /jobs/{job_id}
POST   /jobs/{job_id}/run
"""

from __future__ import annotations

from fastapi import APIRouter, Path, Query, Request

from distcron.api.deps import OpContext
from distcron.api.errors import handle_error
from distcron.api.schemas import (
    CreateJobBody,
    ExecutionRecordSchema,
    JobSchema,
    StatusSchema,
    SuccessResponse,
)
from distcron.ops import jobs as job_ops

router = APIRouter(prefix="/jobs")


@router.get("", response_model=SuccessResponse[list[JobSchema]])
def list_jobs(ctx: OpContext, request: Request):
    """List all jobs, newest first.

    Example:
        GET /api/v1/jobs

        Response:
        {
            "data": [
                {"id": 2, "name": "Database Backup", "cron_schedule": "*/2 * * * *",
                 "next_run_at": "2024-01-01T12:02:00Z"}
            ]
        }
    """
    result = job_ops.list_jobs(ctx)
    if not result.success:
        return handle_error(result, request)
    return SuccessResponse(
        data=[JobSchema.model_validate(job) for job in result.data or []],
        elapsed_ms=result.elapsed_ms,
    )


@router.post("", response_model=SuccessResponse[JobSchema], status_code=201)
def create_job(ctx: OpContext, body: CreateJobBody, request: Request):
    """Create a job; ``next_run_at`` is the first fire time after now.

    Raises:
        400 VALIDATION_FAILED: empty name or invalid cron expression.
    """
    result = job_ops.create_job(ctx, body.name, body.cron_schedule)
    if not result.success:
        return handle_error(result, request)
    return SuccessResponse(data=JobSchema.model_validate(result.data), elapsed_ms=result.elapsed_ms)


@router.get("/history", response_model=SuccessResponse[list[ExecutionRecordSchema]])
def list_history(
    ctx: OpContext,
    request: Request,
    job_id: int | None = Query(None, description="Restrict to one job"),
    limit: int | None = Query(None, ge=1, description="Max records (capped at the server limit)"),
):
    """Most recent execution records first."""
    result = job_ops.list_history(ctx, job_id=job_id, limit=limit)
    if not result.success:
        return handle_error(result, request)
    return SuccessResponse(
        data=[ExecutionRecordSchema.model_validate(r) for r in result.data or []],
        elapsed_ms=result.elapsed_ms,
    )


@router.get("/{job_id}", response_model=SuccessResponse[JobSchema])
def get_job(ctx: OpContext, request: Request, job_id: int = Path(..., description="Job ID")):
    result = job_ops.get_job(ctx, job_id)
    if not result.success:
        return handle_error(result, request)
    return SuccessResponse(data=JobSchema.model_validate(result.data), elapsed_ms=result.elapsed_ms)


@router.delete("/{job_id}", response_model=SuccessResponse[StatusSchema])
def delete_job(ctx: OpContext, request: Request, job_id: int = Path(..., description="Job ID")):
    """Delete a job together with its history."""
    result = job_ops.delete_job(ctx, job_id)
    if not result.success:
        return handle_error(result, request)
    return SuccessResponse(data=StatusSchema(**result.data), elapsed_ms=result.elapsed_ms)


@router.post("/{job_id}/run", response_model=SuccessResponse[JobSchema])
def run_job_now(ctx: OpContext, request: Request, job_id: int = Path(..., description="Job ID")):
    """Make a job due immediately; the next tick on any node fires it."""
    result = job_ops.trigger_now(ctx, job_id)
    if not result.success:
        return handle_error(result, request)
    return SuccessResponse(data=JobSchema.model_validate(result.data), elapsed_ms=result.elapsed_ms)
