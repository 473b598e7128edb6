"""
API schemas: success envelope, RFC 7807 errors and job payloads.

Every endpoint returns either :class:`SuccessResponse` (200/201) or
:class:`ProblemDetail` (4xx/5xx).

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from distcron.core.models import ExecutionStatus

T = TypeVar("T")


# ── RFC 7807 Problem Detail ─────────────────────────────────────────────


class ErrorDetail(BaseModel):
    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    field: str | None = Field(default=None, description="Field path if error is field-specific")


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Error Codes:
        - ``VALIDATION_FAILED`` (400): empty name, invalid cron expression
        - ``NOT_FOUND`` (404): job does not exist
        - ``UNAVAILABLE`` (503): job store unreachable
    """

    type: str = Field(default="about:blank")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="")
    instance: str = Field(default="")
    errors: list[ErrorDetail] = Field(default_factory=list)


# ── Success Envelope ────────────────────────────────────────────────────


class SuccessResponse(BaseModel, Generic[T]):
    data: T = Field(description="Response payload")
    elapsed_ms: float = Field(default=0.0, description="Server-side processing time in milliseconds")


# ── Jobs ─────────────────────────────────────────────────────────────────


class JobSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    cron_schedule: str
    next_run_at: datetime


class ExecutionRecordSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    run_at: datetime
    status: ExecutionStatus
    details: str | None = None


class CreateJobBody(BaseModel):
    name: str = Field(description="Display name; selects the job body")
    cron_schedule: str = Field(description="Five-field cron expression, e.g. '*/5 * * * *'")


class StatusSchema(BaseModel):
    status: str
