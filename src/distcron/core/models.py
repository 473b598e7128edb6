"""
Domain models for jobs and their execution history.

Plain dataclasses, independent of the ORM: the store converts table rows
into these before handing them to the scheduler, API or CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ExecutionStatus(str, Enum):
    """Outcome of one job execution attempt."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class Job:
    """A named job with a five-field cron expression.

    Attributes:
        id: Store-assigned identifier.
        name: Display name; also selects the job body from the registry.
        cron_schedule: Cron expression as entered by the user.
        next_run_at: Next instant (UTC) the job becomes due.
    """

    id: int
    name: str
    cron_schedule: str
    next_run_at: datetime


@dataclass(frozen=True, slots=True)
class ExecutionRecord:
    """One appended row of execution history."""

    id: int
    job_id: int
    run_at: datetime
    status: ExecutionStatus
    details: str | None = None


__all__ = ["ExecutionRecord", "ExecutionStatus", "Job"]
