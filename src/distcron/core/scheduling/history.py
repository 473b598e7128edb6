"""Execution history recording.

Thin layer between the scheduling loop and ``JobStore.append_history`` so
the loop talks in terms of jobs and outcomes, and tests can swap the
recorder without touching persistence.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from distcron.core.models import ExecutionRecord, ExecutionStatus, Job
from distcron.core.scheduling.store import JobStore
from distcron.core.timestamps import utc_now


class HistoryRecorder:
    """Appends one :class:`ExecutionRecord` per execution attempt."""

    def __init__(self, store: JobStore, clock: Callable[[], datetime] = utc_now) -> None:
        self.store = store
        self._clock = clock

    def record(
        self,
        job: Job,
        status: ExecutionStatus,
        details: str | None = None,
        run_at: datetime | None = None,
    ) -> ExecutionRecord:
        """Append a record; ``run_at`` defaults to the recorder's clock.

        Raises:
            StoreUnavailableError: propagated from the store.
        """
        return self.store.append_history(job.id, run_at or self._clock(), status, details)

    def success(self, job: Job, details: str | None = None) -> ExecutionRecord:
        return self.record(job, ExecutionStatus.SUCCESS, details)

    def failure(self, job: Job, details: str | None = None) -> ExecutionRecord:
        return self.record(job, ExecutionStatus.FAILURE, details)


__all__ = ["HistoryRecorder"]
