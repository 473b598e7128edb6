"""Job body registry.

A job's *body* is the side-effecting action run when it fires.  Bodies are
looked up by job name; names without a registered body fall back to
:func:`log_only_body`, which records that the job ran and nothing else.

Tags:
    distcron, scheduling, registry, job-body

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable

from distcron.core.logging import get_logger
from distcron.core.models import Job

logger = get_logger(__name__)

DEFAULT_DETAILS = "Executed via scheduler"

JobBody = Callable[[Job], str | None]


def log_only_body(job: Job) -> str:
    """Default body: emit a log event and report the standard details."""
    logger.info("job_body_executed", job_id=job.id, job_name=job.name)
    return DEFAULT_DETAILS


class JobRegistry:
    """Maps job names to callables.

    A body receives the :class:`Job` and may return a details string for the
    execution record; raising marks the execution as failed.

    Example:
        >>> registry = JobRegistry()
        >>> @registry.job("Database Backup")
        ... def backup(job):
        ...     return "dumped 3 tables"
    """

    def __init__(self, default: JobBody = log_only_body) -> None:
        self._bodies: dict[str, JobBody] = {}
        self._default = default

    def register(self, name: str, body: JobBody) -> None:
        if name in self._bodies:
            raise ValueError(f"job body '{name}' is already registered")
        self._bodies[name] = body
        logger.debug("job_body_registered", job_name=name, body=getattr(body, "__name__", repr(body)))

    def job(self, name: str) -> Callable[[JobBody], JobBody]:
        """Decorator form of :meth:`register`."""

        def decorator(body: JobBody) -> JobBody:
            self.register(name, body)
            return body

        return decorator

    def resolve(self, name: str) -> JobBody:
        return self._bodies.get(name, self._default)

    def names(self) -> list[str]:
        return sorted(self._bodies)

    def __contains__(self, name: object) -> bool:
        return name in self._bodies


__all__ = ["DEFAULT_DETAILS", "JobBody", "JobRegistry", "log_only_body"]
