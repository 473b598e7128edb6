"""
Job store: durable jobs plus append-only execution history.

Manifesto:
    Job rows are the only shared state between scheduler nodes besides the
    lock keyspace.  The store is deliberately dumb: it answers "what is
    due", moves ``next_run_at`` forward and appends history.  It never
    retries; a failing backend surfaces as ``StoreUnavailableError`` and
    the caller decides.

Architecture:
    ::

        SchedulerLoop ──► JobStore.list_due(now)
                      ──► JobStore.advance_next_fire(id, t)
        HistoryRecorder ► JobStore.append_history(...)
        ops.jobs      ──► create / get / list_all / delete / trigger / list_history

        SqlJobStore: one short session per call, SQLAlchemyError → StoreUnavailableError

Tags:
    distcron, scheduling, repository, sqlalchemy

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Protocol, runtime_checkable

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from distcron.core.errors import StoreUnavailableError
from distcron.core.logging import get_logger
from distcron.core.models import ExecutionRecord, ExecutionStatus, Job
from distcron.core.orm.tables import JobHistoryTable, JobTable
from distcron.core.timestamps import as_utc

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 50


@runtime_checkable
class JobStore(Protocol):
    """Persistence contract used by the scheduler and job operations."""

    def list_due(self, now: datetime) -> list[Job]: ...

    def advance_next_fire(self, job_id: int, next_run_at: datetime) -> bool: ...

    def append_history(
        self,
        job_id: int,
        run_at: datetime,
        status: ExecutionStatus,
        details: str | None,
    ) -> ExecutionRecord: ...

    def create(self, name: str, cron_schedule: str, next_run_at: datetime) -> Job: ...

    def get(self, job_id: int) -> Job | None: ...

    def find_by_name(self, name: str) -> Job | None: ...

    def list_all(self) -> list[Job]: ...

    def delete(self, job_id: int) -> bool: ...

    def trigger(self, job_id: int, now: datetime) -> bool: ...

    def list_history(
        self, job_id: int | None = None, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[ExecutionRecord]: ...

    def ping(self) -> bool: ...


def _to_job(row: JobTable) -> Job:
    return Job(
        id=row.id,
        name=row.name,
        cron_schedule=row.cron_schedule,
        next_run_at=as_utc(row.next_run_at),
    )


def _to_record(row: JobHistoryTable) -> ExecutionRecord:
    return ExecutionRecord(
        id=row.id,
        job_id=row.job_id,
        run_at=as_utc(row.run_at),
        status=ExecutionStatus(row.status),
        details=row.details,
    )


class SqlJobStore:
    """SQLAlchemy-backed :class:`JobStore`.

    Each method runs in its own short transaction, so a single instance can
    be shared by the scheduler thread, job worker threads and API requests.

    Example:
        >>> engine = create_distcron_engine("sqlite://")
        >>> init_schema(engine)
        >>> store = SqlJobStore(session_factory(engine))
        >>> store.create("Send Email", "*/1 * * * *", utc_now())
    """

    def __init__(self, sessions: sessionmaker[Session]) -> None:
        self._sessions = sessions

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        try:
            with self._sessions() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(
                f"job store {operation} failed: {exc}", cause=exc
            ).with_context(operation=operation) from exc

    # === Scheduler path ===

    def list_due(self, now: datetime) -> list[Job]:
        """Jobs with ``next_run_at <= now``, ordered by ``(next_run_at, id)``."""
        stmt = (
            select(JobTable)
            .where(JobTable.next_run_at <= as_utc(now))
            .order_by(JobTable.next_run_at, JobTable.id)
        )
        with self._transaction("list_due") as session:
            return [_to_job(row) for row in session.scalars(stmt)]

    def advance_next_fire(self, job_id: int, next_run_at: datetime) -> bool:
        """Persist a new next-fire instant.  ``False`` if the job is gone."""
        return self._set_next_run_at("advance_next_fire", job_id, next_run_at)

    def append_history(
        self,
        job_id: int,
        run_at: datetime,
        status: ExecutionStatus,
        details: str | None,
    ) -> ExecutionRecord:
        row = JobHistoryTable(
            job_id=job_id,
            run_at=as_utc(run_at),
            status=ExecutionStatus(status).value,
            details=details,
        )
        with self._transaction("append_history") as session:
            session.add(row)
            session.flush()
            return _to_record(row)

    # === Job CRUD ===

    def create(self, name: str, cron_schedule: str, next_run_at: datetime) -> Job:
        row = JobTable(name=name, cron_schedule=cron_schedule, next_run_at=as_utc(next_run_at))
        with self._transaction("create") as session:
            session.add(row)
            session.flush()
            job = _to_job(row)
        logger.info("job_created", job_id=job.id, job_name=name, cron_schedule=cron_schedule)
        return job

    def get(self, job_id: int) -> Job | None:
        with self._transaction("get") as session:
            row = session.get(JobTable, job_id)
            return _to_job(row) if row is not None else None

    def find_by_name(self, name: str) -> Job | None:
        stmt = select(JobTable).where(JobTable.name == name).order_by(JobTable.id).limit(1)
        with self._transaction("find_by_name") as session:
            row = session.scalars(stmt).first()
            return _to_job(row) if row is not None else None

    def list_all(self) -> list[Job]:
        """All jobs, newest id first."""
        stmt = select(JobTable).order_by(JobTable.id.desc())
        with self._transaction("list_all") as session:
            return [_to_job(row) for row in session.scalars(stmt)]

    def delete(self, job_id: int) -> bool:
        """Delete a job; its history goes with it (``ON DELETE CASCADE``)."""
        with self._transaction("delete") as session:
            result = session.execute(delete(JobTable).where(JobTable.id == job_id))
            deleted = result.rowcount > 0
        if deleted:
            logger.info("job_deleted", job_id=job_id)
        return deleted

    def trigger(self, job_id: int, now: datetime) -> bool:
        """Make a job due immediately by setting ``next_run_at = now``."""
        return self._set_next_run_at("trigger", job_id, now)

    def list_history(
        self, job_id: int | None = None, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[ExecutionRecord]:
        """Most recent records first, optionally for a single job."""
        stmt = select(JobHistoryTable)
        if job_id is not None:
            stmt = stmt.where(JobHistoryTable.job_id == job_id)
        stmt = stmt.order_by(JobHistoryTable.run_at.desc(), JobHistoryTable.id.desc()).limit(limit)
        with self._transaction("list_history") as session:
            return [_to_record(row) for row in session.scalars(stmt)]

    def ping(self) -> bool:
        with self._transaction("ping") as session:
            session.execute(text("SELECT 1"))
        return True

    def _set_next_run_at(self, operation: str, job_id: int, instant: datetime) -> bool:
        stmt = (
            update(JobTable)
            .where(JobTable.id == job_id)
            .values(next_run_at=as_utc(instant))
        )
        with self._transaction(operation) as session:
            result = session.execute(stmt)
            return result.rowcount > 0


__all__ = ["DEFAULT_HISTORY_LIMIT", "JobStore", "SqlJobStore"]
