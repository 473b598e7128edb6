"""ORM table definitions: ``jobs`` and ``job_history``.

Column names follow the relational schema the scheduler nodes share::

    jobs(id, name, cron_schedule, next_run_at)
    job_history(id, job_id → jobs.id ON DELETE CASCADE, run_at, status, details)
"""

from __future__ import annotations

import datetime

from sqlalchemy import ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from distcron.core.orm.base import DistcronBase


class JobTable(DistcronBase):
    __tablename__ = "jobs"
    __table_args__ = (Index("idx_jobs_next_run_at", "next_run_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(nullable=False)
    cron_schedule: Mapped[str] = mapped_column(nullable=False)
    next_run_at: Mapped[datetime.datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<JobTable id={self.id} name={self.name!r} next_run_at={self.next_run_at}>"


class JobHistoryTable(DistcronBase):
    __tablename__ = "job_history"
    __table_args__ = (Index("idx_job_history_job_run_at", "job_id", "run_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    run_at: Mapped[datetime.datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(nullable=False)
    details: Mapped[str | None] = mapped_column(nullable=True)
