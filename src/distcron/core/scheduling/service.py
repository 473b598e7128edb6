"""
Scheduler loop: the beat that finds due jobs and fires them.

Manifesto:
    Every node runs the same loop and shares nothing but the job table and
    the lock keyspace.  Adding a node adds capacity; losing one costs at
    most one lock TTL of delay.  All collaborators are passed in, so a test
    can run three "nodes" in one process against one in-memory lock.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │ SchedulerLoop.run(cancel)                                     │
        │                                                               │
        │   while not cancel.is_set():                                  │
        │       cancel.wait(interval)  ── returns early on cancel       │
        │       tick()                                                  │
        │                                                               │
        │ tick():                                                       │
        │   due = store.list_due(now)          (error → abandon tick)   │
        │   for job in due:  (or ThreadPoolExecutor when max_workers>1) │
        │       try_acquire(job_lock:<id>)     (no → skip)              │
        │       evaluator.validate(expr)       (bad → skip, no record)  │
        │       body(job)                      (raise → status failure) │
        │       recorder.record(...)           (error → log, go on)     │
        │       store.advance_next_fire(id, evaluator.next(expr, now))  │
        └──────────────────────────────────────────────────────────────┘

    States: IDLE ⇄ TICKING, STOPPED once the cancellation token fires.

Invariant:
    A job that was due and whose lock this node acquired gets a strictly
    later ``next_run_at`` before the tick ends, whether its body succeeded
    or not.  Only a store failure on that final write, or an expression
    that cannot be parsed, leaves it unchanged.

Tags:
    distcron, scheduling, scheduler-loop, distributed, polling

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from distcron.core.errors import (
    InvalidExpressionError,
    LockUnavailableError,
    StoreUnavailableError,
)
from distcron.core.logging import LogContext, get_logger
from distcron.core.models import ExecutionStatus, Job
from distcron.core.scheduling.evaluator import ScheduleEvaluator
from distcron.core.scheduling.history import HistoryRecorder
from distcron.core.scheduling.lock import DEFAULT_LOCK_TTL_SECONDS, LockService, lock_key
from distcron.core.scheduling.registry import DEFAULT_DETAILS, JobRegistry
from distcron.core.scheduling.store import JobStore
from distcron.core.timestamps import to_iso8601, utc_now

logger = get_logger(__name__)

DEFAULT_TICK_INTERVAL_SECONDS = 10.0
STOP_JOIN_TIMEOUT_SECONDS = 5.0


class LoopState(str, Enum):
    IDLE = "idle"
    TICKING = "ticking"
    STOPPED = "stopped"


class JobOutcome(str, Enum):
    """What happened to one due job during a tick."""

    EXECUTED = "executed"
    FAILED = "failed"  # body raised; recorded and advanced
    SKIPPED_LOCKED = "skipped_locked"
    SKIPPED_INVALID = "skipped_invalid"
    LOCK_ERROR = "lock_error"
    STORE_ERROR = "store_error"
    ERROR = "error"


@dataclass
class SchedulerStats:
    """Counters for one loop instance."""

    tick_count: int = 0
    jobs_executed: int = 0
    jobs_failed: int = 0
    jobs_skipped_locked: int = 0
    jobs_skipped_invalid: int = 0
    store_errors: int = 0
    lock_errors: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["last_tick"] = to_iso8601(self.last_tick)
        return d


_OUTCOME_COUNTER = {
    JobOutcome.EXECUTED: "jobs_executed",
    JobOutcome.FAILED: "jobs_failed",
    JobOutcome.SKIPPED_LOCKED: "jobs_skipped_locked",
    JobOutcome.SKIPPED_INVALID: "jobs_skipped_invalid",
    JobOutcome.LOCK_ERROR: "lock_errors",
    JobOutcome.STORE_ERROR: "store_errors",
}


class SchedulerLoop:
    """Periodic scan-lock-execute-advance loop for one scheduler instance.

    Example:
        >>> loop = SchedulerLoop(
        ...     store=SqlJobStore(session_factory(engine)),
        ...     lock_service=RedisLockService.from_url("redis://localhost:6379/0"),
        ... )
        >>> cancel = threading.Event()
        >>> loop.run(cancel)          # blocks until cancel.set()

    Args:
        store: Job store handle.
        lock_service: Lock service handle shared with the other nodes.
        evaluator: Cron evaluator (a fresh one by default).
        recorder: History recorder (wraps *store* by default).
        registry: Job bodies by name (log-only bodies by default).
        interval_seconds: Delay between ticks.
        lock_ttl_seconds: TTL of each ``job_lock:<id>`` key.
        max_workers: Jobs processed concurrently per tick; 1 is sequential.
        instance_id: Identifies this node in logs and lock values.
        clock: Source of "now"; injectable for tests.
    """

    def __init__(
        self,
        store: JobStore,
        lock_service: LockService,
        evaluator: ScheduleEvaluator | None = None,
        recorder: HistoryRecorder | None = None,
        registry: JobRegistry | None = None,
        *,
        interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
        max_workers: int = 1,
        instance_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be greater than zero")
        if lock_ttl_seconds < 1:
            raise ValueError("lock_ttl_seconds must be at least 1")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.store = store
        self.lock_service = lock_service
        self.evaluator = evaluator or ScheduleEvaluator()
        self.recorder = recorder or HistoryRecorder(store, clock=clock)
        self.registry = registry or JobRegistry()
        self.interval_seconds = interval_seconds
        self.lock_ttl_seconds = lock_ttl_seconds
        self.max_workers = max_workers
        self.instance_id = instance_id or str(uuid4())
        self._clock = clock

        self._state = LoopState.IDLE
        self._stats = SchedulerStats()
        self._stats_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # === Lifecycle ===

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self, cancel: threading.Event | None = None) -> None:
        """Tick every ``interval_seconds`` until *cancel* is set.

        The token is checked at the top of every iteration and the wait
        between ticks returns as soon as it is set.  An in-flight tick is
        allowed to finish; held locks are left to expire.
        """
        token = cancel or self._stop_event
        if self._state is LoopState.STOPPED:
            logger.warning("scheduler_already_stopped", instance_id=self.instance_id)
            return

        with LogContext(instance_id=self.instance_id):
            logger.info(
                "scheduler_started",
                interval_seconds=self.interval_seconds,
                lock_ttl_seconds=self.lock_ttl_seconds,
                max_workers=self.max_workers,
            )
            while not token.is_set():
                if token.wait(self.interval_seconds):
                    break
                try:
                    self.tick()
                except Exception:  # noqa: BLE001
                    logger.exception("tick_crashed")
            self._state = LoopState.STOPPED
            logger.info("scheduler_stopped", tick_count=self._stats.tick_count)

    def start(self) -> None:
        """Run the loop in a daemon thread."""
        if self.is_running:
            logger.warning("scheduler_already_running", instance_id=self.instance_id)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            args=(self._stop_event,),
            daemon=True,
            name=f"distcron-scheduler-{self.instance_id}",
        )
        self._thread.start()

    def stop(self, timeout: float = STOP_JOIN_TIMEOUT_SECONDS) -> None:
        """Set the cancellation token and wait for the loop thread."""
        self._stop_event.set()
        if self._thread is None:
            self._state = LoopState.STOPPED
            return
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("scheduler_thread_still_running", timeout=timeout)
        self._thread = None

    # === Tick Processing ===

    def run_once(self) -> dict[int, JobOutcome]:
        """Run a single tick outside the loop."""
        with LogContext(instance_id=self.instance_id):
            return self.tick()

    def tick(self) -> dict[int, JobOutcome]:
        """Scan for due jobs and process each one.

        Returns:
            Outcome per due job id (empty when nothing was due or the scan failed).
        """
        if self._state is LoopState.STOPPED:
            return {}
        self._state = LoopState.TICKING
        try:
            now = self._clock()
            with self._stats_lock:
                self._stats.tick_count += 1
                self._stats.last_tick = now

            try:
                due = self.store.list_due(now)
            except StoreUnavailableError as exc:
                logger.error("due_scan_failed", error=str(exc))
                self._count(JobOutcome.STORE_ERROR, error=str(exc))
                return {}

            if not due:
                logger.debug("no_jobs_due")
                return {}

            logger.info("jobs_due", count=len(due))

            if self.max_workers == 1 or len(due) == 1:
                return {job.id: self._process_isolated(job) for job in due}

            with ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(due)),
                thread_name_prefix="distcron-job",
            ) as pool:
                outcomes = list(pool.map(self._process_isolated, due))
            return {job.id: outcome for job, outcome in zip(due, outcomes, strict=True)}
        finally:
            if self._state is LoopState.TICKING:
                self._state = LoopState.IDLE

    def _process_isolated(self, job: Job) -> JobOutcome:
        try:
            return self.process_job(job)
        except Exception as exc:  # noqa: BLE001
            logger.exception("job_processing_crashed", job_id=job.id, job_name=job.name)
            with self._stats_lock:
                self._stats.last_error = str(exc)
            return JobOutcome.ERROR

    def process_job(self, job: Job) -> JobOutcome:
        """Lock, execute, record and advance a single due job."""
        key = lock_key(job.id)
        log = logger.bind(job_id=job.id, job_name=job.name)

        try:
            acquired = self.lock_service.try_acquire(key, self.lock_ttl_seconds)
        except LockUnavailableError as exc:
            log.warning("lock_unavailable", lock_key=key, error=str(exc))
            return self._count(JobOutcome.LOCK_ERROR, error=str(exc))

        if not acquired:
            log.debug("job_locked_by_another_node", lock_key=key)
            return self._count(JobOutcome.SKIPPED_LOCKED)

        try:
            self.evaluator.validate(job.cron_schedule)
        except InvalidExpressionError as exc:
            log.error("cron_parse_failed", cron_schedule=job.cron_schedule, error=str(exc))
            return self._count(JobOutcome.SKIPPED_INVALID, error=str(exc))

        status, details = self._invoke(job, log)

        try:
            self.recorder.record(job, status, details)
        except StoreUnavailableError as exc:
            log.error("history_append_failed", error=str(exc))
            self._count(JobOutcome.STORE_ERROR, error=str(exc))

        try:
            next_run_at = self.evaluator.next(job.cron_schedule, self._clock())
        except InvalidExpressionError as exc:
            log.error("cron_parse_failed", cron_schedule=job.cron_schedule, error=str(exc))
            return self._count(JobOutcome.SKIPPED_INVALID, error=str(exc))

        try:
            advanced = self.store.advance_next_fire(job.id, next_run_at)
        except StoreUnavailableError as exc:
            log.error("advance_next_fire_failed", error=str(exc))
            return self._count(JobOutcome.STORE_ERROR, error=str(exc))

        if not advanced:
            log.warning("job_deleted_during_execution")

        outcome = JobOutcome.EXECUTED if status is ExecutionStatus.SUCCESS else JobOutcome.FAILED
        log.info(
            "job_executed",
            status=status.value,
            next_run_at=next_run_at.isoformat(),
        )
        return self._count(outcome)

    def _invoke(self, job: Job, log: Any) -> tuple[ExecutionStatus, str]:
        body = self.registry.resolve(job.name)
        try:
            result = body(job)
        except Exception as exc:  # noqa: BLE001
            log.exception("job_body_failed")
            return ExecutionStatus.FAILURE, str(exc) or exc.__class__.__name__
        return ExecutionStatus.SUCCESS, result or DEFAULT_DETAILS

    def _count(self, outcome: JobOutcome, error: str | None = None) -> JobOutcome:
        counter = _OUTCOME_COUNTER.get(outcome)
        with self._stats_lock:
            if counter is not None:
                setattr(self._stats, counter, getattr(self._stats, counter) + 1)
            if error is not None:
                self._stats.last_error = error
        return outcome

    # === Monitoring ===

    def get_stats(self) -> SchedulerStats:
        with self._stats_lock:
            return SchedulerStats(**asdict(self._stats))

    def reset_stats(self) -> None:
        with self._stats_lock:
            self._stats = SchedulerStats()

    def health(self) -> dict[str, Any]:
        stats = self.get_stats()
        return {
            "state": self._state.value,
            "running": self.is_running,
            "instance_id": self.instance_id,
            "interval_seconds": self.interval_seconds,
            "lock_ttl_seconds": self.lock_ttl_seconds,
            "max_workers": self.max_workers,
            "stats": stats.to_dict(),
        }


__all__ = [
    "DEFAULT_TICK_INTERVAL_SECONDS",
    "JobOutcome",
    "LoopState",
    "SchedulerLoop",
    "SchedulerStats",
]
