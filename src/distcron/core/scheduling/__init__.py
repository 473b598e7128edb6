"""
Distributed cron scheduling.

Public API::

    from distcron.core.scheduling import (
        SchedulerLoop,        # scan → lock → execute → record → advance
        SqlJobStore,          # jobs + history over SQLAlchemy
        RedisLockService,     # SET NX EX locks
        InMemoryLockService,  # same semantics, one process
        ScheduleEvaluator,    # next fire time from a cron expression
        HistoryRecorder,
        JobRegistry,
    )

Tags:
    distcron, scheduling, cron, distributed-locks

Doc-Types:
    api-reference
"""

from distcron.core.scheduling.evaluator import CRON_FIELD_COUNT, ScheduleEvaluator
from distcron.core.scheduling.history import HistoryRecorder
from distcron.core.scheduling.lock import (
    DEFAULT_LOCK_TTL_SECONDS,
    InMemoryLockService,
    LockService,
    RedisLockService,
    lock_key,
)
from distcron.core.scheduling.registry import DEFAULT_DETAILS, JobBody, JobRegistry, log_only_body
from distcron.core.scheduling.service import (
    DEFAULT_TICK_INTERVAL_SECONDS,
    JobOutcome,
    LoopState,
    SchedulerLoop,
    SchedulerStats,
)
from distcron.core.scheduling.store import DEFAULT_HISTORY_LIMIT, JobStore, SqlJobStore

__all__ = [
    "CRON_FIELD_COUNT",
    "DEFAULT_DETAILS",
    "DEFAULT_HISTORY_LIMIT",
    "DEFAULT_LOCK_TTL_SECONDS",
    "DEFAULT_TICK_INTERVAL_SECONDS",
    "HistoryRecorder",
    "InMemoryLockService",
    "JobBody",
    "JobOutcome",
    "JobRegistry",
    "JobStore",
    "LockService",
    "LoopState",
    "RedisLockService",
    "ScheduleEvaluator",
    "SchedulerLoop",
    "SchedulerStats",
    "SqlJobStore",
    "lock_key",
    "log_only_body",
]
