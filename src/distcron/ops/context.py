"""
Request-scoped context for operations.

Every operation function receives an :class:`OperationContext` as its first
argument.  It carries the store and evaluator handles, a clock and the
caller identity, so API routes, CLI commands and tests call the same code.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from distcron.core.scheduling.evaluator import ScheduleEvaluator
from distcron.core.scheduling.store import DEFAULT_HISTORY_LIMIT, JobStore
from distcron.core.timestamps import utc_now


@dataclass
class OperationContext:
    """Context passed to every operation function.

    Attributes:
        store: Job store handle.
        evaluator: Cron evaluator used to compute next fire times.
        clock: Source of "now".
        request_id: Unique ID for this invocation (auto-generated).
        caller: ``"api"``, ``"cli"`` or ``"sdk"``.
        history_limit: Upper bound on history reads.
    """

    store: JobStore
    evaluator: ScheduleEvaluator = field(default_factory=ScheduleEvaluator)
    clock: Callable[[], datetime] = utc_now
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    caller: str = "sdk"
    history_limit: int = DEFAULT_HISTORY_LIMIT
