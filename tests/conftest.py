"""
Shared pytest fixtures for distcron tests.

Provides an in-memory job store, a controllable clock, an in-memory lock
service that shares that clock, and a factory for scheduler loops so a test
can run several "nodes" against the same store and lock keyspace.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta

import pytest
import structlog

from distcron.core.orm import create_distcron_engine, init_schema, session_factory
from distcron.core.scheduling import (
    InMemoryLockService,
    JobRegistry,
    ScheduleEvaluator,
    SchedulerLoop,
    SqlJobStore,
)
from distcron.ops.context import OperationContext


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture(autouse=True)
def _clear_log_context() -> Iterator[None]:
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at 2024-01-01 12:00:30 UTC."""
    return FrozenClock(datetime(2024, 1, 1, 12, 0, 30, tzinfo=UTC))


@pytest.fixture
def engine():
    engine = create_distcron_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> SqlJobStore:
    return SqlJobStore(session_factory(engine))


@pytest.fixture
def locks(clock) -> InMemoryLockService:
    return InMemoryLockService(clock=clock, instance_id="test-node")


@pytest.fixture
def evaluator() -> ScheduleEvaluator:
    return ScheduleEvaluator()


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
def make_loop(store, locks, registry, clock) -> Callable[..., SchedulerLoop]:
    """Factory for scheduler loops sharing the store, lock service and clock."""

    def _make(**overrides) -> SchedulerLoop:
        options = {
            "store": store,
            "lock_service": locks,
            "registry": registry,
            "interval_seconds": 0.05,
            "lock_ttl_seconds": 10,
            "instance_id": "node-a",
            "clock": clock,
        }
        options.update(overrides)
        return SchedulerLoop(**options)

    return _make


@pytest.fixture
def loop(make_loop) -> SchedulerLoop:
    return make_loop()


@pytest.fixture
def op_ctx(store, evaluator, clock) -> OperationContext:
    return OperationContext(store=store, evaluator=evaluator, clock=clock, caller="test")
