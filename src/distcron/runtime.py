"""Runtime factory: build the store, lock and scheduler from settings.

This is the **single composition root** shared by the API server, the CLI
and the scheduler process.  Nothing else constructs engines or Redis
clients; everything downstream receives handles.

Usage
-----
::

    from distcron.runtime import build_runtime

    runtime = build_runtime(settings)
    loop = runtime.scheduler()
    ctx = runtime.operation_context(caller="cli")
    ...
    runtime.close()

Backends
--------
==================  ================================  =====================
Setting             Value                             Result
==================  ================================  =====================
``database_url``    ``sqlite://``                     in-memory SQLite
``database_url``    ``sqlite:///distcron.db``         file SQLite
``database_url``    ``postgresql+psycopg://…``        PostgreSQL
``lock_backend``    ``redis``                         RedisLockService
``lock_backend``    ``memory``                        InMemoryLockService
==================  ================================  =====================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.engine import Engine

from distcron.core.errors import ConfigError
from distcron.core.logging import get_logger
from distcron.core.orm import (
    create_distcron_engine,
    init_schema,
    is_memory_url,
    session_factory,
    wait_for_database,
)
from distcron.core.scheduling import (
    InMemoryLockService,
    JobRegistry,
    LockService,
    RedisLockService,
    ScheduleEvaluator,
    SchedulerLoop,
    SqlJobStore,
)
from distcron.core.settings import DistcronSettings
from distcron.ops.context import OperationContext

logger = get_logger(__name__)


@dataclass
class Runtime:
    """Process-wide handles built once from :class:`DistcronSettings`."""

    settings: DistcronSettings
    engine: Engine
    store: SqlJobStore
    lock_service: LockService
    evaluator: ScheduleEvaluator = field(default_factory=ScheduleEvaluator)
    registry: JobRegistry = field(default_factory=JobRegistry)

    def scheduler(self, **overrides: Any) -> SchedulerLoop:
        """Build a :class:`SchedulerLoop` wired to this runtime's handles."""
        options: dict[str, Any] = {
            "interval_seconds": self.settings.tick_interval_seconds,
            "lock_ttl_seconds": self.settings.lock_ttl_seconds,
            "max_workers": self.settings.max_workers,
            "instance_id": self.settings.instance_id,
        }
        options.update(overrides)
        check_worker_pool(self.settings.database_url, options["max_workers"])
        return SchedulerLoop(
            store=self.store,
            lock_service=self.lock_service,
            evaluator=self.evaluator,
            registry=self.registry,
            **options,
        )

    def operation_context(self, caller: str = "sdk") -> OperationContext:
        return OperationContext(
            store=self.store,
            evaluator=self.evaluator,
            caller=caller,
            history_limit=self.settings.history_limit,
        )

    def close(self) -> None:
        if isinstance(self.lock_service, RedisLockService):
            self.lock_service.close()
        self.engine.dispose()


def check_worker_pool(database_url: str, max_workers: int) -> None:
    """Reject a worker pool on a database its threads cannot share.

    In-memory SQLite lives on one pooled connection; concurrent job threads
    would interleave transactions on it.

    Raises:
        ConfigError: *database_url* is in-memory SQLite and *max_workers* > 1.
    """
    if max_workers > 1 and is_memory_url(database_url):
        raise ConfigError(
            f"max_workers={max_workers} needs a file or server database, not {database_url!r}"
        ).with_context(database_url=database_url, max_workers=max_workers)


def create_lock_service(settings: DistcronSettings) -> LockService:
    if settings.lock_backend == "memory":
        return InMemoryLockService(instance_id=settings.instance_id)
    return RedisLockService.from_url(settings.redis_url, instance_id=settings.instance_id)


def build_runtime(
    settings: DistcronSettings,
    *,
    wait: bool = True,
    create_schema: bool = True,
    registry: JobRegistry | None = None,
) -> Runtime:
    """Create engine, store and lock service from *settings*.

    Args:
        settings: Validated settings.
        wait: Retry the first database connection (``database_connect_retries``
            attempts, ``database_retry_delay_seconds`` apart).
        create_schema: Create the tables if missing.
        registry: Job bodies; an empty registry (log-only bodies) by default.

    Raises:
        ConfigError: the settings combine in-memory SQLite with a worker pool.
        StoreUnavailableError: the database never answered.
    """
    check_worker_pool(settings.database_url, settings.max_workers)
    engine = create_distcron_engine(settings.database_url, echo=settings.database_echo)
    if wait:
        wait_for_database(
            engine,
            attempts=settings.database_connect_retries,
            delay_seconds=settings.database_retry_delay_seconds,
        )
    if create_schema:
        init_schema(engine)

    runtime = Runtime(
        settings=settings,
        engine=engine,
        store=SqlJobStore(session_factory(engine)),
        lock_service=create_lock_service(settings),
        registry=registry or JobRegistry(),
    )
    logger.debug(
        "runtime_built",
        lock_backend=settings.lock_backend,
        instance_id=settings.instance_id,
    )
    return runtime


__all__ = ["Runtime", "build_runtime", "check_worker_pool", "create_lock_service"]
