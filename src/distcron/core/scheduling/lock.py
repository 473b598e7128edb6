"""
Distributed job locks.

Manifesto:
    Several scheduler nodes see the same due job at the same moment.
    Exactly one of them may fire it.  A lock here is nothing more than a
    key that is created only if absent and that expires on its own, so a
    node that dies mid-job can never wedge the schedule.

    There is no release: ownership ends when the TTL runs out.  The TTL
    therefore bounds both the protection window and the recovery time.

Architecture:
    ::

        node A ── SET job_lock:7 node-a NX EX 10 ──► OK     → fires job 7
        node B ── SET job_lock:7 node-b NX EX 10 ──► (nil)  → skips job 7
                  ... 10 s later the key expires ...

    Implementations:
        RedisLockService     production; one atomic SET NX EX round trip
        InMemoryLockService  single process; tests and ``lock_backend=memory``

Guardrails:
    - A job body running longer than the TTL can overlap with the next
      holder.  Fencing tokens (a monotonically increasing number stored
      with the lock and checked by the store on write) would close that
      gap and are not implemented.

Tags:
    distcron, scheduling, distributed-locks, TTL, redis

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

import redis

from distcron.core.errors import LockUnavailableError
from distcron.core.logging import get_logger
from distcron.core.timestamps import utc_now

logger = get_logger(__name__)

LOCK_KEY_PREFIX = "job_lock:"
DEFAULT_LOCK_TTL_SECONDS = 10


def lock_key(job_id: int) -> str:
    """Lock key for a job: ``job_lock:<job id>``."""
    return f"{LOCK_KEY_PREFIX}{job_id}"


def _check_ttl(ttl_seconds: int) -> None:
    if ttl_seconds < 1:
        raise ValueError(f"lock ttl must be at least 1 second, got {ttl_seconds}")


@runtime_checkable
class LockService(Protocol):
    """TTL-bounded mutual exclusion keyed by string."""

    def try_acquire(self, key: str, ttl_seconds: int) -> bool:
        """Create *key* only if absent, expiring after *ttl_seconds*.

        Returns ``True`` iff this call created the key.
        """
        ...

    def ping(self) -> bool: ...


class RedisLockService:
    """Lock service backed by Redis ``SET key value NX EX ttl``.

    The stored value is the acquiring instance id; only the key's presence
    matters for exclusion.

    Example:
        >>> locks = RedisLockService.from_url("redis://localhost:6379/0", instance_id="node-a")
        >>> locks.try_acquire(lock_key(7), 10)
        True
        >>> locks.try_acquire(lock_key(7), 10)
        False
    """

    def __init__(self, client: redis.Redis, instance_id: str | None = None) -> None:
        self._client = client
        self.instance_id = instance_id or str(uuid4())

    @classmethod
    def from_url(cls, url: str, instance_id: str | None = None, **kwargs: Any) -> RedisLockService:
        kwargs.setdefault("socket_connect_timeout", 2.0)
        kwargs.setdefault("socket_timeout", 2.0)
        return cls(redis.Redis.from_url(url, **kwargs), instance_id=instance_id)

    def try_acquire(self, key: str, ttl_seconds: int) -> bool:
        _check_ttl(ttl_seconds)
        try:
            created = self._client.set(key, self.instance_id, nx=True, ex=ttl_seconds)
        except redis.RedisError as exc:
            raise LockUnavailableError(
                f"lock backend error for {key}: {exc}", cause=exc
            ).with_context(lock_key=key, instance_id=self.instance_id) from exc

        if created:
            logger.debug("lock_acquired", lock_key=key, ttl_seconds=ttl_seconds)
            return True
        logger.debug("lock_held_elsewhere", lock_key=key)
        return False

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as exc:
            raise LockUnavailableError(f"redis ping failed: {exc}", cause=exc) from exc

    def close(self) -> None:
        self._client.close()


class InMemoryLockService:
    """Process-local lock service with the same NX + TTL semantics.

    One instance shared by several :class:`SchedulerLoop` objects behaves
    like several nodes sharing one Redis.  *clock* is injectable so tests
    can expire locks without sleeping.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        instance_id: str | None = None,
    ) -> None:
        self._clock = clock
        self._expiry: dict[str, datetime] = {}
        self._holders: dict[str, str] = {}
        self._mutex = threading.Lock()
        self.instance_id = instance_id or str(uuid4())

    def try_acquire(self, key: str, ttl_seconds: int) -> bool:
        _check_ttl(ttl_seconds)
        now = self._clock()
        with self._mutex:
            expires_at = self._expiry.get(key)
            if expires_at is not None and expires_at > now:
                logger.debug("lock_held_elsewhere", lock_key=key)
                return False
            self._expiry[key] = now + timedelta(seconds=ttl_seconds)
            self._holders[key] = self.instance_id
        logger.debug("lock_acquired", lock_key=key, ttl_seconds=ttl_seconds)
        return True

    def holder(self, key: str) -> str | None:
        """Instance id stored with *key*, or ``None`` once it has expired."""
        with self._mutex:
            expires_at = self._expiry.get(key)
            if expires_at is None or expires_at <= self._clock():
                return None
            return self._holders.get(key)

    def ping(self) -> bool:
        return True


__all__ = [
    "DEFAULT_LOCK_TTL_SECONDS",
    "LOCK_KEY_PREFIX",
    "InMemoryLockService",
    "LockService",
    "RedisLockService",
    "lock_key",
]
