"""Tests for lock services."""

from unittest.mock import MagicMock

import pytest
import redis

from distcron.core.errors import LockUnavailableError
from distcron.core.scheduling import InMemoryLockService, LockService, RedisLockService, lock_key


class TestLockKey:
    def test_format(self):
        assert lock_key(7) == "job_lock:7"

    def test_distinct_per_job(self):
        assert lock_key(1) != lock_key(11)


class TestInMemoryLockService:
    """NX + TTL semantics without Redis."""

    def test_first_acquire_wins(self, locks):
        assert locks.try_acquire("job_lock:1", 10) is True
        assert locks.try_acquire("job_lock:1", 10) is False

    def test_keys_are_independent(self, locks):
        assert locks.try_acquire("job_lock:1", 10) is True
        assert locks.try_acquire("job_lock:2", 10) is True

    def test_held_until_ttl_elapses(self, locks, clock):
        locks.try_acquire("job_lock:1", 10)

        clock.advance(seconds=9)
        assert locks.try_acquire("job_lock:1", 10) is False

        clock.advance(seconds=1)
        assert locks.try_acquire("job_lock:1", 10) is True

    def test_shared_instance_excludes_other_callers(self, clock):
        shared = InMemoryLockService(clock=clock)
        results = [shared.try_acquire("job_lock:5", 10) for _ in range(3)]
        assert results == [True, False, False]

    def test_holder(self, locks, clock):
        assert locks.holder("job_lock:1") is None
        locks.try_acquire("job_lock:1", 10)
        assert locks.holder("job_lock:1") == "test-node"

        clock.advance(seconds=10)
        assert locks.holder("job_lock:1") is None

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_ttl_must_be_positive(self, locks, ttl):
        with pytest.raises(ValueError):
            locks.try_acquire("job_lock:1", ttl)

    def test_satisfies_protocol(self, locks):
        assert isinstance(locks, LockService)
        assert locks.ping() is True


class TestRedisLockService:
    """SET NX EX against a mocked client."""

    @pytest.fixture
    def client(self):
        return MagicMock(spec=redis.Redis)

    def test_acquired_when_set_succeeds(self, client):
        client.set.return_value = True
        locks = RedisLockService(client, instance_id="node-a")

        assert locks.try_acquire("job_lock:3", 10) is True
        client.set.assert_called_once_with("job_lock:3", "node-a", nx=True, ex=10)

    def test_not_acquired_when_key_exists(self, client):
        client.set.return_value = None
        locks = RedisLockService(client, instance_id="node-a")

        assert locks.try_acquire("job_lock:3", 10) is False

    def test_backend_error_is_lock_unavailable(self, client):
        client.set.side_effect = redis.ConnectionError("connection refused")
        locks = RedisLockService(client, instance_id="node-a")

        with pytest.raises(LockUnavailableError) as exc_info:
            locks.try_acquire("job_lock:3", 10)

        err = exc_info.value
        assert err.retryable is True
        assert err.context.lock_key == "job_lock:3"
        assert err.context.instance_id == "node-a"

    def test_ttl_checked_before_calling_redis(self, client):
        locks = RedisLockService(client)
        with pytest.raises(ValueError):
            locks.try_acquire("job_lock:3", 0)
        client.set.assert_not_called()

    def test_ping(self, client):
        client.ping.return_value = True
        assert RedisLockService(client).ping() is True

        client.ping.side_effect = redis.TimeoutError("timed out")
        with pytest.raises(LockUnavailableError):
            RedisLockService(client).ping()

    def test_generated_instance_id(self, client):
        assert RedisLockService(client).instance_id != RedisLockService(client).instance_id
