"""
Tests for SchedulerLoop.

Several loops built by ``make_loop`` share one store, one in-memory lock
service and one frozen clock, which is enough to model a cluster of
scheduler nodes inside a single test process.
"""

import threading
import time
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from distcron.core.errors import LockUnavailableError, StoreUnavailableError
from distcron.core.models import ExecutionStatus
from distcron.core.orm import create_distcron_engine, init_schema, session_factory
from distcron.core.scheduling import (
    DEFAULT_DETAILS,
    InMemoryLockService,
    JobOutcome,
    LoopState,
    SchedulerLoop,
    SqlJobStore,
    lock_key,
)

NOON = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


def wait_until(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestTick:
    """Test a single scan-lock-execute-advance pass."""

    def test_due_job_runs_and_advances(self, loop, store):
        """*/1 due at 12:00, tick at 12:00:30: one success, next fire 12:01."""
        job = store.create("Send Email", "*/1 * * * *", NOON)

        outcomes = loop.tick()

        assert outcomes == {job.id: JobOutcome.EXECUTED}
        (record,) = store.list_history(job_id=job.id)
        assert record.status is ExecutionStatus.SUCCESS
        assert record.details == DEFAULT_DETAILS
        assert record.run_at == datetime(2024, 1, 1, 12, 0, 30, tzinfo=UTC)
        assert store.get(job.id).next_run_at == datetime(2024, 1, 1, 12, 1, tzinfo=UTC)

    def test_nothing_due(self, loop, store):
        store.create("Later", "*/1 * * * *", NOON + timedelta(minutes=5))

        assert loop.tick() == {}
        assert store.list_history() == []
        assert loop.get_stats().tick_count == 1

    def test_job_due_exactly_now(self, loop, store, clock):
        job = store.create("Now", "*/5 * * * *", clock())
        assert loop.tick() == {job.id: JobOutcome.EXECUTED}
        assert store.get(job.id).next_run_at == datetime(2024, 1, 1, 12, 5, tzinfo=UTC)

    def test_advanced_job_not_rerun_in_same_minute(self, loop, store, clock):
        job = store.create("Send Email", "*/1 * * * *", NOON)
        loop.tick()

        clock.advance(seconds=10)
        assert loop.tick() == {}
        assert len(store.list_history(job_id=job.id)) == 1

    def test_triggered_job_runs_on_next_tick(self, loop, store, clock):
        job = store.create("Nightly", "0 0 * * *", datetime(2024, 1, 2, tzinfo=UTC))
        store.trigger(job.id, clock())

        assert loop.tick() == {job.id: JobOutcome.EXECUTED}
        assert store.get(job.id).next_run_at == datetime(2024, 1, 2, tzinfo=UTC)

    def test_body_return_value_becomes_details(self, loop, store, registry):
        registry.register("Database Backup", lambda job: "dumped 3 tables")
        job = store.create("Database Backup", "*/2 * * * *", NOON)

        loop.tick()

        assert store.list_history(job_id=job.id)[0].details == "dumped 3 tables"

    def test_body_returning_none_uses_default_details(self, loop, store, registry):
        registry.register("quiet", lambda job: None)
        job = store.create("quiet", "*/1 * * * *", NOON)

        loop.tick()

        assert store.list_history(job_id=job.id)[0].details == DEFAULT_DETAILS


class TestFailures:
    """Test failure handling per job."""

    def test_body_failure_recorded_and_advanced(self, loop, store, registry):
        def explode(job):
            raise RuntimeError("smtp down")

        registry.register("Send Email", explode)
        job = store.create("Send Email", "*/1 * * * *", NOON)

        assert loop.tick() == {job.id: JobOutcome.FAILED}

        (record,) = store.list_history(job_id=job.id)
        assert record.status is ExecutionStatus.FAILURE
        assert record.details == "smtp down"
        assert store.get(job.id).next_run_at == datetime(2024, 1, 1, 12, 1, tzinfo=UTC)
        assert loop.get_stats().jobs_failed == 1

    def test_invalid_expression_skipped_without_record(self, loop, store):
        job = store.create("Broken", "bogus", NOON)

        assert loop.tick() == {job.id: JobOutcome.SKIPPED_INVALID}

        assert store.list_history(job_id=job.id) == []
        assert store.get(job.id).next_run_at == NOON
        stats = loop.get_stats()
        assert stats.jobs_skipped_invalid == 1
        assert "bogus" in stats.last_error

    def test_invalid_expression_does_not_block_other_jobs(self, loop, store):
        broken = store.create("Broken", "bogus", NOON)
        good = store.create("Good", "*/1 * * * *", NOON)

        outcomes = loop.tick()

        assert outcomes == {broken.id: JobOutcome.SKIPPED_INVALID, good.id: JobOutcome.EXECUTED}

    def test_unexpected_error_isolated_to_one_job(self, make_loop, store):
        first = store.create("first", "*/1 * * * *", NOON)
        second = store.create("second", "*/1 * * * *", NOON)

        recorder = MagicMock()

        def record(job, status, details=None):
            if job.id == first.id:
                raise KeyError("unexpected")

        recorder.record.side_effect = record
        loop = make_loop(recorder=recorder)

        outcomes = loop.tick()

        assert outcomes == {first.id: JobOutcome.ERROR, second.id: JobOutcome.EXECUTED}
        assert store.get(second.id).next_run_at > NOON

    def test_history_failure_still_advances(self, make_loop, store):
        job = store.create("a", "*/1 * * * *", NOON)
        recorder = MagicMock()
        recorder.record.side_effect = StoreUnavailableError("history table locked")
        loop = make_loop(recorder=recorder)

        assert loop.tick() == {job.id: JobOutcome.EXECUTED}
        assert store.get(job.id).next_run_at == datetime(2024, 1, 1, 12, 1, tzinfo=UTC)
        assert loop.get_stats().store_errors == 1

    def test_advance_failure_leaves_job_due(self, make_loop, engine, clock):
        class FailingAdvanceStore(SqlJobStore):
            def advance_next_fire(self, job_id, next_run_at):
                raise StoreUnavailableError("write failed")

        store = FailingAdvanceStore(session_factory(engine))
        job = store.create("a", "*/1 * * * *", NOON)
        loop = make_loop(store=store)

        assert loop.tick() == {job.id: JobOutcome.STORE_ERROR}
        assert store.get(job.id).next_run_at == NOON
        assert len(store.list_history(job_id=job.id)) == 1

    def test_lock_backend_down_skips_job(self, make_loop, store):
        job = store.create("a", "*/1 * * * *", NOON)
        lock_service = MagicMock()
        lock_service.try_acquire.side_effect = LockUnavailableError("redis down")
        loop = make_loop(lock_service=lock_service)

        assert loop.tick() == {job.id: JobOutcome.LOCK_ERROR}
        assert store.list_history() == []
        assert store.get(job.id).next_run_at == NOON
        assert loop.get_stats().lock_errors == 1

    def test_due_scan_failure_abandons_tick(self, make_loop):
        broken = MagicMock()
        broken.list_due.side_effect = StoreUnavailableError("connection refused")
        loop = make_loop(store=broken)

        assert loop.tick() == {}
        stats = loop.get_stats()
        assert stats.store_errors == 1
        assert stats.tick_count == 1
        assert loop.state is LoopState.IDLE

    def test_job_deleted_by_its_body(self, loop, store, registry):
        registry.register("self-destruct", lambda job: str(store.delete(job.id)))
        job = store.create("self-destruct", "*/1 * * * *", NOON)

        assert loop.tick() == {job.id: JobOutcome.EXECUTED}
        assert store.get(job.id) is None


class TestMutualExclusion:
    """Test that shared locks give one execution per due instant."""

    def test_lock_held_elsewhere_skips(self, loop, store, locks):
        job = store.create("a", "*/1 * * * *", NOON)
        locks.try_acquire(lock_key(job.id), 10)

        assert loop.tick() == {job.id: JobOutcome.SKIPPED_LOCKED}
        assert store.list_history() == []
        assert store.get(job.id).next_run_at == NOON

    def test_two_nodes_same_snapshot_one_execution(self, make_loop, store):
        job = store.create("Send Email", "*/1 * * * *", NOON)
        node_a = make_loop(instance_id="node-a")
        node_b = make_loop(instance_id="node-b")

        (snapshot,) = store.list_due(NOON)
        outcomes = {node_a.process_job(snapshot), node_b.process_job(snapshot)}

        assert outcomes == {JobOutcome.EXECUTED, JobOutcome.SKIPPED_LOCKED}
        assert len(store.list_history(job_id=job.id)) == 1

    def test_three_nodes_ticking(self, make_loop, store):
        jobs = [store.create(f"job-{i}", "*/1 * * * *", NOON) for i in range(3)]
        nodes = [make_loop(instance_id=f"node-{i}") for i in range(3)]

        for node in nodes:
            node.tick()

        for job in jobs:
            assert len(store.list_history(job_id=job.id)) == 1
        assert sum(node.get_stats().jobs_executed for node in nodes) == 3

    def test_lock_expires_after_ttl(self, make_loop, store, locks, clock):
        job = store.create("a", "*/1 * * * *", NOON)
        locks.try_acquire(lock_key(job.id), 10)
        loop = make_loop()

        assert loop.tick() == {job.id: JobOutcome.SKIPPED_LOCKED}
        clock.advance(seconds=10)
        assert loop.tick() == {job.id: JobOutcome.EXECUTED}


class TestWorkerPool:
    @pytest.fixture
    def file_store(self, tmp_path):
        engine = create_distcron_engine(f"sqlite:///{tmp_path / 'distcron.db'}")
        init_schema(engine)
        yield SqlJobStore(session_factory(engine))
        engine.dispose()

    def test_parallel_processing(self, file_store, clock):
        jobs = [file_store.create(f"job-{i}", "*/1 * * * *", NOON) for i in range(5)]
        loop = SchedulerLoop(
            file_store,
            InMemoryLockService(clock=clock),
            max_workers=3,
            instance_id="pool",
            clock=clock,
        )

        outcomes = loop.tick()

        assert outcomes == {job.id: JobOutcome.EXECUTED for job in jobs}
        assert len(file_store.list_history()) == 5
        assert file_store.list_due(clock()) == []


class TestLifecycle:
    def test_constructor_validation(self, store, locks):
        with pytest.raises(ValueError):
            SchedulerLoop(store, locks, interval_seconds=0)
        with pytest.raises(ValueError):
            SchedulerLoop(store, locks, lock_ttl_seconds=0)
        with pytest.raises(ValueError):
            SchedulerLoop(store, locks, max_workers=0)

    def test_generated_instance_id(self, store, locks):
        assert SchedulerLoop(store, locks).instance_id != SchedulerLoop(store, locks).instance_id

    def test_run_returns_when_already_cancelled(self, loop):
        cancel = threading.Event()
        cancel.set()

        loop.run(cancel)

        assert loop.state is LoopState.STOPPED
        assert loop.get_stats().tick_count == 0

    def test_stopped_loop_does_not_tick(self, loop, store):
        store.create("a", "*/1 * * * *", NOON)
        loop.stop()

        assert loop.state is LoopState.STOPPED
        assert loop.tick() == {}
        assert store.list_history() == []

    def test_run_until_cancelled(self, loop, store):
        job = store.create("Send Email", "*/1 * * * *", NOON)
        cancel = threading.Event()
        worker = threading.Thread(target=loop.run, args=(cancel,))
        worker.start()

        assert wait_until(lambda: loop.get_stats().tick_count >= 3)
        cancel.set()
        worker.join(timeout=2.0)

        assert not worker.is_alive()
        assert loop.state is LoopState.STOPPED
        assert len(store.list_history(job_id=job.id)) == 1

    def test_start_and_stop(self, loop):
        loop.start()
        assert loop.is_running
        assert wait_until(lambda: loop.get_stats().tick_count >= 1)

        loop.stop(timeout=2.0)

        assert not loop.is_running
        assert loop.state is LoopState.STOPPED

    def test_run_once(self, loop, store):
        job = store.create("a", "*/1 * * * *", NOON)
        assert loop.run_once() == {job.id: JobOutcome.EXECUTED}


class TestMonitoring:
    def test_health(self, loop, store):
        store.create("a", "*/1 * * * *", NOON)
        loop.tick()

        health = loop.health()

        assert health["state"] == "idle"
        assert health["running"] is False
        assert health["instance_id"] == "node-a"
        assert health["stats"]["tick_count"] == 1
        assert health["stats"]["jobs_executed"] == 1
        assert health["stats"]["last_tick"] == "2024-01-01T12:00:30+00:00"

    def test_stats_are_a_copy(self, loop):
        stats = loop.get_stats()
        stats.tick_count = 99
        assert loop.get_stats().tick_count == 0

    def test_reset_stats(self, loop):
        loop.tick()
        loop.reset_stats()
        assert loop.get_stats().tick_count == 0
