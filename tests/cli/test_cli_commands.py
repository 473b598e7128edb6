"""Tests for the ``distcron`` CLI."""

from __future__ import annotations

import os
from unittest.mock import patch

from fastapi import FastAPI
from typer.testing import CliRunner

from distcron import __version__
from distcron.cli.app import app
from distcron.core.settings import DistcronSettings

runner = CliRunner()


def invoke(*args: str):
    return runner.invoke(app, list(args))


class TestRoot:
    def test_version(self):
        result = invoke("--version")
        assert result.exit_code == 0
        assert f"distcron {__version__}" in result.output

    def test_help_lists_groups(self):
        result = invoke("--help")
        assert result.exit_code == 0
        for group in ("db", "jobs", "scheduler", "serve"):
            assert group in result.output


class TestDb:
    def test_init(self):
        result = invoke("db", "init")
        assert result.exit_code == 0
        assert "Schema ready" in result.output

    def test_seed_is_idempotent(self):
        first = invoke("db", "seed", "--json")
        assert first.exit_code == 0
        assert '"name": "Send Email"' in first.output
        assert '"name": "Database Backup"' in first.output

        second = invoke("db", "seed")
        assert second.exit_code == 0
        assert "No items." in second.output

    def test_unreachable_database(self):
        result = invoke("db", "init", "--database-url", "sqlite:////nonexistent-dir/x/y.db")
        assert result.exit_code == 1


class TestJobs:
    def test_create_and_show(self):
        created = invoke("jobs", "create", "Backup", "--cron", "*/2 * * * *", "--json")
        assert created.exit_code == 0
        assert '"cron_schedule": "*/2 * * * *"' in created.output

        shown = invoke("jobs", "show", "1", "--json")
        assert shown.exit_code == 0
        assert '"name": "Backup"' in shown.output

    def test_create_invalid_cron(self):
        result = invoke("jobs", "create", "Broken", "--cron", "bogus")
        assert result.exit_code == 1
        assert "VALIDATION_FAILED" in result.output

    def test_list(self):
        invoke("jobs", "create", "a", "-c", "*/1 * * * *")
        invoke("jobs", "create", "b", "-c", "*/1 * * * *")

        result = invoke("jobs", "list", "--json")

        assert result.exit_code == 0
        assert result.output.index('"name": "b"') < result.output.index('"name": "a"')

    def test_list_empty(self):
        result = invoke("jobs", "list")
        assert result.exit_code == 0
        assert "No items." in result.output

    def test_show_missing(self):
        result = invoke("jobs", "show", "42")
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output

    def test_trigger(self):
        invoke("jobs", "create", "Nightly", "-c", "0 0 * * *")
        result = invoke("jobs", "trigger", "1", "--json")
        assert result.exit_code == 0
        assert '"name": "Nightly"' in result.output

    def test_delete(self):
        invoke("jobs", "create", "a", "-c", "*/1 * * * *")

        assert invoke("jobs", "delete", "1").exit_code == 0
        assert invoke("jobs", "delete", "1").exit_code == 1

    def test_history_after_tick(self):
        invoke("db", "seed")
        invoke("scheduler", "tick")

        result = invoke("jobs", "history", "--json")

        assert result.exit_code == 0
        assert result.output.count('"status": "success"') == 2
        assert "Executed via scheduler" in result.output

    def test_history_limit(self):
        invoke("db", "seed")
        invoke("scheduler", "tick")

        result = invoke("jobs", "history", "--limit", "1", "--json")

        assert result.output.count('"status": "success"') == 1

    def test_history_invalid_limit(self):
        assert invoke("jobs", "history", "--limit", "0").exit_code != 0


class TestScheduler:
    def test_tick_nothing_due(self):
        result = invoke("scheduler", "tick")
        assert result.exit_code == 0
        assert "No jobs due." in result.output

    def test_tick_runs_due_jobs(self):
        invoke("db", "seed")

        result = invoke("scheduler", "tick")

        assert result.exit_code == 0
        assert "executed" in result.output
        assert "No jobs due." in invoke("scheduler", "tick").output

    def test_run_stops_on_cancel(self):
        with patch("distcron.cli.scheduler.install_signal_handlers", side_effect=lambda cancel: cancel.set()):
            result = invoke("scheduler", "run", "--interval", "0.01", "--seed")

        assert result.exit_code == 0
        assert "Scheduler cli-test running" in result.output
        assert "Stopped after 0 tick(s)" in result.output

    def test_run_rejects_pool_on_memory_database(self):
        result = invoke("scheduler", "run", "--workers", "4", "--database-url", "sqlite://")
        assert result.exit_code == 1
        assert "CONFIG" in result.output

    def test_run_rejects_bad_interval(self):
        result = invoke("scheduler", "run", "--interval", "0")
        assert result.exit_code == 2
        assert "tick_interval_seconds" in result.output


class TestServe:
    def test_reload_exports_overrides(self):
        with patch.dict(os.environ), patch("uvicorn.run") as run:
            result = invoke("serve", "--reload", "--embed-scheduler", "--port", "9001")

            assert result.exit_code == 0
            assert os.environ["DISTCRON_EMBED_SCHEDULER"] == "true"
            assert os.environ["DISTCRON_API_PORT"] == "9001"
            # the reloaded factory reads settings from the environment only
            reloaded = DistcronSettings()
            assert reloaded.embed_scheduler is True
            assert reloaded.api_port == 9001

        assert run.call_args.args == ("distcron.api:create_app",)
        assert run.call_args.kwargs["factory"] is True
        assert run.call_args.kwargs["port"] == 9001

    def test_reload_exports_disabled_scheduler(self):
        with patch.dict(os.environ, {"DISTCRON_EMBED_SCHEDULER": "true"}), patch("uvicorn.run"):
            result = invoke("serve", "--reload", "--no-embed-scheduler")

            assert result.exit_code == 0
            assert DistcronSettings().embed_scheduler is False

    def test_without_reload_passes_app(self):
        with patch.dict(os.environ), patch("uvicorn.run") as run:
            result = invoke("serve", "--port", "9002")

            assert result.exit_code == 0
            assert "DISTCRON_API_PORT" not in os.environ

        assert isinstance(run.call_args.args[0], FastAPI)
        assert run.call_args.kwargs["port"] == 9002
