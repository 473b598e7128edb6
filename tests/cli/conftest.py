"""CLI test fixtures: a file-backed SQLite store and the in-memory lock backend."""

import importlib

import pytest

# ``distcron.cli`` re-exports the Typer object as ``app``; fetch the module itself.
cli_app_module = importlib.import_module("distcron.cli.app")


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DISTCRON_DATABASE_URL", db_url)
    monkeypatch.setenv("DISTCRON_LOCK_BACKEND", "memory")
    monkeypatch.setenv("DISTCRON_DATABASE_CONNECT_RETRIES", "1")
    monkeypatch.setenv("DISTCRON_INSTANCE_ID", "cli-test")
    # CliRunner swaps stderr per invocation; keep structlog on its defaults.
    monkeypatch.setattr(cli_app_module, "configure_logging", lambda **kwargs: None)
    return db_url
