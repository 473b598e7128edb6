"""
Environment-driven settings for distcron.

All runtime knobs are read from ``DISTCRON_*`` environment variables (or a
``.env`` file) by pydantic-settings and validated once at startup.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    A scheduler node started with a zero tick interval or a negative lock
    TTL must refuse to start rather than misbehave.

Examples:
    >>> import os
    >>> os.environ["DISTCRON_TICK_INTERVAL_SECONDS"] = "5"
    >>> DistcronSettings().tick_interval_seconds
    5.0

Tags:
    settings, configuration, pydantic, environment, distcron

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

import os
import socket
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_instance_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


class DistcronSettings(BaseSettings):
    """Settings shared by the scheduler, API server and CLI.

    Fields
    ──────
    database_url          : SQLAlchemy URL of the job store
    redis_url             : Redis URL used for job locks
    lock_backend          : ``redis`` or ``memory`` (single node / tests)
    tick_interval_seconds : Delay between scheduler ticks
    lock_ttl_seconds      : Lifetime of a ``job_lock:<id>`` key
    max_workers           : Jobs processed in parallel per tick (1 = sequential)
    history_limit         : Max execution records returned by history reads
    """

    model_config = SettingsConfigDict(
        env_prefix="DISTCRON_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_url: str = "sqlite:///distcron.db"
    database_echo: bool = False
    database_connect_retries: int = 5
    database_retry_delay_seconds: float = 2.0

    # ── Locking ──────────────────────────────────────────────────
    redis_url: str = "redis://localhost:6379/0"
    lock_backend: Literal["redis", "memory"] = "redis"
    lock_ttl_seconds: int = 10

    # ── Scheduler ────────────────────────────────────────────────
    tick_interval_seconds: float = 10.0
    max_workers: int = 1
    history_limit: int = 50
    instance_id: str = Field(default_factory=_default_instance_id)
    seed_demo_jobs: bool = False

    # ── API ──────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_prefix: str = "/api/v1"
    api_title: str = "distcron"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    embed_scheduler: bool = False
    debug: bool = False

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["auto", "json", "console"] = "auto"

    @field_validator("tick_interval_seconds", "database_retry_delay_seconds")
    @classmethod
    def _positive_float(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("lock_ttl_seconds", "max_workers", "history_limit", "database_connect_retries")
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return value

    @property
    def json_logs(self) -> bool | None:
        """``configure_logging`` json flag; ``None`` lets it detect a tty."""
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


@lru_cache(maxsize=1)
def get_settings() -> DistcronSettings:
    """Cached settings: loaded once per process."""
    return DistcronSettings()


__all__ = ["DistcronSettings", "get_settings"]
