"""
Structured error types for distcron.

Every failure the scheduler can observe maps to one of a small set of typed
errors.  Each carries a category (for log routing), a retryable flag and an
optional chained cause, so callers decide what to do from the type alone.

Manifesto:
    - **Typed hierarchy:** store, lock and expression failures are distinct
    - **Explicit retry semantics:** infrastructure errors are retryable,
      validation errors are not
    - **Error chaining:** the backend exception is kept as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                     DistcronError                         │
        │          (category, retryable, context, cause)            │
        ├──────────────────────────────────────────────────────────┤
        │  TransientError          ValidationError    ConfigError   │
        │  (retryable=True)        (VALIDATION)       (CONFIG)      │
        │       │                       │                           │
        │  StoreUnavailableError   InvalidExpressionError           │
        │  LockUnavailableError                                     │
        └──────────────────────────────────────────────────────────┘

    How the scheduling loop reacts:

        StoreUnavailableError   log, abandon current job (or tick), continue
        LockUnavailableError    log, treat as "not acquired", continue
        InvalidExpressionError  log, leave next fire time unchanged, continue

Examples:
    >>> err = StoreUnavailableError("connection refused")
    >>> err.retryable
    True
    >>> err.with_context(job_id=7).to_dict()["context"]
    {'job_id': 7}

Tags:
    error-handling, exception-hierarchy, retry-logic, distcron

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Infrastructure errors (usually transient)
    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    CACHE = "CACHE"

    # Input errors
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"

    # Configuration errors (never retryable)
    CONFIG = "CONFIG"

    # Scheduling / internal
    SCHEDULING = "SCHEDULING"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        job_id: Job the error relates to, if any.
        job_name: Display name of that job.
        lock_key: Lock key involved (``job_lock:<id>``).
        instance_id: Scheduler instance that observed the error.
        metadata: Any other key/value pairs.
    """

    job_id: int | None = None
    job_name: str | None = None
    lock_key: str | None = None
    instance_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("job_id", "job_name", "lock_key", "instance_id"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DistcronError(Exception):
    """Base exception for all distcron errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.

    Args:
        message: Human-readable description.
        category: Overrides the class default category.
        retryable: Overrides the class default retry flag.
        context: Structured metadata.
        cause: Underlying exception, chained as ``__cause__``.
    """

    default_category: ErrorCategory = ErrorCategory.UNKNOWN
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DistcronError:
        """Attach context fields and return ``self`` for chaining."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialise for structured logs and API payloads."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# ── Transient (infrastructure) ───────────────────────────────────────────


class TransientError(DistcronError):
    """Temporary infrastructure failure; the next tick may succeed."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class StoreUnavailableError(TransientError):
    """The relational job store could not complete an operation."""

    default_category = ErrorCategory.DATABASE


class LockUnavailableError(TransientError):
    """The lock backend (Redis) could not be reached."""

    default_category = ErrorCategory.CACHE


# ── Validation ───────────────────────────────────────────────────────────


class ValidationError(DistcronError):
    """Caller supplied input that can never succeed as given."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class InvalidExpressionError(ValidationError):
    """A cron expression failed to parse or has no future fire time."""

    def __init__(self, expression: Any, reason: str = "", **kwargs: Any) -> None:
        self.expression = expression
        detail = f": {reason}" if reason else ""
        super().__init__(f"invalid cron expression {expression!r}{detail}", **kwargs)


# ── Configuration ────────────────────────────────────────────────────────


class ConfigError(DistcronError):
    """Settings are missing or inconsistent."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


__all__ = [
    "ConfigError",
    "DistcronError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidExpressionError",
    "LockUnavailableError",
    "StoreUnavailableError",
    "TransientError",
    "ValidationError",
]
