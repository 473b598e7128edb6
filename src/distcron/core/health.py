"""
Health endpoints for the distcron API.

``create_health_router()`` returns a FastAPI router with:

* ``GET /health`` runs every dependency check (database, redis);
  503 when a required one fails.
* ``GET /health/live`` is the liveness probe, always 200.

Checks are plain synchronous callables (``store.ping``, ``lock.ping``);
they run in worker threads with a timeout so a hung backend cannot hang
the probe.

Tags:
    distcron, health, liveness, fastapi

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

_START_TIME = time.monotonic()

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class CheckResult(BaseModel):
    """Result of a single dependency health check."""

    status: HealthStatus
    latency_ms: float | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    """Body of ``GET /health``."""

    status: HealthStatus = "healthy"
    service: str = ""
    version: str = ""
    uptime_s: float = Field(default_factory=lambda: round(time.monotonic() - _START_TIME, 1))
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    checks: dict[str, CheckResult] = Field(default_factory=dict)
    scheduler: dict[str, Any] | None = None


class LivenessResponse(BaseModel):
    status: str = "alive"


@dataclass
class HealthCheck:
    """A named dependency probe.

    ``check_fn`` returns truthy when healthy and may raise on failure.
    Failing a non-required check only degrades the overall status.
    """

    name: str
    check_fn: Callable[[], Any]
    required: bool = True
    timeout_s: float = 5.0


async def _run_one(hc: HealthCheck) -> CheckResult:
    start = time.monotonic()
    try:
        ok = await asyncio.wait_for(asyncio.to_thread(hc.check_fn), timeout=hc.timeout_s)
    except TimeoutError:
        return CheckResult(status="unhealthy", error="timeout")
    except Exception as exc:  # noqa: BLE001
        return CheckResult(
            status="unhealthy",
            latency_ms=round((time.monotonic() - start) * 1000, 2),
            error=str(exc)[:200],
        )
    latency = round((time.monotonic() - start) * 1000, 2)
    if not ok:
        return CheckResult(status="unhealthy", latency_ms=latency, error="check returned false")
    return CheckResult(status="healthy", latency_ms=latency)


def compute_status(results: dict[str, CheckResult], checks: list[HealthCheck]) -> HealthStatus:
    """Aggregate per-check results into one status."""
    required = {hc.name for hc in checks if hc.required}
    down = {name for name, result in results.items() if result.status != "healthy"}
    if down & required:
        return "unhealthy"
    if down:
        return "degraded"
    return "healthy"


def create_health_router(
    service_name: str,
    version: str,
    checks: list[HealthCheck] | None = None,
    scheduler_health: Callable[[], dict[str, Any]] | None = None,
    prefix: str = "/health",
) -> APIRouter:
    """Create the health router.

    Parameters
    ----------
    service_name : str
        Reported as ``service``.
    version : str
        Reported as ``version``.
    checks : list[HealthCheck] | None
        Dependency probes run on every ``GET /health``.
    scheduler_health : callable | None
        When an embedded scheduler runs, its ``health()`` is included.
    """
    router = APIRouter(tags=["health"])
    _checks = list(checks or [])

    @router.get(prefix, response_model=HealthResponse)
    async def health() -> JSONResponse:
        results = await asyncio.gather(*[_run_one(hc) for hc in _checks])
        check_results = {hc.name: result for hc, result in zip(_checks, results, strict=True)}
        status = compute_status(check_results, _checks)
        body = HealthResponse(
            status=status,
            service=service_name,
            version=version,
            checks=check_results,
            scheduler=scheduler_health() if scheduler_health else None,
        )
        return JSONResponse(content=body.model_dump(), status_code=503 if status == "unhealthy" else 200)

    @router.get(f"{prefix}/live", response_model=LivenessResponse)
    async def liveness() -> LivenessResponse:
        return LivenessResponse()

    return router


__all__ = [
    "CheckResult",
    "HealthCheck",
    "HealthResponse",
    "LivenessResponse",
    "compute_status",
    "create_health_router",
]
