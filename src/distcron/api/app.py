"""
FastAPI application factory.

``create_app()`` wires CORS, error handling, the job router, health
endpoints and (optionally) an embedded scheduler loop into one ``FastAPI``
instance.

Manifesto:
    The app factory is the single composition root for HTTP: routers
    never build engines or Redis clients; they get handles through
    :mod:`distcron.api.deps`.

Tags:
    distcron, api, app-factory, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from distcron import __version__
from distcron.api.errors import unhandled_exception_handler
from distcron.api.routers import jobs
from distcron.core.health import HealthCheck, create_health_router
from distcron.core.logging import get_logger
from distcron.core.settings import DistcronSettings, get_settings
from distcron.ops.jobs import seed_demo_jobs
from distcron.runtime import Runtime, build_runtime

logger = get_logger("distcron.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: seed demo jobs, start/stop the embedded scheduler."""
    settings: DistcronSettings = app.state.settings
    runtime: Runtime = app.state.runtime
    logger.info("api_starting", version=app.version, embed_scheduler=settings.embed_scheduler)

    if settings.seed_demo_jobs:
        seed_demo_jobs(runtime.operation_context(caller="api"))

    loop = app.state.scheduler
    if loop is not None:
        loop.start()

    yield

    if loop is not None:
        loop.stop()
    logger.info("api_shutting_down")


def create_app(
    *,
    settings: DistcronSettings | None = None,
    runtime: Runtime | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : DistcronSettings | None
        Override settings (useful for testing).  Defaults to the cached
        :func:`get_settings` singleton.
    runtime : Runtime | None
        Pre-built handles (tests pass an in-memory runtime).  Built from
        *settings* when omitted.
    """
    settings = settings or (runtime.settings if runtime else get_settings())
    runtime = runtime or build_runtime(settings)

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )
    app.state.settings = settings
    app.state.runtime = runtime
    app.state.scheduler = runtime.scheduler() if settings.embed_scheduler else None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)

    checks = [
        HealthCheck("database", runtime.store.ping),
        HealthCheck(settings.lock_backend, runtime.lock_service.ping),
    ]
    scheduler = app.state.scheduler
    app.include_router(
        create_health_router(
            "distcron",
            version=__version__,
            checks=checks,
            scheduler_health=scheduler.health if scheduler is not None else None,
        )
    )
    app.include_router(jobs.router, prefix=settings.api_prefix, tags=["jobs"])

    return app
