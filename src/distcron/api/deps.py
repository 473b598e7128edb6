"""
FastAPI dependency injection.

The :class:`~distcron.runtime.Runtime` is built once by ``create_app`` and
kept on ``app.state``; per-request dependencies read handles from it.

Usage in routers::

    from distcron.api.deps import OpContext

    @router.get("/jobs")
    def list_jobs(ctx: OpContext):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from distcron.ops.context import OperationContext
from distcron.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_operation_context(
    request: Request,
    runtime: Annotated[Runtime, Depends(get_runtime)],
) -> OperationContext:
    """Build an :class:`OperationContext` for the current request."""
    ctx = runtime.operation_context(caller="api")
    request_id = request.headers.get("x-request-id")
    if request_id:
        ctx.request_id = request_id
    return ctx


OpContext = Annotated[OperationContext, Depends(get_operation_context)]
