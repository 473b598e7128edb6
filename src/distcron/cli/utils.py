"""
CLI utility helpers: settings, runtime construction and output formatting.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from distcron.core.errors import DistcronError
from distcron.core.settings import DistcronSettings
from distcron.ops.context import OperationContext
from distcron.ops.result import OperationResult
from distcron.runtime import Runtime, build_runtime

console = Console()
err_console = Console(stderr=True)


# ── Settings / runtime ───────────────────────────────────────────────────


def load_settings(database_url: str | None = None, **overrides: Any) -> DistcronSettings:
    """Read settings from the environment, applying non-``None`` CLI overrides."""
    try:
        settings = DistcronSettings()
        updates = {k: v for k, v in {"database_url": database_url, **overrides}.items() if v is not None}
        if not updates:
            return settings
        return DistcronSettings.model_validate({**settings.model_dump(), **updates})
    except ValidationError as exc:
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"])
            err_console.print(f"[bold red]Invalid setting[/bold red] {field}: {error['msg']}")
        raise typer.Exit(code=2) from exc


@contextmanager
def open_runtime(settings: DistcronSettings, *, wait: bool = True) -> Iterator[Runtime]:
    """Build a runtime for one command and dispose of it afterwards."""
    try:
        runtime = build_runtime(settings, wait=wait)
    except DistcronError as exc:
        err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {exc.message}")
        raise typer.Exit(code=1) from exc
    try:
        yield runtime
    finally:
        runtime.close()


@contextmanager
def operation_context(database_url: str | None = None) -> Iterator[OperationContext]:
    """``OperationContext`` for CLI commands that only touch the job store."""
    with open_runtime(load_settings(database_url, lock_backend="memory")) as runtime:
        yield runtime.operation_context(caller="cli")


# ── Output helpers ───────────────────────────────────────────────────────


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to a plain dict."""
    if hasattr(obj, "model_dump"):
        raw = obj.model_dump()
    elif hasattr(obj, "__dataclass_fields__"):
        raw = asdict(obj)
    elif isinstance(obj, dict):
        raw = obj
    else:
        raw = {"value": str(obj)}
    return {k: _plain(v) for k, v in raw.items()}


def output_result(
    result: OperationResult,
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render an ``OperationResult`` to the terminal; exit 1 on failure."""
    if not result.success:
        err = result.error
        msg = err.message if err else "Unknown error"
        code = err.code if err else "ERROR"
        err_console.print(f"[bold red]Error[/bold red] ({code}): {msg}")
        raise typer.Exit(code=1)

    data = result.data

    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        print_table(data, title=title)
    else:
        print_dict(_to_dict(data), title=title)


def print_table(items: list[Any], *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        table.add_row(*(str(v) for v in _to_dict(item).values()))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
