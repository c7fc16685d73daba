"""
CLI utility helpers: output formatting and store access.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from knotsync.core.errors import KnotSyncError
from knotsync.core.logging import configure_logging
from knotsync.core.settings import KnotSyncSettings, get_settings
from knotsync.store import DocumentStore, create_store

console = Console()
err_console = Console(stderr=True)


# ── Store helper ─────────────────────────────────────────────────────────


def load_settings() -> KnotSyncSettings:
    """Settings for a CLI run; configuration errors exit with code 2."""
    try:
        settings = get_settings()
    except KnotSyncError as e:
        err_console.print(f"[bold red]Configuration error[/bold red]: {e.message}")
        raise typer.Exit(code=2) from e
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    return settings


def open_store(settings: KnotSyncSettings) -> DocumentStore:
    """Open the configured document store."""
    return create_store(settings)


# ── Output helpers ───────────────────────────────────────────────────────


def fail(error: KnotSyncError) -> None:
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    raise typer.Exit(code=1)


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row.values()))
    console.print(table)
