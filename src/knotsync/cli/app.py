"""
Root Typer application for the knotsync CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="knotsync",
    help="knotsync: multi-scope consistency tools for Spots and Knots.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from knotsync import __version__

        typer.echo(f"knotsync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """knotsync CLI: audit and repair stored data, inspect configuration."""


# ── Sub-command registration ─────────────────────────────────────────────

from knotsync.cli.audit import audit_command  # noqa: E402
from knotsync.cli.config import app as config_app  # noqa: E402

app.command("audit")(audit_command)
app.add_typer(config_app, name="config", help="Configuration inspection.")
