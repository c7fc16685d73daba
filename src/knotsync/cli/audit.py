"""
CLI: ``knotsync audit USER_ID``: integrity audit and repair.
"""

from __future__ import annotations

import asyncio

import typer

from knotsync.cli.utils import console, fail, load_settings, open_store, print_json, print_table
from knotsync.core.errors import KnotSyncError
from knotsync.store.paths import ScopePaths
from knotsync.sync.audit import AuditReport, IntegrityAuditor


async def _audit(user_id: str, *, repair: bool) -> tuple[AuditReport, int]:
    settings = load_settings()
    store = open_store(settings)
    auditor = IntegrityAuditor(store, ScopePaths(settings.app_id))
    report = await auditor.audit_user(user_id)
    repaired = await auditor.repair(report) if repair and not report.clean else 0
    return report, repaired


def audit_command(
    user_id: str = typer.Argument(..., help="User whose scopes to audit"),
    repair: bool = typer.Option(False, "--repair", help="Commit writes that fix the findings"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Report asymmetric links, dangling references and stray public copies."""
    try:
        report, repaired = asyncio.run(_audit(user_id, repair=repair))
    except KnotSyncError as e:
        fail(e)
        return

    if as_json:
        print_json({**report.to_dict(), "repaired_writes": repaired})
    else:
        console.print(
            f"[bold]Audit of {user_id}[/bold]: {report.scanned} copies scanned, "
            f"{len(report.findings)} finding(s), {report.skipped} skipped"
        )
        print_table([f.to_dict() for f in report.findings], title="Findings")
        if repaired:
            console.print(f"[green]Repaired[/green] with {repaired} write(s).")

    if report.findings and not repair:
        raise typer.Exit(code=1)
