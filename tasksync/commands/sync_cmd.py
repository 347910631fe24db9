"""Sync command - regenerate base files and note embeds."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..audit_log import format_audit_entry, read_audit_log
from ..config import SettingsStore
from ..errors import SettingsError
from ..planning import ScopeStatus, SyncResult
from ..sync.orchestrator import SyncOrchestrator
from ..vault.store import FileSystemStore

STATUS_STYLES = {
    ScopeStatus.CREATED: "green",
    ScopeStatus.UPDATED: "cyan",
    ScopeStatus.FAILED: "red",
    ScopeStatus.SKIPPED: "dim",
}


def build_orchestrator(vault_path: Path, concurrency: int = 1) -> SyncOrchestrator:
    """Orchestrator over the vault directory with audit logging enabled."""
    return SyncOrchestrator(
        FileSystemStore(vault_path),
        SettingsStore(vault_path),
        audit_vault=vault_path,
        concurrency=concurrency,
    )


def print_result(console: Console, result: SyncResult) -> None:
    table = Table(title=f"Sync ({result.trigger})")
    table.add_column("Scope", style="bold")
    table.add_column("Status")
    table.add_column("Base file")
    table.add_column("Embed")

    for outcome in result.outcomes:
        style = STATUS_STYLES[outcome.status]
        table.add_row(
            escape(outcome.scope_id),
            f"[{style}]{outcome.status.value}[/{style}]",
            escape(outcome.base_path or ""),
            "updated" if outcome.embed_updated else "",
        )

    console.print(table)
    for scope_id, message in result.failures.items():
        console.print(f"  {scope_id}: {message}", style="red", markup=False)
    style = "green" if result.success else "red"
    console.print(result.summary(), style=style)


def run_sync(
    vault_path: Path,
    scope_id: str | None = None,
    dry_run: bool = False,
    output_json: bool = False,
    concurrency: int = 1,
) -> int:
    """Regenerate bases for every scope, or for one.

    Args:
        vault_path: Vault root
        scope_id: ``global``, ``project:NAME`` or ``area:NAME``; None for all
        dry_run: If True, show what would be written without writing
        output_json: Print the result as JSON on stdout
        concurrency: Maximum scope pipelines in flight at once

    Returns:
        Exit code (0 = every scope synced, 1 = any failure)
    """
    console = Console(stderr=True)
    orchestrator = build_orchestrator(vault_path, concurrency=concurrency)

    async def go():
        # Phase 1: Compute (diagnostic) - no writes
        if scope_id is not None:
            plan = await orchestrator.plan_scope(scope_id)
        else:
            plan = await orchestrator.compute_plan()
        if dry_run:
            return plan, None

        # Phase 2: Execute (action) - performs writes
        return plan, await orchestrator.execute_plan(plan)

    try:
        plan, result = asyncio.run(go())
    except SettingsError as e:
        console.print(str(e), style="red", markup=False)
        return 1

    if dry_run:
        console.print("\n[bold]DRY RUN[/bold] - No changes will be made\n")
        console.print(plan.summary(), highlight=False, markup=False)
        return 1 if plan.rejected else 0

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(console, result)
    return 0 if result.success else 1


def run_log(vault_path: Path, last_n: int | None = None) -> int:
    """Print recent audit log entries."""
    console = Console()
    entries = read_audit_log(vault_path, last_n=last_n)
    if not entries:
        console.print("[dim]No sync runs logged yet.[/dim]")
        return 0
    for entry in entries:
        console.print(format_audit_entry(entry), highlight=False, markup=False)
        console.print()
    return 0


def run_parent_base(vault_path: Path, parent_task: str, output_json: bool = False) -> int:
    """Write the subtask base for one parent task.

    Returns:
        Exit code (0 = written, 1 = failure)
    """
    console = Console(stderr=True)
    orchestrator = build_orchestrator(vault_path)
    try:
        result = asyncio.run(orchestrator.sync_parent_task(parent_task))
    except SettingsError as e:
        console.print(str(e), style="red", markup=False)
        return 1

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(console, result)
    return 0 if result.success else 1
