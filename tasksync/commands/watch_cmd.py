"""Watch command - keep bases in sync as the vault changes."""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ..errors import SettingsError
from ..planning import SyncResult
from ..watcher import PendingTrigger, run_auto_sync
from .sync_cmd import build_orchestrator


def run_watch(vault_path: Path, concurrency: int = 1) -> int:
    """
    Watch the vault and regenerate bases on new projects/areas and settings edits.

    This is a blocking command that runs until interrupted (Ctrl+C).

    Returns:
        Exit code
    """
    console = Console(stderr=True)
    orchestrator = build_orchestrator(vault_path, concurrency=concurrency)

    console.print(f"[bold]Watching[/bold] {escape(str(vault_path))}")
    console.print("[dim]Press Ctrl+C to stop watching[/dim]")
    console.print()

    sync_count = 0

    def on_result(trigger: PendingTrigger, result: SyncResult) -> None:
        nonlocal sync_count
        sync_count += 1
        timestamp = datetime.now().strftime("%H:%M:%S")
        style = "green" if result.success else "red"
        console.print(
            f"[dim]{timestamp}[/dim] {trigger.kind.value} {escape(trigger.path)}: "
            f"[{style}]{escape(result.summary())}[/{style}]"
        )
        for scope_id, message in result.failures.items():
            console.print(f"    {scope_id}: {message}", style="red", markup=False)

    try:
        asyncio.run(run_auto_sync(vault_path, orchestrator, orchestrator.settings_store, on_result=on_result))
    except SettingsError as e:
        console.print(str(e), style="red", markup=False)
        return 1
    except KeyboardInterrupt:
        console.print()
        console.print(f"[bold]Stopped.[/bold] Ran {sync_count} syncs.")
    return 0
