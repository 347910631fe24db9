"""Taxonomy and auto-sync commands - edit settings, then resync if enabled."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Callable

from rich.console import Console

from ..config import (
    Settings,
    with_category_added,
    with_category_removed,
    with_priority_added,
    with_priority_removed,
)
from ..errors import SettingsError, ValidationError
from .sync_cmd import build_orchestrator, print_result

CHANGES: dict[tuple[str, str], Callable[..., Settings]] = {
    ("category", "add"): with_category_added,
    ("category", "remove"): with_category_removed,
    ("priority", "add"): with_priority_added,
    ("priority", "remove"): with_priority_removed,
}


def _apply(vault_path: Path, change: Callable[[Settings], Settings], description: str) -> int:
    """Persist a settings change and hand it to the orchestrator.

    Returns:
        Exit code
    """
    console = Console(stderr=True)
    orchestrator = build_orchestrator(vault_path)

    try:
        previous, current = orchestrator.settings_store.update(change)
    except (SettingsError, ValidationError) as e:
        console.print(str(e), style="red", markup=False)
        return 1
    console.print(description, style="green", markup=False)

    try:
        result = asyncio.run(orchestrator.on_settings_changed(previous, current))
    except SettingsError as e:
        console.print(str(e), style="red", markup=False)
        return 1

    if result is None:
        if not current.auto_sync:
            console.print("[dim]Auto-sync is off; run `tasksync sync` to regenerate bases.[/dim]")
        return 0

    print_result(console, result)
    return 0 if result.success else 1


def run_taxonomy_change(
    vault_path: Path,
    kind: str,
    action: str,
    name: str,
    color: str = "",
) -> int:
    """Add or remove a category or priority.

    Args:
        vault_path: Vault root
        kind: "category" or "priority"
        action: "add" or "remove"
        name: Entry name
        color: Color token for added entries

    Returns:
        Exit code
    """
    transform = CHANGES[(kind, action)]
    if action == "add":
        change = partial(transform, name=name, color=color)
        description = f"Added {kind} {name!r}"
    else:
        change = partial(transform, name=name)
        description = f"Removed {kind} {name!r}"
    return _apply(vault_path, change, description)


def run_autosync(vault_path: Path, enabled: bool) -> int:
    """Turn auto-sync on (which runs a full sync) or off."""
    return _apply(
        vault_path,
        lambda s: replace(s, auto_sync=enabled),
        f"Auto-sync {'enabled' if enabled else 'disabled'}",
    )


def run_toggle_bases(vault_path: Path, kind: str, enabled: bool) -> int:
    """Enable or disable project or area bases."""
    field_name = "project_bases_enabled" if kind == "project" else "area_bases_enabled"
    return _apply(
        vault_path,
        lambda s: replace(s, **{field_name: enabled}),
        f"{kind.capitalize()} bases {'enabled' if enabled else 'disabled'}",
    )
