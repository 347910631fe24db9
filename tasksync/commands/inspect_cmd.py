"""Preview, diff and inspect commands - read-only views of base files."""

from __future__ import annotations

import asyncio
import difflib
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from ..bases import parse_base, validate_base
from ..errors import SettingsError, TaskSyncError, ValidationError
from ..planning import ScopePlan
from .sync_cmd import build_orchestrator


def _plan_scope(vault_path: Path, scope_id: str) -> ScopePlan:
    orchestrator = build_orchestrator(vault_path)
    plan = asyncio.run(orchestrator.plan_scope(scope_id))
    if plan.rejected:
        raise ValidationError(plan.rejected[0].error or "scope could not be generated")
    if not plan.scopes:
        raise ValidationError(f"{scope_id} is disabled in settings")
    return plan.scopes[0]


def run_preview(vault_path: Path, scope_id: str) -> int:
    """Print the canonical base file for a scope on stdout.

    Returns:
        Exit code
    """
    console = Console(stderr=True)
    try:
        scope_plan = _plan_scope(vault_path, scope_id)
    except (SettingsError, ValidationError) as e:
        console.print(str(e), style="red", markup=False)
        return 1

    console.print(f"[dim]{escape(scope_plan.base_path)} ({len(scope_plan.view_names)} views)[/dim]")
    click.echo(scope_plan.content, nl=False)
    return 0


def run_diff(vault_path: Path, scope_id: str) -> int:
    """Compare the generated base file with the one on disk.

    Returns:
        Exit code (0 = no diff, 1 = differences found or error)
    """
    console = Console(stderr=True)
    try:
        scope_plan = _plan_scope(vault_path, scope_id)
    except (SettingsError, ValidationError) as e:
        console.print(str(e), style="red", markup=False)
        return 1

    if scope_plan.existing_content is None:
        console.print(f"{scope_plan.base_path} does not exist yet", style="yellow", markup=False)
        return 1

    diff = list(
        difflib.unified_diff(
            scope_plan.existing_content.splitlines(keepends=True),
            scope_plan.content.splitlines(keepends=True),
            fromfile=f"{scope_plan.base_path} (on disk)",
            tofile=f"{scope_plan.base_path} (generated)",
        )
    )

    if diff:
        console.print("Differences found:", style="yellow")
        syntax = Syntax("".join(diff), "diff", theme="monokai")
        console.print(syntax)
        return 1
    else:
        console.print(f"{scope_plan.base_path} is in sync with settings", style="green", markup=False)
        return 0


def run_inspect(vault_path: Path, path: Path) -> int:
    """Parse a base file and report its views and any structural problems.

    Args:
        vault_path: Vault root (relative paths are resolved against it)
        path: Base file to inspect

    Returns:
        Exit code (0 = valid, 1 = problems found)
    """
    console = Console(stderr=True)
    target = path if path.is_absolute() else vault_path / path
    try:
        text = target.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"Cannot read {target}: {e}", style="red", markup=False)
        return 1

    try:
        parsed = parse_base(text, path=str(path))
    except TaskSyncError as e:
        console.print(f"{path}: {e}", style="red", markup=False)
        return 1

    table = Table(title=f"{path} ({parsed.entity_type or 'untyped'})")
    table.add_column("View", style="bold")
    table.add_column("Type")
    table.add_column("Sort")
    table.add_column("Group")
    table.add_column("Filter", overflow="fold")
    for view in parsed.views:
        table.add_row(
            escape(view.name),
            view.type,
            ", ".join(f"{prop} {direction}" for prop, direction in view.sort),
            f"{view.group[0]} {view.group[1]}" if view.group else "",
            escape(view.filter),
        )
    console.print(table)

    errors = validate_base(text)
    if errors:
        console.print(f"{len(errors)} problem(s):", style="red")
        for error in errors:
            console.print(f"  - {error}", markup=False)
        return 1

    console.print(f"{len(parsed.views)} views, no problems found", style="green")
    return 0
