"""CLI entrypoint for tasksync."""

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .config import find_vault


def _configure_logging(verbose: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(__version__, prog_name="tasksync")
@click.option(
    "--vault",
    "-v",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Path to the vault root (defaults to the nearest folder holding .tasksync or .obsidian)",
)
@click.option("--verbose", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def cli(ctx: click.Context, vault: Path | None, verbose: bool) -> None:
    """tasksync - Generate Obsidian Bases task views for projects and areas.

    Keeps one base file per scope (all tasks, each project, each area) in
    step with the configured categories and priorities, and keeps a single
    embed of that base inside each project and area note.
    """
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    if vault is None:
        detected = find_vault(Path.cwd())
        if detected is None:
            raise click.ClickException("Vault not found. Pass --vault /path/to/vault or run from inside a vault.")
        vault = detected

    if not vault.exists() or not vault.is_dir():
        raise click.BadParameter(f"Directory '{vault}' does not exist.", param_hint="--vault / -v")

    ctx.obj["vault"] = vault.resolve()


@cli.command()
@click.option(
    "--scope",
    "scope_id",
    type=str,
    default=None,
    metavar="SCOPE",
    help="Only sync one scope: global, project:NAME or area:NAME",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be done without executing (diagnostic only)",
)
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output results as JSON",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Maximum scopes synced at once",
)
@click.pass_context
def sync(ctx: click.Context, scope_id: str | None, dry_run: bool, output_json: bool, concurrency: int) -> None:
    """Regenerate base files and note embeds.

    Examples:

        tasksync sync

        tasksync sync --scope project:Website

        tasksync sync --dry-run
    """
    from .commands.sync_cmd import run_sync

    exit_code = run_sync(
        ctx.obj["vault"],
        scope_id=scope_id,
        dry_run=dry_run,
        output_json=output_json,
        concurrency=concurrency,
    )
    sys.exit(exit_code)


@cli.command("parent-base")
@click.argument("parent_task", metavar="NAME")
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output results as JSON",
)
@click.pass_context
def parent_base(ctx: click.Context, parent_task: str, output_json: bool) -> None:
    """Write a base listing the subtasks of the parent task NAME.

    Examples:

        tasksync parent-base "Launch website"
    """
    from .commands.sync_cmd import run_parent_base

    sys.exit(run_parent_base(ctx.obj["vault"], parent_task, output_json=output_json))


@cli.command()
@click.argument("scope_id", metavar="SCOPE")
@click.pass_context
def preview(ctx: click.Context, scope_id: str) -> None:
    """Print the base file that would be generated for SCOPE.

    SCOPE is global, project:NAME or area:NAME.
    """
    from .commands.inspect_cmd import run_preview

    sys.exit(run_preview(ctx.obj["vault"], scope_id))


@cli.command()
@click.argument("scope_id", metavar="SCOPE")
@click.pass_context
def diff(ctx: click.Context, scope_id: str) -> None:
    """Compare the generated base file for SCOPE with the one on disk.

    Exits 1 when they differ.
    """
    from .commands.inspect_cmd import run_diff

    sys.exit(run_diff(ctx.obj["vault"], scope_id))


@cli.command()
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def inspect(ctx: click.Context, path: Path) -> None:
    """Parse a base file and report structural problems."""
    from .commands.inspect_cmd import run_inspect

    sys.exit(run_inspect(ctx.obj["vault"], path))


@cli.group()
def category() -> None:
    """Task category commands."""
    pass


@category.command("add")
@click.argument("name")
@click.option("--color", default="", help="Color token for the category")
@click.pass_context
def category_add(ctx: click.Context, name: str, color: str) -> None:
    """Add a category; resyncs every scope when auto-sync is on."""
    from .commands.taxonomy_cmd import run_taxonomy_change

    sys.exit(run_taxonomy_change(ctx.obj["vault"], "category", "add", name, color=color))


@category.command("remove")
@click.argument("name")
@click.pass_context
def category_remove(ctx: click.Context, name: str) -> None:
    """Remove a category; resyncs every scope when auto-sync is on."""
    from .commands.taxonomy_cmd import run_taxonomy_change

    sys.exit(run_taxonomy_change(ctx.obj["vault"], "category", "remove", name))


@cli.group()
def priority() -> None:
    """Priority level commands."""
    pass


@priority.command("add")
@click.argument("name")
@click.option("--color", default="", help="Color token for the priority")
@click.pass_context
def priority_add(ctx: click.Context, name: str, color: str) -> None:
    """Add a priority level; resyncs every scope when auto-sync is on."""
    from .commands.taxonomy_cmd import run_taxonomy_change

    sys.exit(run_taxonomy_change(ctx.obj["vault"], "priority", "add", name, color=color))


@priority.command("remove")
@click.argument("name")
@click.pass_context
def priority_remove(ctx: click.Context, name: str) -> None:
    """Remove a priority level; resyncs every scope when auto-sync is on."""
    from .commands.taxonomy_cmd import run_taxonomy_change

    sys.exit(run_taxonomy_change(ctx.obj["vault"], "priority", "remove", name))


@cli.command()
@click.argument("state", type=click.Choice(["on", "off"]))
@click.pass_context
def autosync(ctx: click.Context, state: str) -> None:
    """Turn auto-sync on or off. Turning it on runs a full sync."""
    from .commands.taxonomy_cmd import run_autosync

    sys.exit(run_autosync(ctx.obj["vault"], state == "on"))


@cli.command()
@click.argument("kind", type=click.Choice(["project", "area"]))
@click.argument("state", type=click.Choice(["on", "off"]))
@click.pass_context
def bases(ctx: click.Context, kind: str, state: str) -> None:
    """Enable or disable per-project or per-area bases.

    Examples:

        tasksync bases area off
    """
    from .commands.taxonomy_cmd import run_toggle_bases

    sys.exit(run_toggle_bases(ctx.obj["vault"], kind, state == "on"))


@cli.command()
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Maximum scopes synced at once",
)
@click.pass_context
def watch(ctx: click.Context, concurrency: int) -> None:
    """Watch the vault and sync on new projects/areas and settings edits.

    Runs until interrupted (Ctrl+C).
    """
    from .commands.watch_cmd import run_watch

    sys.exit(run_watch(ctx.obj["vault"], concurrency=concurrency))


@cli.command()
@click.option("--last", "last_n", type=int, default=None, help="Show only the last N entries")
@click.pass_context
def log(ctx: click.Context, last_n: int | None) -> None:
    """Show the audit log of sync runs."""
    from .commands.sync_cmd import run_log

    sys.exit(run_log(ctx.obj["vault"], last_n=last_n))


if __name__ == "__main__":
    cli()
