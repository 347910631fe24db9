"""Sync orchestrator: run the generate → write → embed pipeline per scope.

One run moves IDLE → ENUMERATING → UPDATING → DONE. Enumeration takes a
single settings snapshot and discovers scopes; every scope's base file is
generated and serialized in memory before the first write. The update phase
writes each base file, then reconciles the embed in the scope's note.

Failures are recorded per scope and never abort sibling scopes. Only an
unreadable settings store (`SettingsError`) aborts a run.

All entry points are coroutines and are safe to call again while a previous
call is still running. Every step is idempotent, so overlapping runs for the
same scope converge on the same files.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path

from ..audit_log import log_operation
from ..bases import build_base_definition, build_parent_task_definition, parse_base, serialize_base
from ..bases.generator import PARENT_TASK_TYPE
from ..config import Settings, SettingsStore
from ..errors import FileSystemError, TaskSyncError, ValidationError
from ..models import Scope, ScopeKind, parse_scope_id
from ..planning import ScopeOutcome, ScopePlan, ScopeStatus, SyncPlan, SyncResult
from ..vault.embeds import reconcile_embed
from ..vault.loader import discover_scopes, find_scope, load_scope
from ..vault.store import DocumentStore
from .files import create_or_update

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    ENUMERATING = "enumerating"
    UPDATING = "updating"
    DONE = "done"


def _kind_enabled(settings: Settings, kind: ScopeKind) -> bool:
    if kind is ScopeKind.PROJECT:
        return settings.project_bases_enabled
    if kind is ScopeKind.AREA:
        return settings.area_bases_enabled
    return True


def _is_parent_task_base(text: str) -> bool:
    try:
        return parse_base(text).entity_type == PARENT_TASK_TYPE
    except ValidationError:
        return False


def requires_full_sync(previous: Settings, current: Settings) -> bool:
    """Whether a settings change invalidates previously generated bases."""
    return (
        previous.taxonomy != current.taxonomy
        or previous.tasks_folder != current.tasks_folder
        or previous.projects_folder != current.projects_folder
        or previous.areas_folder != current.areas_folder
        or previous.bases_folder != current.bases_folder
        or previous.tasks_base_file != current.tasks_base_file
        or previous.area_bases_enabled != current.area_bases_enabled
        or previous.project_bases_enabled != current.project_bases_enabled
    )


class SyncOrchestrator:
    """Drives base generation for the global scope, projects and areas.

    Args:
        store: Document store for the vault
        settings_store: Source of settings snapshots
        audit_vault: Vault root for the audit log; None disables audit entries
        concurrency: Maximum scope pipelines in flight at once
    """

    def __init__(
        self,
        store: DocumentStore,
        settings_store: SettingsStore,
        audit_vault: Path | None = None,
        concurrency: int = 1,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.store = store
        self.settings_store = settings_store
        self.audit_vault = audit_vault
        self.concurrency = concurrency
        self.state = SyncState.IDLE
        self.last_result: SyncResult | None = None

    # -- compute -------------------------------------------------------

    async def compute_plan(
        self,
        scopes: list[Scope] | None = None,
        trigger: str = "manual",
        settings: Settings | None = None,
    ) -> SyncPlan:
        """Generate every base file for `scopes` (all scopes if None) without writing.

        Raises:
            SettingsError: the settings store is unreadable.
        """
        self.state = SyncState.ENUMERATING
        if settings is None:
            settings = self.settings_store.snapshot()
        if scopes is None:
            scopes = await discover_scopes(self.store, settings)

        plan = SyncPlan(settings=settings, trigger=trigger)
        claimed: dict[str, str] = {}

        for scope in scopes:
            if not _kind_enabled(settings, scope.kind):
                plan.skipped.append(ScopeOutcome(scope.scope_id, ScopeStatus.SKIPPED))
                continue
            try:
                definition = build_base_definition(settings, scope)
                owner = claimed.get(definition.path.lower())
                if owner is not None:
                    raise ValidationError(f"{definition.path} is already generated for {owner}")
                claimed[definition.path.lower()] = scope.scope_id
                content = serialize_base(definition)
                existing = await self._read_existing(definition.path)
            except (TaskSyncError, OSError, UnicodeDecodeError) as e:
                logger.warning("Cannot plan %s: %s", scope.scope_id, e)
                plan.rejected.append(ScopeOutcome.failure(scope.scope_id, e))
                continue

            plan.scopes.append(
                ScopePlan(
                    scope=scope,
                    base_path=definition.path,
                    content=content,
                    view_names=definition.view_names,
                    document_path=scope.document_path,
                    existing_content=existing,
                )
            )

        return plan

    async def _read_existing(self, path: str) -> str | None:
        handle = await self.store.get_handle(path)
        if handle is None:
            return None
        try:
            return await self.store.read(handle)
        except FileNotFoundError:
            return None
        except (FileSystemError, UnicodeDecodeError) as e:
            # Undecodable content never equals the canonical text, so plan an update
            logger.warning("Replacing unreadable %s: %s", path, e)
            return ""

    # -- execute -------------------------------------------------------

    async def execute_plan(self, plan: SyncPlan) -> SyncResult:
        """Write every planned scope; per-scope failures are recorded, not raised."""
        self.state = SyncState.UPDATING
        outcomes: list[ScopeOutcome] = []

        if plan.scopes:
            try:
                await self.store.create_folder(plan.settings.bases_folder)
            except OSError as e:
                error = FileSystemError(plan.settings.bases_folder, f"cannot create bases folder: {e}")
                logger.error("%s", error)
                outcomes = [ScopeOutcome.failure(p.scope.scope_id, error, p.base_path) for p in plan.scopes]
            else:
                semaphore = asyncio.Semaphore(self.concurrency)

                async def run(scope_plan: ScopePlan) -> ScopeOutcome:
                    async with semaphore:
                        return await self._run_scope(scope_plan)

                outcomes = list(await asyncio.gather(*(run(p) for p in plan.scopes)))

        result = SyncResult(trigger=plan.trigger, outcomes=outcomes + plan.rejected + plan.skipped)
        self.state = SyncState.DONE
        self.last_result = result
        logger.info("Sync (%s): %s", plan.trigger, result.summary())
        self._audit(result)
        return result

    async def _run_scope(self, plan: ScopePlan) -> ScopeOutcome:
        scope_id = plan.scope.scope_id
        try:
            status = await create_or_update(self.store, plan.base_path, plan.content)
            embed_updated = False
            if plan.document_path:
                embed_updated = await self._reconcile_document(plan.document_path, plan.base_path)
        except (TaskSyncError, OSError, UnicodeDecodeError) as e:
            logger.warning("Sync failed for %s: %s", scope_id, e)
            return ScopeOutcome.failure(scope_id, e, plan.base_path)

        return ScopeOutcome(
            scope_id=scope_id,
            status=ScopeStatus.CREATED if status.is_new else ScopeStatus.UPDATED,
            base_path=plan.base_path,
            write_status=status.value,
            embed_updated=embed_updated,
            bytes_written=len(plan.content.encode("utf-8")),
        )

    async def _reconcile_document(self, document_path: str, base_path: str) -> bool:
        """Point the scope's note at its base file. Returns True if the note changed."""
        handle = await self.store.get_handle(document_path)
        if handle is None:
            raise FileSystemError(document_path, "note disappeared before its embed could be updated")
        text = await self.store.read(handle)
        updated = reconcile_embed(text, base_path)
        if updated == text:
            return False
        try:
            await self.store.overwrite(handle, updated)
        except OSError as e:
            raise FileSystemError(document_path, f"cannot update embed: {e}") from e
        logger.debug("Updated embed in %s -> %s", document_path, base_path)
        return True

    def _audit(self, result: SyncResult) -> None:
        if self.audit_vault is None or not result.outcomes:
            return
        try:
            log_operation(
                self.audit_vault,
                f"sync-{result.trigger}",
                writes=result.write_summary(),
                failures=result.failures,
                metadata={"scopes": len(result.outcomes)},
            )
        except OSError as e:
            logger.warning("Cannot write audit log: %s", e)

    # -- entry points --------------------------------------------------

    async def run(
        self,
        scopes: list[Scope] | None = None,
        trigger: str = "manual",
        settings: Settings | None = None,
    ) -> SyncResult:
        plan = await self.compute_plan(scopes, trigger=trigger, settings=settings)
        return await self.execute_plan(plan)

    async def sync_all(self, trigger: str = "manual", settings: Settings | None = None) -> SyncResult:
        """Regenerate every scope: global, every project and every area."""
        return await self.run(None, trigger=trigger, settings=settings)

    async def sync_global(self, trigger: str = "manual") -> SyncResult:
        return await self.run([Scope.global_scope()], trigger=trigger)

    async def plan_scope(self, scope_id: str, trigger: str = "manual") -> SyncPlan:
        """Plan one scope given by id: ``global``, ``project:NAME`` or ``area:NAME``.

        A malformed id or an unknown name ends up in `plan.rejected` and a
        disabled kind in `plan.skipped`, so callers always get a plan.

        Raises:
            SettingsError: the settings store is unreadable.
        """
        settings = self.settings_store.snapshot()
        plan = SyncPlan(settings=settings, trigger=trigger)
        try:
            kind, name = parse_scope_id(scope_id)
        except ValidationError as e:
            plan.rejected.append(ScopeOutcome.failure(scope_id, e))
            return plan
        if kind is ScopeKind.GLOBAL:
            return await self.compute_plan([Scope.global_scope()], trigger=trigger, settings=settings)

        scope_id = f"{kind.value}:{name}"
        if not _kind_enabled(settings, kind):
            logger.info("Skipping %s: %s bases are disabled", scope_id, kind.value)
            plan.skipped.append(ScopeOutcome(scope_id, ScopeStatus.SKIPPED))
            return plan

        resolved = await find_scope(self.store, settings, kind, name)
        if resolved is None:
            folder = settings.projects_folder if kind is ScopeKind.PROJECT else settings.areas_folder
            error = ValidationError(f"no {kind.value} named {name!r} in {folder}")
            plan.rejected.append(ScopeOutcome.failure(scope_id, error))
            return plan
        return await self.compute_plan([resolved], trigger=trigger, settings=settings)

    async def sync_scope(self, scope: Scope | str, trigger: str = "manual") -> SyncResult:
        """Regenerate one scope, given as a Scope or an id like ``project:Website``."""
        if isinstance(scope, Scope):
            return await self.run([scope], trigger=trigger)
        return await self.execute_plan(await self.plan_scope(scope, trigger=trigger))

    async def sync_parent_task(self, parent_task: str, trigger: str = "manual") -> SyncResult:
        """Write the base listing a parent task's subtasks.

        An existing base file of another kind at the same path is left alone
        and the run fails with `ValidationError`.
        """
        settings = self.settings_store.snapshot()
        scope_id = f"parent-task:{parent_task.strip()}"
        base_path = None
        try:
            definition = build_parent_task_definition(settings, parent_task)
            base_path = definition.path
            existing = await self._read_existing(base_path)
            if existing and not _is_parent_task_base(existing):
                raise ValidationError(f"{base_path} already holds another base")
            content = serialize_base(definition)
            await self.store.create_folder(settings.bases_folder)
            status = await create_or_update(self.store, base_path, content)
        except (TaskSyncError, OSError, UnicodeDecodeError) as e:
            logger.warning("Sync failed for %s: %s", scope_id, e)
            outcome = ScopeOutcome.failure(scope_id, e, base_path)
        else:
            outcome = ScopeOutcome(
                scope_id=scope_id,
                status=ScopeStatus.CREATED if status.is_new else ScopeStatus.UPDATED,
                base_path=base_path,
                write_status=status.value,
                bytes_written=len(content.encode("utf-8")),
            )

        result = SyncResult(trigger=trigger, outcomes=[outcome])
        self.last_result = result
        logger.info("Sync (%s): %s", trigger, result.summary())
        self._audit(result)
        return result

    async def on_settings_changed(self, previous: Settings, current: Settings) -> SyncResult | None:
        """React to a settings change; None when nothing needed regenerating."""
        if not current.auto_sync:
            return None
        if not previous.auto_sync:
            return await self.sync_all(trigger="auto-sync-enabled", settings=current)
        if requires_full_sync(previous, current):
            return await self.sync_all(trigger="settings-changed", settings=current)
        return None

    async def on_document_created(self, path: str) -> SyncResult | None:
        """Generate the base for a newly created project/area note."""
        settings = self.settings_store.snapshot()
        if not settings.auto_sync:
            return None
        handle = await self.store.get_handle(path)
        if handle is None:
            logger.debug("Created document %s is not indexed yet", path)
            return None
        scope = await load_scope(self.store, settings, handle)
        if scope is None:
            return None
        logger.info("New %s %r, generating its base", scope.kind.value, scope.name)
        return await self.run([scope], trigger="document-created", settings=settings)
