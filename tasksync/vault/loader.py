"""Project and area discovery."""

from __future__ import annotations

import logging
from operator import attrgetter
from pathlib import PurePosixPath

from ..config import Settings
from ..errors import TaskSyncError
from ..models import Scope, ScopeKind
from .store import DocumentStore, Handle, normalize_path

logger = logging.getLogger(__name__)

# Front matter `Type` expected on project / area notes
SCOPE_TYPES = {
    ScopeKind.PROJECT: "project",
    ScopeKind.AREA: "area",
}


def _folder_kinds(settings: Settings) -> dict[str, ScopeKind]:
    kinds = {}
    if settings.project_bases_enabled:
        kinds[normalize_path(settings.projects_folder)] = ScopeKind.PROJECT
    if settings.area_bases_enabled:
        kinds[normalize_path(settings.areas_folder)] = ScopeKind.AREA
    return kinds


def infer_kind_from_path(path: str, settings: Settings) -> ScopeKind | None:
    """Project or area kind for a note directly under an enabled folder."""
    rel = PurePosixPath(normalize_path(path))
    if rel.suffix.lower() != ".md" or any(part.startswith(".") for part in rel.parts):
        return None
    parent = str(rel.parent)
    return _folder_kinds(settings).get("" if parent == "." else parent)


def _field(fm: dict, *keys: str):
    for key in keys:
        value = fm.get(key)
        if value not in (None, ""):
            return value
    return None


async def load_scope(store: DocumentStore, settings: Settings, handle: Handle) -> Scope | None:
    """Scope for one note, or None if the note is not a project/area.

    The scope is named after the file, since that is what task links
    resolve against. A note that vanished is not a scope. A note whose
    front matter cannot be read is kept, so the failure to update its
    embed is reported against it.
    """
    kind = infer_kind_from_path(handle.path, settings)
    if kind is None:
        return None

    try:
        fm = await store.get_front_matter(handle)
    except FileNotFoundError:
        logger.debug("Skipping %s: removed during discovery", handle.path)
        return None
    except (TaskSyncError, OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read front matter of %s: %s", handle.path, e)
        fm = {}

    declared = _field(fm, "Type", "type")
    if declared is not None and str(declared).strip().lower() != SCOPE_TYPES[kind]:
        logger.debug("Skipping %s: Type is %r", handle.path, declared)
        return None

    return Scope(kind=kind, name=handle.stem, document_path=handle.path)


async def discover_scopes(store: DocumentStore, settings: Settings) -> list[Scope]:
    """Every scope of a run: global, then projects, then areas, each by path.

    Args:
        store: Document store to enumerate
        settings: Snapshot deciding folders and which kinds are enabled

    Returns:
        Ordered scope list, always starting with the global scope
    """
    projects: list[Scope] = []
    areas: list[Scope] = []

    for handle in await store.list_markdown_files():
        scope = await load_scope(store, settings, handle)
        if scope is None:
            continue
        if scope.kind is ScopeKind.PROJECT:
            projects.append(scope)
        else:
            areas.append(scope)

    by_path = attrgetter("document_path")
    scopes = [Scope.global_scope(), *sorted(projects, key=by_path), *sorted(areas, key=by_path)]
    logger.debug("Discovered %d projects and %d areas", len(projects), len(areas))
    return scopes


async def find_scope(store: DocumentStore, settings: Settings, kind: ScopeKind, name: str) -> Scope | None:
    """Look up a project or area by name (case-insensitive)."""
    wanted = name.strip().lower()
    for scope in await discover_scopes(store, settings):
        if scope.kind is kind and scope.name.lower() == wanted:
            return scope
    return None
