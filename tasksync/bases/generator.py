"""Derive the view list and full base definition for a scope.

Pure functions of (taxonomy, scope): no I/O and no hidden state, so two
calls with equal inputs always produce equal output. A scope yields
``1 + C + C*P`` views for C categories and P priorities, in this order:

- the base "Tasks" view (all open, top-level tasks in scope)
- one "All <Category plural>" view per category, in configured order
- one "<Category plural> • <Priority> priority" view per pair, category-major
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import ValidationError
from ..models import Scope, ScopeKind, Taxonomy
from .definition import BaseDefinition, GroupSpec, ViewDefinition, default_sort
from .filters import And, Field, Filter, Link, Not, Or
from .naming import category_view_name, priority_view_name, sanitize_file_name
from .properties import (
    BASENAME_REFERENCE,
    FOLDER_REFERENCE,
    FORMULAS,
    VIEW_ORDERS,
    column_reference,
    filter_reference,
    properties_section,
)

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

BASE_VIEW_NAME = "Tasks"

PARENT_TASK_TYPE = "parent-task"
CHILD_TASKS_VIEW_NAME = "Child Tasks"
RELATED_TASKS_VIEW_NAME = "All Related"


def scope_predicate(scope: Scope) -> Filter | None:
    """Restrict tasks to one project or area; None for the global scope."""
    if scope.kind is ScopeKind.PROJECT:
        return Field(filter_reference("PROJECT")).equals(Link(scope.name))
    if scope.kind is ScopeKind.AREA:
        return Field(filter_reference("AREAS")).contains(Link(scope.name))
    return None


def open_task_predicates(taxonomy: Taxonomy) -> list[Filter]:
    predicates: list[Filter] = [Field(filter_reference("DONE")).equals(False)]
    done = taxonomy.done_status()
    if done is not None:
        predicates.append(Not(Field(filter_reference("STATUS")).equals(done.name)))
    return predicates


def base_predicates(taxonomy: Taxonomy, scope: Scope, tasks_folder: str = "Tasks") -> list[Filter]:
    """Predicates shared by every view of a scope."""
    predicates: list[Filter] = [Field(FOLDER_REFERENCE).equals(tasks_folder)]
    predicates.extend(open_task_predicates(taxonomy))
    predicates.append(Field(filter_reference("PARENT_TASK")).is_empty())
    scoped = scope_predicate(scope)
    if scoped is not None:
        predicates.append(scoped)
    return predicates


def _check_scope(scope: Scope) -> None:
    if scope.kind is not ScopeKind.GLOBAL and not scope.name.strip():
        raise ValidationError(f"{scope.kind.value} scope has no name")


def generate_views(
    taxonomy: Taxonomy,
    scope: Scope,
    tasks_folder: str = "Tasks",
) -> list[ViewDefinition]:
    """Ordered view list for a scope.

    Raises:
        ValidationError: empty or duplicate taxonomy names, a nameless
            project/area scope, or two views that would share a name.
    """
    taxonomy.validate()
    _check_scope(scope)

    base_order, type_order = VIEW_ORDERS[scope.kind]
    base_order = tuple(column_reference(key) for key in base_order)
    type_order = tuple(column_reference(key) for key in type_order)
    shared = base_predicates(taxonomy, scope, tasks_folder)
    category_field = Field(filter_reference("CATEGORY"))
    priority_field = Field(filter_reference("PRIORITY"))

    views = [ViewDefinition(name=BASE_VIEW_NAME, filter=And(*shared), order=base_order, sort=default_sort())]

    for category in taxonomy.categories:
        views.append(
            ViewDefinition(
                name=category_view_name(category.name),
                filter=And(*shared, category_field.equals(category.name)),
                order=type_order,
                sort=default_sort(),
                group=GroupSpec(column_reference("PRIORITY"), "ASC"),
            )
        )

    for category in taxonomy.categories:
        for priority in taxonomy.priorities:
            views.append(
                ViewDefinition(
                    name=priority_view_name(category.name, priority.name),
                    filter=And(
                        *shared,
                        category_field.equals(category.name),
                        priority_field.equals(priority.name),
                    ),
                    order=type_order,
                    sort=default_sort(),
                )
            )

    seen: set[str] = set()
    for view in views:
        if view.name in seen:
            raise ValidationError(f"two views would be named {view.name!r} in {scope.scope_id}")
        seen.add(view.name)

    logger.debug("Generated %d views for %s", len(views), scope.scope_id)
    return views


def _in_bases_folder(settings: Settings, file_name: str) -> str:
    folder = settings.bases_folder.strip("/")
    return f"{folder}/{file_name}" if folder else file_name


def base_file_path(settings: Settings, scope: Scope) -> str:
    """Vault-relative path of the base file owned by `scope`."""
    if scope.is_global:
        file_name = settings.tasks_base_file
        if not file_name.endswith(".base"):
            file_name += ".base"
    else:
        _check_scope(scope)
        file_name = f"{sanitize_file_name(scope.name)}.base"
    return _in_bases_folder(settings, file_name)


def build_base_definition(settings: Settings, scope: Scope) -> BaseDefinition:
    """Full definition (path, header, properties, views) for one scope."""
    views = generate_views(settings.taxonomy, scope, tasks_folder=settings.tasks_folder)
    return BaseDefinition(
        path=base_file_path(settings, scope),
        title=BASE_VIEW_NAME if scope.is_global else scope.name,
        entity_type=scope.entity_type,
        views=tuple(views),
        formulas=FORMULAS,
        properties=properties_section(scope.kind),
    )


def parent_task_views(parent_task: str, tasks_folder: str = "Tasks") -> list[ViewDefinition]:
    """Views of a parent task's base: its subtasks, then the parent with its subtasks.

    Done subtasks stay listed so the base shows the parent's progress.

    Raises:
        ValidationError: blank parent task name.
    """
    name = parent_task.strip()
    if not name:
        raise ValidationError("parent task has no name")

    order = tuple(column_reference(key) for key in VIEW_ORDERS[ScopeKind.GLOBAL][0])
    child_of = Field(filter_reference("PARENT_TASK")).equals(Link(name))
    return [
        ViewDefinition(
            name=CHILD_TASKS_VIEW_NAME,
            filter=And(Field(FOLDER_REFERENCE).equals(tasks_folder), child_of),
            order=order,
            sort=default_sort(),
        ),
        ViewDefinition(
            name=RELATED_TASKS_VIEW_NAME,
            filter=Or(Field(BASENAME_REFERENCE).equals(name), child_of),
            order=order,
            sort=default_sort(),
        ),
    ]


def parent_task_base_path(settings: Settings, parent_task: str) -> str:
    return _in_bases_folder(settings, f"{sanitize_file_name(parent_task.strip())}.base")


def build_parent_task_definition(settings: Settings, parent_task: str) -> BaseDefinition:
    """Base file listing the subtasks of one parent task."""
    views = parent_task_views(parent_task, tasks_folder=settings.tasks_folder)
    name = parent_task.strip()
    return BaseDefinition(
        path=parent_task_base_path(settings, name),
        title=name,
        entity_type=PARENT_TASK_TYPE,
        views=tuple(views),
        formulas=FORMULAS,
        properties=properties_section(ScopeKind.GLOBAL),
    )
