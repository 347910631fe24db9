"""Data models for the task taxonomy and sync scopes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .errors import ValidationError


@dataclass(frozen=True)
class TaskCategory:
    """A task category (Bug, Feature, ...). List order drives view order."""

    name: str
    color: str = ""


@dataclass(frozen=True)
class PriorityLevel:
    """One rung of the configured priority ladder."""

    name: str
    color: str = ""


@dataclass(frozen=True)
class TaskStatus:
    """A workflow status with its done / in-progress flags."""

    name: str
    color: str = ""
    is_done: bool = False
    is_in_progress: bool = False


@dataclass(frozen=True)
class Taxonomy:
    """Immutable snapshot of categories, priorities and statuses."""

    categories: tuple[TaskCategory, ...] = ()
    priorities: tuple[PriorityLevel, ...] = ()
    statuses: tuple[TaskStatus, ...] = ()

    def done_status(self) -> TaskStatus | None:
        """The canonical done sentinel: first ``is_done`` status in configured order."""
        for status in self.statuses:
            if status.is_done:
                return status
        return None

    def validate(self) -> None:
        """Raise ValidationError for empty or duplicate names."""
        _check_names("category", [c.name for c in self.categories])
        _check_names("priority", [p.name for p in self.priorities])
        _check_names("status", [s.name for s in self.statuses])


def _check_names(kind: str, names: list[str]) -> None:
    seen: set[str] = set()
    for index, name in enumerate(names):
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"{kind} at index {index} has an empty name")
        key = name.strip().lower()
        if key in seen:
            raise ValidationError(f"duplicate {kind} name: {name!r}")
        seen.add(key)


class ScopeKind(str, Enum):
    """What a base-definition file is generated for."""

    GLOBAL = "global"
    PROJECT = "project"
    AREA = "area"


# Front matter `type:` written into generated files, per scope kind
ENTITY_TYPES = {
    ScopeKind.GLOBAL: "task",
    ScopeKind.PROJECT: "project",
    ScopeKind.AREA: "area",
}


@dataclass(frozen=True)
class Scope:
    """The global corpus, one project, or one area.

    `document_path` is the vault-relative path of the project/area note that
    embeds this scope's base file; it is None for the global scope.
    """

    kind: ScopeKind
    name: str = ""
    document_path: str | None = field(default=None, compare=False)

    @classmethod
    def global_scope(cls) -> Scope:
        return cls(kind=ScopeKind.GLOBAL)

    @property
    def scope_id(self) -> str:
        if self.kind is ScopeKind.GLOBAL:
            return "global"
        return f"{self.kind.value}:{self.name}"

    @property
    def entity_type(self) -> str:
        return ENTITY_TYPES[self.kind]

    @property
    def is_global(self) -> bool:
        return self.kind is ScopeKind.GLOBAL


def parse_scope_id(scope_id: str) -> tuple[ScopeKind, str]:
    """Split ``project:Name`` / ``area:Name`` / ``global`` into kind and name."""
    text = scope_id.strip()
    if text.lower() == "global":
        return ScopeKind.GLOBAL, ""

    prefix, sep, name = text.partition(":")
    if not sep or not name.strip():
        raise ValidationError(f"invalid scope id {scope_id!r} (expected global, project:NAME or area:NAME)")
    try:
        kind = ScopeKind(prefix.strip().lower())
    except ValueError:
        raise ValidationError(f"unknown scope kind {prefix!r} in {scope_id!r}") from None
    if kind is ScopeKind.GLOBAL:
        raise ValidationError("the global scope takes no name")
    return kind, name.strip()
