"""In-memory shape of a generated base-definition file."""

from __future__ import annotations

from dataclasses import dataclass, field

from .filters import Filter
from .properties import DEFAULT_SORT, column_reference

TITLE_KEY = column_reference("TITLE")

SORT_DIRECTIONS = ("ASC", "DESC")


@dataclass(frozen=True)
class SortKey:
    property: str
    direction: str = "ASC"

    def __post_init__(self) -> None:
        direction = self.direction.upper()
        if direction not in SORT_DIRECTIONS:
            raise ValueError(f"Invalid sort direction: {self.direction}")
        object.__setattr__(self, "direction", direction)

    def to_dict(self) -> dict:
        return {"property": self.property, "direction": self.direction}


@dataclass(frozen=True)
class GroupSpec:
    property: str
    direction: str = "ASC"

    def to_dict(self) -> dict:
        return {"property": self.property, "direction": self.direction}


def default_sort() -> tuple[SortKey, ...]:
    return tuple(SortKey(column_reference(key), direction) for key, direction in DEFAULT_SORT)


def total_sort(keys: tuple[SortKey, ...] | list[SortKey]) -> tuple[SortKey, ...]:
    """Make a sort order total: never empty, title last as the tie-breaker."""
    if not keys:
        return default_sort()
    keys = [k for k in keys if k.property != TITLE_KEY]
    keys.append(SortKey(TITLE_KEY, "ASC"))
    return tuple(keys)


@dataclass(frozen=True)
class ViewDefinition:
    """One saved, named view within a base file."""

    name: str
    filter: Filter
    order: tuple[str, ...] = ()
    sort: tuple[SortKey, ...] = ()
    group: GroupSpec | None = None
    type: str = "table"

    def __post_init__(self) -> None:
        object.__setattr__(self, "sort", total_sort(self.sort))

    def to_dict(self) -> dict:
        data: dict = {
            "type": self.type,
            "name": self.name,
            "filter": self.filter.to_expression(),
            "order": list(self.order),
            "sort": [key.to_dict() for key in self.sort],
        }
        if self.group is not None:
            data["groupBy"] = self.group.to_dict()
        return data


@dataclass(frozen=True)
class BaseDefinition:
    """Everything needed to render one base file for one scope."""

    path: str
    title: str
    entity_type: str
    views: tuple[ViewDefinition, ...]
    formulas: tuple[tuple[str, str], ...] = ()
    properties: tuple[tuple[str, str], ...] = field(default=())

    @property
    def view_names(self) -> list[str]:
        return [view.name for view in self.views]

    def view(self, name: str) -> ViewDefinition | None:
        for view in self.views:
            if view.name == name:
                return view
        return None
