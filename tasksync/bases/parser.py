"""Read base files back and check them for structural problems.

Used by ``tasksync inspect`` and ``tasksync diff``. Also accepts the bare
YAML format Obsidian writes itself (no header, no fence) so hand-made
bases in the vault can be inspected too.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import frontmatter
import yaml

from ..errors import ValidationError
from .definition import TITLE_KEY

VALID_VIEW_TYPES = {"table", "cards", "list", "kanban", "calendar"}
VALID_ENTITY_TYPES = {"task", "project", "area", "parent-task"}

_BASE_BLOCK = re.compile(r"^```base[ \t]*\n(.*?)^```[ \t]*$", re.MULTILINE | re.DOTALL)


@dataclass
class ParsedView:
    name: str
    type: str
    filter: str
    order: list[str] = field(default_factory=list)
    sort: list[tuple[str, str]] = field(default_factory=list)
    group: tuple[str, str] | None = None


@dataclass
class ParsedBase:
    path: str
    header: dict[str, Any]
    formulas: dict[str, str]
    properties: dict[str, Any]
    views: list[ParsedView]

    @property
    def title(self) -> str:
        return str(self.header.get("title", ""))

    @property
    def entity_type(self) -> str:
        return str(self.header.get("type", ""))

    @property
    def view_names(self) -> list[str]:
        return [view.name for view in self.views]


def _load_body(text: str) -> tuple[dict, dict]:
    try:
        post = frontmatter.loads(text)
    except (yaml.YAMLError, ValueError) as e:
        raise ValidationError(f"invalid header: {e}") from e
    match = _BASE_BLOCK.search(post.content)
    if match:
        raw = match.group(1)
    elif not post.metadata:
        raw = text
    else:
        raise ValidationError("no ```base block found")

    try:
        body = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ValidationError(f"invalid YAML in base block: {e}") from e
    if not isinstance(body, dict):
        raise ValidationError("base block is not a mapping")
    return dict(post.metadata), body


def _parse_view(data: Any, index: int) -> ParsedView:
    if not isinstance(data, dict):
        raise ValidationError(f"view #{index} is not a mapping")

    sort: list[tuple[str, str]] = []
    for entry in data.get("sort") or []:
        if isinstance(entry, dict):
            sort.append((str(entry.get("property", "")), str(entry.get("direction", "ASC")).upper()))

    group = None
    group_data = data.get("groupBy")
    if isinstance(group_data, dict):
        group = (str(group_data.get("property", "")), str(group_data.get("direction", "ASC")).upper())

    raw_filter = data.get("filter", data.get("filters", ""))
    return ParsedView(
        name=str(data.get("name", "")),
        type=str(data.get("type", "")),
        filter=raw_filter if isinstance(raw_filter, str) else yaml.safe_dump(raw_filter).strip(),
        order=[str(item) for item in data.get("order") or []],
        sort=sort,
        group=group,
    )


def parse_base(text: str, path: str = "") -> ParsedBase:
    """Parse a base file.

    Raises:
        ValidationError: no base block, invalid YAML, or malformed views.
    """
    header, body = _load_body(text)
    views_data = body.get("views") or []
    if not isinstance(views_data, list):
        raise ValidationError("`views` must be a list")

    return ParsedBase(
        path=path,
        header=header,
        formulas=dict(body.get("formulas") or {}),
        properties=dict(body.get("properties") or {}),
        views=[_parse_view(item, i) for i, item in enumerate(views_data)],
    )


def validate_base(text: str) -> list[str]:
    """Return a list of problems; empty when the file looks sound."""
    try:
        parsed = parse_base(text)
    except ValidationError as e:
        return [str(e)]

    errors: list[str] = []
    if parsed.header:
        if parsed.header.get("view") not in VALID_VIEW_TYPES:
            errors.append(f"invalid header view type: {parsed.header.get('view')!r}")
        if parsed.entity_type not in VALID_ENTITY_TYPES:
            errors.append(f"invalid entity type: {parsed.entity_type!r}")

    if not parsed.views:
        errors.append("no views defined")

    seen: set[str] = set()
    for view in parsed.views:
        label = view.name or "<unnamed>"
        if not view.name:
            errors.append("view without a name")
        elif view.name in seen:
            errors.append(f"duplicate view name: {view.name!r}")
        seen.add(view.name)

        if view.type not in VALID_VIEW_TYPES:
            errors.append(f"{label}: invalid view type {view.type!r}")
        if not view.filter:
            errors.append(f"{label}: missing filter")
        if not view.sort:
            errors.append(f"{label}: empty sort")
        elif view.sort[-1] != (TITLE_KEY, "ASC"):
            errors.append(f"{label}: sort does not end with {TITLE_KEY} ASC")

    return errors
