"""Single source of truth for task properties referenced by generated bases."""

from __future__ import annotations

from dataclasses import dataclass

from ..models import ScopeKind


@dataclass(frozen=True)
class PropertyDef:
    key: str
    name: str
    type: str  # string | checkbox | array | date
    source: str | None = None  # computed / file-system backed reference
    link: bool = False
    frontmatter: bool = True


PROPERTY_REGISTRY: dict[str, PropertyDef] = {
    "TITLE": PropertyDef("title", "Title", "string", source="formula.Title"),
    "TYPE": PropertyDef("type", "Type", "string"),
    "CATEGORY": PropertyDef("category", "Category", "string"),
    "PRIORITY": PropertyDef("priority", "Priority", "string"),
    "AREAS": PropertyDef("areas", "Areas", "array", link=True),
    "PROJECT": PropertyDef("project", "Project", "string", link=True),
    "DONE": PropertyDef("done", "Done", "checkbox"),
    "STATUS": PropertyDef("status", "Status", "string"),
    "PARENT_TASK": PropertyDef("parentTask", "Parent task", "string", link=True),
    "DO_DATE": PropertyDef("doDate", "Do Date", "date"),
    "DUE_DATE": PropertyDef("dueDate", "Due Date", "date"),
    "TAGS": PropertyDef("tags", "tags", "array"),
    "CREATED_AT": PropertyDef("createdAt", "Created At", "string", source="file.ctime", frontmatter=False),
    "UPDATED_AT": PropertyDef("updatedAt", "Updated At", "string", source="file.mtime", frontmatter=False),
}

# Referenced bare in filter expressions instead of note["..."]
BARE_REFERENCES = {"Project", "Areas", "Category", "Priority"}

FOLDER_REFERENCE = "file.folder"
BASENAME_REFERENCE = "file.basename"

FORMULAS: tuple[tuple[str, str], ...] = (("Title", "link(file.name, Title)"),)

PROPERTY_SETS: dict[ScopeKind, tuple[str, ...]] = {
    ScopeKind.GLOBAL: (
        "TITLE", "TYPE", "CATEGORY", "PRIORITY", "AREAS", "PROJECT", "DONE", "STATUS",
        "PARENT_TASK", "DO_DATE", "DUE_DATE", "TAGS", "CREATED_AT", "UPDATED_AT",
    ),
    ScopeKind.PROJECT: (
        "TITLE", "TYPE", "CATEGORY", "PRIORITY", "AREAS", "DONE", "STATUS",
        "PARENT_TASK", "TAGS", "CREATED_AT", "UPDATED_AT",
    ),
    ScopeKind.AREA: (
        "TITLE", "TYPE", "CATEGORY", "PRIORITY", "PROJECT", "DONE", "STATUS",
        "PARENT_TASK", "TAGS", "CREATED_AT", "UPDATED_AT",
    ),
}

# Visible columns: (base view, category/priority views)
VIEW_ORDERS: dict[ScopeKind, tuple[tuple[str, ...], tuple[str, ...]]] = {
    ScopeKind.GLOBAL: (
        ("DONE", "TITLE", "PROJECT", "CATEGORY", "PRIORITY", "CREATED_AT", "UPDATED_AT"),
        ("DONE", "TITLE", "PROJECT", "PRIORITY", "CREATED_AT", "UPDATED_AT"),
    ),
    ScopeKind.PROJECT: (
        ("DONE", "TITLE", "AREAS", "CATEGORY", "PRIORITY", "CREATED_AT", "UPDATED_AT"),
        ("DONE", "TITLE", "AREAS", "PRIORITY", "CREATED_AT", "UPDATED_AT"),
    ),
    ScopeKind.AREA: (
        ("DONE", "TITLE", "PROJECT", "CATEGORY", "PRIORITY", "CREATED_AT", "UPDATED_AT"),
        ("DONE", "TITLE", "PROJECT", "PRIORITY", "CREATED_AT", "UPDATED_AT"),
    ),
}

# Open items first, categories clustered, recent first, title breaks ties.
DEFAULT_SORT: tuple[tuple[str, str], ...] = (
    ("DONE", "ASC"),
    ("CATEGORY", "ASC"),
    ("UPDATED_AT", "DESC"),
    ("CREATED_AT", "DESC"),
    ("TITLE", "ASC"),
)


def get_property(key: str) -> PropertyDef:
    try:
        return PROPERTY_REGISTRY[key]
    except KeyError:
        raise KeyError(f"Unknown property: {key}") from None


def filter_reference(key: str) -> str:
    """How a property is referenced inside a filter expression."""
    prop = get_property(key)
    if prop.source:
        return prop.source
    if prop.name in BARE_REFERENCES:
        return prop.name
    if prop.frontmatter:
        return f'note["{prop.name}"]'
    return prop.name


def column_reference(key: str) -> str:
    """How a property is referenced in view `order` and `sort` entries."""
    prop = get_property(key)
    return prop.source or prop.name


def properties_section(kind: ScopeKind) -> tuple[tuple[str, str], ...]:
    """Display-name declarations for the property set of a scope kind."""
    entries = []
    for key in PROPERTY_SETS[kind]:
        prop = get_property(key)
        ref = prop.source or f"note.{prop.name}"
        entries.append((ref, prop.name))
    return tuple(entries)
