"""Settings: folders, feature toggles and the task taxonomy.

Stored as YAML at ``<vault>/.tasksync/settings.yml``. Every sync run takes
one snapshot through `SettingsStore.snapshot()` and uses it throughout, so
a concurrent settings edit never produces a half-old, half-new run.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Callable

import yaml

from .errors import SettingsError, ValidationError
from .models import PriorityLevel, TaskCategory, TaskStatus, Taxonomy

logger = logging.getLogger(__name__)

SETTINGS_DIR = ".tasksync"
SETTINGS_FILE = "settings.yml"

DEFAULT_CATEGORIES = (
    TaskCategory("Task", "blue"),
    TaskCategory("Bug", "red"),
    TaskCategory("Feature", "green"),
    TaskCategory("Improvement", "purple"),
    TaskCategory("Chore", "gray"),
)

DEFAULT_PRIORITIES = (
    PriorityLevel("Low", "green"),
    PriorityLevel("Medium", "yellow"),
    PriorityLevel("High", "orange"),
    PriorityLevel("Urgent", "red"),
)

DEFAULT_STATUSES = (
    TaskStatus("Backlog", "gray"),
    TaskStatus("Ready", "blue"),
    TaskStatus("In Progress", "yellow", is_in_progress=True),
    TaskStatus("Review", "purple"),
    TaskStatus("Done", "green", is_done=True),
    TaskStatus("Cancelled", "red"),
)


@dataclass(frozen=True)
class Settings:
    tasks_folder: str = "Tasks"
    projects_folder: str = "Projects"
    areas_folder: str = "Areas"
    bases_folder: str = "Bases"
    tasks_base_file: str = "Tasks.base"
    area_bases_enabled: bool = True
    project_bases_enabled: bool = True
    auto_sync: bool = True
    categories: tuple[TaskCategory, ...] = field(default=DEFAULT_CATEGORIES)
    priorities: tuple[PriorityLevel, ...] = field(default=DEFAULT_PRIORITIES)
    statuses: tuple[TaskStatus, ...] = field(default=DEFAULT_STATUSES)

    @property
    def taxonomy(self) -> Taxonomy:
        return Taxonomy(categories=self.categories, priorities=self.priorities, statuses=self.statuses)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["categories"] = [asdict(c) for c in self.categories]
        data["priorities"] = [asdict(p) for p in self.priorities]
        data["statuses"] = [asdict(s) for s in self.statuses]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Build settings from a parsed YAML mapping; missing keys take defaults."""
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown settings keys: %s", ", ".join(sorted(unknown)))

        kwargs: dict[str, Any] = {}
        for key in ("tasks_folder", "projects_folder", "areas_folder", "bases_folder", "tasks_base_file"):
            if key in data:
                value = data[key]
                if not isinstance(value, str) or not value.strip():
                    raise ValidationError(f"settings.{key} must be a non-empty string")
                kwargs[key] = value.strip()
        for key in ("area_bases_enabled", "project_bases_enabled", "auto_sync"):
            if key in data:
                if not isinstance(data[key], bool):
                    raise ValidationError(f"settings.{key} must be true or false")
                kwargs[key] = data[key]

        if "categories" in data:
            kwargs["categories"] = tuple(_entries(data["categories"], "categories", TaskCategory))
        if "priorities" in data:
            kwargs["priorities"] = tuple(_entries(data["priorities"], "priorities", PriorityLevel))
        if "statuses" in data:
            kwargs["statuses"] = tuple(_entries(data["statuses"], "statuses", TaskStatus))

        settings = cls(**kwargs)
        settings.taxonomy.validate()
        return settings


def _entries(raw: Any, key: str, factory: Callable[..., Any]) -> list[Any]:
    """Accept either bare names or mappings for taxonomy lists."""
    if not isinstance(raw, list):
        raise ValidationError(f"settings.{key} must be a list")
    allowed = set(factory.__dataclass_fields__)
    entries = []
    for index, item in enumerate(raw):
        if isinstance(item, str):
            entries.append(factory(name=item))
        elif isinstance(item, dict):
            extra = set(item) - allowed
            if extra:
                raise ValidationError(f"settings.{key}[{index}] has unknown fields: {', '.join(sorted(extra))}")
            entries.append(factory(**item))
        else:
            raise ValidationError(f"settings.{key}[{index}] must be a name or a mapping")
    return entries


def settings_path(vault_path: Path) -> Path:
    return vault_path / SETTINGS_DIR / SETTINGS_FILE


def load_settings(vault_path: Path) -> Settings:
    """Read settings from disk, or defaults when the file does not exist.

    Raises:
        SettingsError: the file exists but cannot be read or parsed.
    """
    path = settings_path(vault_path)
    if not path.exists():
        return Settings()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise SettingsError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise SettingsError(f"{path} must contain a mapping")

    try:
        return Settings.from_dict(data)
    except (ValidationError, TypeError) as e:
        raise SettingsError(f"Invalid settings in {path}: {e}") from e


def save_settings(vault_path: Path, settings: Settings) -> Path:
    """Write settings atomically (temp file, then rename)."""
    path = settings_path(vault_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = yaml.safe_dump(settings.to_dict(), sort_keys=False, allow_unicode=True)

    fd, tmp_name = tempfile.mkstemp(prefix=".settings.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
    return path


class SettingsStore:
    """Settings backed by the vault's settings file."""

    def __init__(self, vault_path: Path):
        self.vault_path = vault_path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return settings_path(self.vault_path)

    def snapshot(self) -> Settings:
        """Consistent view of the settings as they are right now."""
        with self._lock:
            return load_settings(self.vault_path)

    def update(self, change: Callable[[Settings], Settings]) -> tuple[Settings, Settings]:
        """Apply `change` and persist. Returns (previous, current)."""
        with self._lock:
            previous = load_settings(self.vault_path)
            current = change(previous)
            current.taxonomy.validate()
            save_settings(self.vault_path, current)
        logger.info("Settings updated at %s", self.path)
        return previous, current


class MemorySettingsStore(SettingsStore):
    """Settings held in memory; used by tests and embedding callers."""

    def __init__(self, settings: Settings | None = None):
        self.vault_path = None
        self._settings = settings or Settings()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        raise SettingsError("in-memory settings have no file")

    def snapshot(self) -> Settings:
        with self._lock:
            return self._settings

    def update(self, change: Callable[[Settings], Settings]) -> tuple[Settings, Settings]:
        with self._lock:
            previous = self._settings
            current = change(previous)
            current.taxonomy.validate()
            self._settings = current
        return previous, current


def with_category_added(settings: Settings, name: str, color: str = "") -> Settings:
    name = name.strip()
    if any(c.name.lower() == name.lower() for c in settings.categories):
        raise ValidationError(f"category {name!r} already exists")
    return replace(settings, categories=settings.categories + (TaskCategory(name, color),))


def with_category_removed(settings: Settings, name: str) -> Settings:
    kept = tuple(c for c in settings.categories if c.name.lower() != name.strip().lower())
    if len(kept) == len(settings.categories):
        raise ValidationError(f"no category named {name!r}")
    return replace(settings, categories=kept)


def with_priority_added(settings: Settings, name: str, color: str = "") -> Settings:
    name = name.strip()
    if any(p.name.lower() == name.lower() for p in settings.priorities):
        raise ValidationError(f"priority {name!r} already exists")
    return replace(settings, priorities=settings.priorities + (PriorityLevel(name, color),))


def with_priority_removed(settings: Settings, name: str) -> Settings:
    kept = tuple(p for p in settings.priorities if p.name.lower() != name.strip().lower())
    if len(kept) == len(settings.priorities):
        raise ValidationError(f"no priority named {name!r}")
    return replace(settings, priorities=kept)


def find_vault(start: Path) -> Path | None:
    """Walk up from `start` to the first folder holding .tasksync or .obsidian."""
    cur = start.resolve()
    for p in (cur, *cur.parents):
        if (p / SETTINGS_DIR).is_dir() or (p / ".obsidian").is_dir():
            return p
    return None
