"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections import Counter
from pathlib import Path

import pytest

from tasksync.config import MemorySettingsStore, Settings
from tasksync.errors import ConflictError
from tasksync.models import PriorityLevel, TaskCategory
from tasksync.sync.orchestrator import SyncOrchestrator
from tasksync.vault.store import FileSystemStore, Handle


class RacingStore(FileSystemStore):
    """A rival writer creates each file between the existence check and our create."""

    def __init__(self, root: Path, rival_text: str = "rival\n"):
        super().__init__(root)
        self.rival_text = rival_text
        self.raced: set[str] = set()

    async def create(self, path: str, text: str) -> Handle:
        if path not in self.raced:
            self.raced.add(path)
            target = self.root / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(self.rival_text, encoding="utf-8")
        return await super().create(path, text)


class LaggingStore(FileSystemStore):
    """The index has not caught up: the first `lag` handle lookups per path miss."""

    def __init__(self, root: Path, lag: int = 1):
        super().__init__(root)
        self.lag = lag
        self.lookups: Counter[str] = Counter()

    async def get_handle(self, path: str) -> Handle | None:
        self.lookups[path] += 1
        if self.lookups[path] <= self.lag:
            return None
        return await super().get_handle(path)


class GhostStore(FileSystemStore):
    """Create always reports a conflict, yet the file can never be resolved."""

    async def create(self, path: str, text: str) -> Handle:
        raise ConflictError(path)

    async def get_handle(self, path: str) -> Handle | None:
        return None


class BrokenStore(FileSystemStore):
    """Writes to selected paths fail with a permission error."""

    def __init__(self, root: Path, broken: set[str]):
        super().__init__(root)
        self.broken = broken

    async def create(self, path: str, text: str) -> Handle:
        if path in self.broken:
            raise PermissionError(f"read-only: {path}")
        return await super().create(path, text)

    async def overwrite(self, handle: Handle, text: str) -> None:
        if handle.path in self.broken:
            raise PermissionError(f"read-only: {handle.path}")
        await super().overwrite(handle, text)


class VanishingStore(FileSystemStore):
    """A note is renamed right after the folder listing is taken."""

    def __init__(self, root: Path, path: str, new_path: str):
        super().__init__(root)
        self.path = path
        self.new_path = new_path

    async def list_markdown_files(self) -> list[Handle]:
        handles = await super().list_markdown_files()
        target = self.root / self.new_path
        target.parent.mkdir(parents=True, exist_ok=True)
        (self.root / self.path).rename(target)
        return handles


def write_note(path: Path, front_matter: dict[str, str] | None = None, body: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = []
    if front_matter:
        lines.append("---")
        lines.extend(f"{key}: {value}" for key, value in front_matter.items())
        lines.append("---")
    lines.append(body)
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """Empty vault with the default folders."""
    vault_path = tmp_path / "vault"
    (vault_path / ".obsidian").mkdir(parents=True)
    for folder in ("Tasks", "Projects", "Areas"):
        (vault_path / folder).mkdir()
    return vault_path


@pytest.fixture
def small_settings() -> Settings:
    """Two categories, two priorities, default statuses."""
    return Settings(
        categories=(TaskCategory("Bug"), TaskCategory("Feature")),
        priorities=(PriorityLevel("High"), PriorityLevel("Low")),
    )


@pytest.fixture
def populated_vault(vault: Path) -> Path:
    """Two projects, one area and one non-project note in the projects folder."""
    write_note(vault / "Projects" / "Website.md", {"Type": "Project", "Name": "Website"}, "# Website\n\nLaunch plan.\n")
    write_note(vault / "Projects" / "Mobile App.md", None, "# Mobile App\n")
    write_note(vault / "Projects" / "Kickoff.md", {"Type": "Meeting"}, "# Kickoff notes\n")
    write_note(vault / "Areas" / "Health.md", {"Type": "Area"}, "# Health\n")
    return vault


@pytest.fixture
def make_orchestrator(small_settings: Settings):
    """Factory: orchestrator over a vault with in-memory settings."""

    def factory(
        vault_path: Path,
        store: FileSystemStore | None = None,
        settings: Settings | None = None,
        **kwargs,
    ) -> SyncOrchestrator:
        return SyncOrchestrator(
            store or FileSystemStore(vault_path),
            MemorySettingsStore(settings or small_settings),
            **kwargs,
        )

    return factory


@pytest.fixture
def racing_store(vault: Path) -> RacingStore:
    return RacingStore(vault)


@pytest.fixture
def lagging_store(vault: Path) -> LaggingStore:
    return LaggingStore(vault, lag=1)


@pytest.fixture
def stubborn_store(vault: Path) -> LaggingStore:
    """Index lag that outlasts the single retry."""
    return LaggingStore(vault, lag=2)


@pytest.fixture
def ghost_store(vault: Path) -> GhostStore:
    return GhostStore(vault)


@pytest.fixture
def broken_store(vault: Path):
    """Factory: store whose writes to the given paths fail."""

    def factory(*paths: str) -> BrokenStore:
        return BrokenStore(vault, set(paths))

    return factory


@pytest.fixture
def vanishing_store(vault: Path):
    """Factory: store that renames `path` to `new_path` once it has listed the vault."""

    def factory(path: str, new_path: str) -> VanishingStore:
        return VanishingStore(vault, path, new_path)

    return factory
