"""Document store: async access to vault files by vault-relative path.

`DocumentStore` is the interface the sync engine relies on. It promises
that each call is atomic on its own, and nothing across calls. In
particular, `create` refuses to clobber an existing path (`ConflictError`)
and `get_handle` may briefly return None for a file another writer just
created. `read` and `get_front_matter` raise `FileSystemError` for a file
that is not UTF-8 and `FileNotFoundError` for one that vanished.

`FileSystemStore` implements it over a directory, running the blocking
I/O in a worker thread so the event loop keeps servicing other triggers.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Protocol

import frontmatter
import yaml

from ..errors import ConflictError, FileSystemError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Handle:
    """A resolved, existing document."""

    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def parent(self) -> str:
        parent = str(PurePosixPath(self.path).parent)
        return "" if parent == "." else parent


class DocumentStore(Protocol):
    async def exists(self, path: str) -> bool: ...

    async def create(self, path: str, text: str) -> Handle: ...

    async def get_handle(self, path: str) -> Handle | None: ...

    async def read(self, handle: Handle) -> str: ...

    async def overwrite(self, handle: Handle, text: str) -> None: ...

    async def create_folder(self, path: str) -> None: ...

    async def list_markdown_files(self) -> list[Handle]: ...

    async def get_front_matter(self, handle: Handle) -> dict[str, Any]: ...


def normalize_path(path: str) -> str:
    """Vault-relative POSIX path without leading/trailing slashes or dot segments."""
    parts = [p for p in path.replace("\\", "/").split("/") if p and p != "."]
    if any(p == ".." for p in parts):
        raise FileSystemError(path, "path escapes the vault")
    return "/".join(parts)


def _is_hidden(rel: PurePosixPath) -> bool:
    return any(part.startswith(".") for part in rel.parts)


class FileSystemStore:
    """DocumentStore over a vault directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _abs(self, path: str) -> Path:
        return self.root / normalize_path(path)

    # -- blocking implementations --------------------------------------

    def _create_sync(self, path: str, text: str) -> Handle:
        target = self._abs(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            # "x" fails if another writer got there first
            with target.open("x", encoding="utf-8", newline="\n") as f:
                f.write(text)
        except FileExistsError:
            raise ConflictError(normalize_path(path)) from None
        return Handle(normalize_path(path))

    def _overwrite_sync(self, handle: Handle, text: str) -> None:
        target = self._abs(handle.path)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(text)
            os.replace(tmp_name, target)
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def _list_sync(self) -> list[Handle]:
        handles = []
        for md_file in self.root.rglob("*.md"):
            rel = PurePosixPath(md_file.relative_to(self.root).as_posix())
            # Skip hidden files and directories
            if _is_hidden(rel):
                continue
            if md_file.is_file():
                handles.append(Handle(str(rel)))
        return sorted(handles, key=lambda h: h.path)

    def _read_sync(self, handle: Handle) -> str:
        try:
            return self._abs(handle.path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise FileSystemError(handle.path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e

    def _front_matter_sync(self, handle: Handle) -> dict[str, Any]:
        text = self._read_sync(handle)
        try:
            return dict(frontmatter.loads(text).metadata)
        except (yaml.YAMLError, ValueError) as e:
            logger.warning("Unreadable front matter in %s: %s", handle.path, e)
            return {}

    # -- DocumentStore -------------------------------------------------

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._abs(path).exists)

    async def create(self, path: str, text: str) -> Handle:
        return await asyncio.to_thread(self._create_sync, path, text)

    async def get_handle(self, path: str) -> Handle | None:
        if await asyncio.to_thread(self._abs(path).is_file):
            return Handle(normalize_path(path))
        return None

    async def read(self, handle: Handle) -> str:
        return await asyncio.to_thread(self._read_sync, handle)

    async def overwrite(self, handle: Handle, text: str) -> None:
        await asyncio.to_thread(self._overwrite_sync, handle, text)

    async def create_folder(self, path: str) -> None:
        await asyncio.to_thread(self._abs(path).mkdir, parents=True, exist_ok=True)

    async def list_markdown_files(self) -> list[Handle]:
        return await asyncio.to_thread(self._list_sync)

    async def get_front_matter(self, handle: Handle) -> dict[str, Any]:
        return await asyncio.to_thread(self._front_matter_sync, handle)
