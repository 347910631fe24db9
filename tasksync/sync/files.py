"""Create-or-update of a single file against a shared document store.

There is no lock over the store, so two writers may race to create the same
path. The store signals a lost race with `ConflictError`; this module turns
that into one overwrite of the winner's file. A single retry is the whole
strategy: if the retry fails too, the error surfaces as `FileSystemError`.
"""

from __future__ import annotations

import logging
from enum import Enum

from ..errors import ConflictError, FileSystemError
from ..vault.store import DocumentStore, Handle

logger = logging.getLogger(__name__)


class WriteStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UPDATED_AFTER_CONFLICT = "updated-after-conflict"

    @property
    def is_new(self) -> bool:
        return self is WriteStatus.CREATED


async def _overwrite(store: DocumentStore, handle: Handle, content: str) -> None:
    try:
        await store.overwrite(handle, content)
    except OSError as e:
        raise FileSystemError(handle.path, f"overwrite failed: {e}") from e


async def _overwrite_existing(store: DocumentStore, path: str, content: str) -> WriteStatus:
    """Fallback after a lost create race: resolve the winner and overwrite it."""
    try:
        handle = await store.get_handle(path)
    except OSError as e:
        raise FileSystemError(path, f"cannot resolve existing file: {e}") from e
    if handle is None:
        raise FileSystemError(path, "create reported a conflict but the file cannot be resolved")
    await _overwrite(store, handle, content)
    logger.debug("Overwrote %s after create conflict", path)
    return WriteStatus.UPDATED_AFTER_CONFLICT


async def _create(store: DocumentStore, path: str, content: str) -> WriteStatus:
    try:
        await store.create(path, content)
    except ConflictError:
        return await _overwrite_existing(store, path, content)
    except OSError as e:
        raise FileSystemError(path, f"create failed: {e}") from e
    return WriteStatus.CREATED


async def create_or_update(store: DocumentStore, path: str, content: str) -> WriteStatus:
    """Make `path` exist with exactly `content`.

    Raises:
        FileSystemError: the single create/overwrite retry was exhausted.
            `ConflictError` never escapes this function.
    """
    try:
        exists = await store.exists(path)
    except OSError as e:
        raise FileSystemError(path, f"existence check failed: {e}") from e

    if not exists:
        return await _create(store, path, content)

    try:
        handle = await store.get_handle(path)
    except OSError as e:
        raise FileSystemError(path, f"cannot resolve file: {e}") from e

    if handle is None:
        # Store reported the path but has not indexed it yet.
        logger.debug("No handle for existing %s, retrying as create", path)
        return await _create(store, path, content)

    await _overwrite(store, handle, content)
    return WriteStatus.UPDATED
