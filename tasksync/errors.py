"""Error taxonomy shared by the generator, reconcilers and orchestrator."""

from __future__ import annotations


class TaskSyncError(Exception):
    """Base class for all tasksync failures."""


class ValidationError(TaskSyncError, ValueError):
    """Malformed taxonomy entry or an unresolvable scope.

    Raised during generation; the orchestrator records it against the
    offending scope and continues with the others.
    """


class FileSystemError(TaskSyncError):
    """A document-store operation failed after its single retry."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class ConflictError(TaskSyncError):
    """The store refused a create because the path already exists.

    Only ever raised by a store and consumed by the file reconciler.
    """

    def __init__(self, path: str):
        super().__init__(f"{path} already exists")
        self.path = path


class SettingsError(TaskSyncError):
    """The settings store could not be read; aborts the whole sync run."""
