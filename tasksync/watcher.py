"""
Auto-sync triggers from file system events.

This module provides:
- Watchdog-based monitoring of the vault
- Debounced detection of new project/area notes and settings edits
- An asyncio loop that feeds those triggers to the sync orchestrator, one
  at a time, so pipelines keep running cooperatively on a single thread
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from watchdog.events import (
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .config import SETTINGS_DIR, SETTINGS_FILE, Settings, SettingsStore
from .errors import SettingsError
from .planning import SyncResult
from .sync.orchestrator import SyncOrchestrator
from .vault.loader import infer_kind_from_path

logger = logging.getLogger(__name__)

SETTINGS_REL_PATH = f"{SETTINGS_DIR}/{SETTINGS_FILE}"


class TriggerKind(str, Enum):
    DOCUMENT_CREATED = "document-created"
    SETTINGS_CHANGED = "settings-changed"


@dataclass
class PendingTrigger:
    """A trigger waiting out its debounce window."""

    kind: TriggerKind
    path: str  # vault-relative, POSIX
    timestamp: float


class AutoSyncHandler(FileSystemEventHandler):
    """
    Turns file system events into sync triggers.

    Key behaviors:
    - A markdown file appearing directly under the projects or areas folder
      (created, or moved/renamed into place) is a DOCUMENT_CREATED trigger
    - Any write to the settings file, including an atomic replace, is a
      SETTINGS_CHANGED trigger
    - Repeated events for one path inside the debounce window collapse into one

    Watchdog calls the ``on_*`` methods from its observer thread; `drain`
    is called from the event loop, so pending state is guarded by a lock.
    """

    DEBOUNCE_SECONDS = 1.0

    def __init__(self, vault_path: Path, settings: Settings):
        super().__init__()
        self.vault_path = vault_path.resolve()
        self.settings = settings
        self.pending: dict[str, PendingTrigger] = {}
        self._lock = threading.Lock()

    def update_settings(self, settings: Settings) -> None:
        """Folders may have moved; classify later events with new settings."""
        self.settings = settings

    def _relative(self, path: str) -> str | None:
        try:
            return Path(path).resolve().relative_to(self.vault_path).as_posix()
        except ValueError:
            return None

    def _classify(self, path: str, created: bool) -> PendingTrigger | None:
        rel = self._relative(path)
        if rel is None:
            return None
        if rel == SETTINGS_REL_PATH:
            return PendingTrigger(TriggerKind.SETTINGS_CHANGED, rel, time.time())
        if created and infer_kind_from_path(rel, self.settings) is not None:
            return PendingTrigger(TriggerKind.DOCUMENT_CREATED, rel, time.time())
        return None

    def _queue(self, trigger: PendingTrigger | None) -> None:
        if trigger is None:
            return
        with self._lock:
            self.pending[trigger.path] = trigger

    def drain(self, now: float | None = None) -> list[PendingTrigger]:
        """Remove and return triggers whose debounce window has passed, oldest first."""
        now = time.time() if now is None else now
        ready = []
        with self._lock:
            for path, trigger in list(self.pending.items()):
                if now - trigger.timestamp >= self.DEBOUNCE_SECONDS:
                    ready.append(trigger)
                    del self.pending[path]
        return sorted(ready, key=lambda t: t.timestamp)

    def on_created(self, event: FileCreatedEvent) -> None:
        """Handle file creation."""
        if event.is_directory:
            return
        self._queue(self._classify(event.src_path, created=True))

    def on_modified(self, event: FileModifiedEvent) -> None:
        """Handle file modification; only settings edits matter."""
        if event.is_directory:
            return
        self._queue(self._classify(event.src_path, created=False))

    def on_moved(self, event: FileMovedEvent) -> None:
        """Handle rename/move; the destination counts as a new file."""
        if event.is_directory:
            return
        self._queue(self._classify(event.dest_path, created=True))


async def dispatch_trigger(
    trigger: PendingTrigger,
    orchestrator: SyncOrchestrator,
    settings_store: SettingsStore,
    handler: AutoSyncHandler,
) -> SyncResult | None:
    """Run the orchestrator entry point for one trigger."""
    if trigger.kind is TriggerKind.SETTINGS_CHANGED:
        previous = handler.settings
        try:
            current = settings_store.snapshot()
        except SettingsError as e:
            logger.error("Ignoring settings change: %s", e)
            return None
        handler.update_settings(current)
        return await orchestrator.on_settings_changed(previous, current)

    return await orchestrator.on_document_created(trigger.path)


async def process_triggers(
    triggers: list[PendingTrigger],
    orchestrator: SyncOrchestrator,
    settings_store: SettingsStore,
    handler: AutoSyncHandler,
    on_result: Callable[[PendingTrigger, SyncResult], None] | None = None,
) -> int:
    """Dispatch settled triggers in order. Returns how many failed.

    A trigger that raises is logged and dropped; the remaining triggers
    still run and the watch continues.
    """
    failed = 0
    for trigger in triggers:
        logger.debug("Trigger %s for %s", trigger.kind.value, trigger.path)
        try:
            result = await dispatch_trigger(trigger, orchestrator, settings_store, handler)
        except Exception:
            logger.exception("Auto-sync for %s failed", trigger.path)
            failed += 1
            continue
        if result is not None and on_result is not None:
            on_result(trigger, result)
    return failed


async def run_auto_sync(
    vault_path: Path,
    orchestrator: SyncOrchestrator,
    settings_store: SettingsStore,
    on_result: Callable[[PendingTrigger, SyncResult], None] | None = None,
    poll_interval: float = 0.5,
    stop: asyncio.Event | None = None,
) -> None:
    """
    Watch the vault and sync on triggers until `stop` is set or the task is cancelled.

    Args:
        vault_path: Vault root
        orchestrator: Orchestrator to drive
        settings_store: Settings store (re-read on every settings trigger)
        on_result: Callback receiving each trigger and its sync result
        poll_interval: Seconds between checks for debounced triggers
        stop: Event that ends the loop when set
    """
    handler = AutoSyncHandler(vault_path, settings_store.snapshot())
    observer = Observer()
    observer.schedule(handler, str(vault_path), recursive=True)
    observer.start()
    logger.info("Watching %s", vault_path)

    try:
        while stop is None or not stop.is_set():
            await asyncio.sleep(poll_interval)
            await process_triggers(handler.drain(), orchestrator, settings_store, handler, on_result)
    finally:
        observer.stop()
        observer.join()
