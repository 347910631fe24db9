"""
Audit trail of sync runs.

Every run that reaches the write phase appends one JSON Lines record to
``<vault>/.tasksync/audit.log``: which trigger started it, how many base
files and embeds it wrote, and the error recorded for each failed scope.
``tasksync log`` reads the trail back.
"""

import json
import logging
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)

AUDIT_DIR = ".tasksync"
AUDIT_FILE = "audit.log"


@dataclass
class SyncWrites:
    """What one run wrote to the vault."""
    bases_created: int = 0
    bases_updated: int = 0
    embeds_updated: int = 0
    bytes_written: int = 0
    scopes: list[str] = field(default_factory=list)

    @property
    def touched(self) -> bool:
        return bool(self.bases_created or self.bases_updated or self.embeds_updated)


@dataclass
class AuditEntry:
    """One audited sync run."""
    timestamp: str
    operation: str
    writes: SyncWrites
    failures: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "operation": self.operation,
            "writes": asdict(self.writes),
            "failures": self.failures,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEntry":
        return cls(
            timestamp=data["timestamp"],
            operation=data["operation"],
            writes=SyncWrites(**data.get("writes", {})),
            failures=data.get("failures", {}),
            metadata=data.get("metadata", {}),
        )


def audit_log_path(vault_path: Path) -> Path:
    return vault_path / AUDIT_DIR / AUDIT_FILE


def log_operation(
    vault_path: Path,
    operation: str,
    writes: SyncWrites | None = None,
    failures: dict[str, str] | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEntry:
    """
    Append a sync run to the audit trail.

    Args:
        vault_path: Vault root
        operation: Run name, ``sync-<trigger>``
        writes: Counts of files and embeds written
        failures: Scope id -> "ErrorType: message" for each failed scope
        metadata: Extra context, e.g. the number of scopes in the run

    Returns:
        The appended entry
    """
    entry = AuditEntry(
        timestamp=datetime.now(timezone.utc).isoformat(),
        operation=operation,
        writes=writes or SyncWrites(),
        failures=failures or {},
        metadata=metadata or {},
    )

    path = audit_log_path(vault_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
    return entry


def iter_audit_entries(vault_path: Path) -> Iterator[AuditEntry]:
    """Yield entries oldest first, skipping lines that do not parse."""
    path = audit_log_path(vault_path)
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as f:
        for number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield AuditEntry.from_dict(json.loads(line))
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                logger.debug("Skipping audit line %d: %s", number, e)


def read_audit_log(vault_path: Path, last_n: int | None = None) -> list[AuditEntry]:
    """Entries oldest first; only the most recent `last_n` when given."""
    if last_n is None:
        return list(iter_audit_entries(vault_path))
    if last_n <= 0:
        return []
    return list(deque(iter_audit_entries(vault_path), maxlen=last_n))


def format_audit_entry(entry: AuditEntry) -> str:
    """Human-readable block for ``tasksync log``."""
    status = "ok" if entry.succeeded else f"{len(entry.failures)} failed"
    lines = [f"[{entry.timestamp}] {entry.operation} ({status})"]

    writes = entry.writes
    if writes.touched:
        lines.append(
            f"  Bases: {writes.bases_created} created, {writes.bases_updated} updated; "
            f"embeds: {writes.embeds_updated} updated ({writes.bytes_written} bytes)"
        )
    else:
        lines.append("  Nothing written")

    for scope_id, message in entry.failures.items():
        lines.append(f"  ! {scope_id}: {message}")

    for key, value in entry.metadata.items():
        lines.append(f"  {key}: {value}")

    return "\n".join(lines)
