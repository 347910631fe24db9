"""
Plans and results for sync runs.

A sync run is split into a compute phase (enumerate scopes, generate and
serialize every base file in memory) and an execute phase (write files,
reconcile embeds). The compute phase never writes, which is what
``tasksync sync --dry-run`` shows; and because every file's text exists in
full before the first write, a failing scope never leaves a partial file.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .audit_log import SyncWrites
from .config import Settings
from .models import Scope


class ScopeStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ScopePlan:
    """What a run will write for one scope."""
    scope: Scope
    base_path: str
    content: str
    view_names: list[str] = field(default_factory=list)
    document_path: str | None = None
    existing_content: str | None = None  # None when the base file does not exist yet

    @property
    def action(self) -> str:
        if self.existing_content is None:
            return "create"
        if self.existing_content == self.content:
            return "unchanged"
        return "update"


@dataclass
class ScopeOutcome:
    """Terminal state of one scope's pipeline."""
    scope_id: str
    status: ScopeStatus
    base_path: str | None = None
    write_status: str | None = None
    embed_updated: bool = False
    bytes_written: int = 0
    error_type: str | None = None
    error: str | None = None

    @classmethod
    def failure(cls, scope_id: str, exc: BaseException, base_path: str | None = None) -> "ScopeOutcome":
        return cls(
            scope_id=scope_id,
            status=ScopeStatus.FAILED,
            base_path=base_path,
            error_type=type(exc).__name__,
            error=str(exc),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope_id,
            "status": self.status.value,
            "base_path": self.base_path,
            "write_status": self.write_status,
            "embed_updated": self.embed_updated,
            "error_type": self.error_type,
            "error": self.error,
        }


@dataclass
class SyncPlan:
    """Plan for one sync run (diagnostic output)."""
    settings: Settings
    trigger: str
    scopes: list[ScopePlan] = field(default_factory=list)
    rejected: list[ScopeOutcome] = field(default_factory=list)  # failed during planning
    skipped: list[ScopeOutcome] = field(default_factory=list)

    def summary(self) -> str:
        lines = [
            f"Sync Plan ({self.trigger})",
            f"  Bases folder: {self.settings.bases_folder}",
            f"  Scopes: {len(self.scopes)}",
        ]
        for plan in self.scopes:
            lines.append(f"  [{plan.action}] {plan.base_path} ({len(plan.view_names)} views)")
            if plan.document_path:
                lines.append(f"      embed in {plan.document_path}")
        for outcome in self.skipped:
            lines.append(f"  [skipped] {outcome.scope_id}")
        for outcome in self.rejected:
            lines.append(f"  [invalid] {outcome.scope_id}: {outcome.error}")
        return "\n".join(lines)


@dataclass
class SyncResult:
    """Aggregate result of one sync run (action output)."""
    trigger: str = "manual"
    outcomes: list[ScopeOutcome] = field(default_factory=list)

    def _count(self, status: ScopeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def created(self) -> int:
        return self._count(ScopeStatus.CREATED)

    @property
    def updated(self) -> int:
        return self._count(ScopeStatus.UPDATED)

    @property
    def failed(self) -> int:
        return self._count(ScopeStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(ScopeStatus.SKIPPED)

    @property
    def embeds_updated(self) -> int:
        return sum(1 for o in self.outcomes if o.embed_updated)

    @property
    def failures(self) -> dict[str, str]:
        return {
            o.scope_id: f"{o.error_type}: {o.error}"
            for o in self.outcomes
            if o.status is ScopeStatus.FAILED
        }

    @property
    def success(self) -> bool:
        return self.failed == 0

    def outcome(self, scope_id: str) -> ScopeOutcome | None:
        for o in self.outcomes:
            if o.scope_id == scope_id:
                return o
        return None

    def write_summary(self) -> SyncWrites:
        return SyncWrites(
            bases_created=self.created,
            bases_updated=self.updated,
            embeds_updated=self.embeds_updated,
            bytes_written=sum(o.bytes_written for o in self.outcomes),
            scopes=[o.scope_id for o in self.outcomes if o.status is not ScopeStatus.FAILED],
        )

    def summary(self) -> str:
        return (
            f"{self.created} created, {self.updated} updated, "
            f"{self.failed} failed, {self.skipped} skipped, "
            f"{self.embeds_updated} embeds updated"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "created": self.created,
            "updated": self.updated,
            "failed": self.failed,
            "skipped": self.skipped,
            "embeds_updated": self.embeds_updated,
            "success": self.success,
            "scopes": [o.to_dict() for o in self.outcomes],
        }
