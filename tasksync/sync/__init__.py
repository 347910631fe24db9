"""Writing base files and keeping note embeds in step with them."""

from .files import WriteStatus, create_or_update
from .orchestrator import SyncOrchestrator, SyncState

__all__ = ["SyncOrchestrator", "SyncState", "WriteStatus", "create_or_update"]
