"""Vault access: document store, scope discovery and embed reconciliation."""

from .embeds import find_managed_embeds, reconcile_embed
from .loader import discover_scopes
from .store import DocumentStore, FileSystemStore, Handle

__all__ = [
    "DocumentStore",
    "FileSystemStore",
    "Handle",
    "discover_scopes",
    "find_managed_embeds",
    "reconcile_embed",
]
