"""Storage layer: the in-memory database, external file binding and handle memory."""

from promptmanager.storage.capability import (
    LocalFileCapability,
    PermissionState,
    StorageCapability,
)
from promptmanager.storage.database import DatabaseSession
from promptmanager.storage.handle_cache import HandleCache
from promptmanager.storage.handle_manager import (
    Bound,
    PermissionPending,
    PersistentHandleManager,
    SaveOutcome,
    SaveResult,
    Stale,
    Unbound,
)

__all__ = [
    "DatabaseSession",
    "HandleCache",
    "PersistentHandleManager",
    "StorageCapability",
    "LocalFileCapability",
    "PermissionState",
    "SaveOutcome",
    "SaveResult",
    "Unbound",
    "Bound",
    "PermissionPending",
    "Stale",
]
