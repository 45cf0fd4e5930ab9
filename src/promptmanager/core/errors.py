# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Exception hierarchy for the prompt database core."""

from __future__ import annotations

__all__ = [
    "PromptManagerError",
    "NotInitializedError",
    "EngineLoadError",
    "OrphanedRecordError",
    "PermissionDeniedError",
    "CapabilityStaleError",
    "WriteFailureError",
]


class PromptManagerError(Exception):
    """Base exception for all PromptManager errors."""


class NotInitializedError(PromptManagerError):
    """Raised when the database session is used before ``initialize``."""

    def __init__(self, operation: str = "operation"):
        self.operation = operation
        super().__init__(f"Database not initialized (attempted {operation})")


class EngineLoadError(PromptManagerError):
    """Raised when bytes handed to the engine are not a valid database image."""


class OrphanedRecordError(PromptManagerError):
    """Raised when a bot or prompt references a parent row that does not exist."""

    def __init__(self, table: str, parent_id: int):
        self.table = table
        self.parent_id = parent_id
        super().__init__(f"Cannot insert into {table}: parent id {parent_id} does not exist")


class PermissionDeniedError(PromptManagerError):
    """Raised when a storage location is present but read/write access is refused."""


class CapabilityStaleError(PromptManagerError):
    """Raised when a bound storage location was moved, deleted or revoked."""


class WriteFailureError(PromptManagerError):
    """Raised when writing the database image fails for any other I/O reason."""
