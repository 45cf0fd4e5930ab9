# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Public package interface for the PromptManager database core."""

from promptmanager.core.errors import (
    CapabilityStaleError,
    EngineLoadError,
    NotInitializedError,
    OrphanedRecordError,
    PermissionDeniedError,
    PromptManagerError,
    WriteFailureError,
)
from promptmanager.core.models import Bot, Project, Prompt
from promptmanager.services.workspace import SaveReport, WorkspaceService
from promptmanager.storage.capability import LocalFileCapability, PermissionState
from promptmanager.storage.database import DatabaseSession
from promptmanager.storage.handle_cache import HandleCache
from promptmanager.storage.handle_manager import (
    PersistentHandleManager,
    SaveOutcome,
    SaveResult,
)

__version__ = "1.0.0"

__all__ = [
    "DatabaseSession",
    "HandleCache",
    "PersistentHandleManager",
    "WorkspaceService",
    "LocalFileCapability",
    "PermissionState",
    "SaveOutcome",
    "SaveResult",
    "SaveReport",
    "Project",
    "Bot",
    "Prompt",
    "PromptManagerError",
    "NotInitializedError",
    "EngineLoadError",
    "OrphanedRecordError",
    "PermissionDeniedError",
    "CapabilityStaleError",
    "WriteFailureError",
]
