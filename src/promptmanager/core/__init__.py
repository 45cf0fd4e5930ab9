"""Domain models, errors and process-wide configuration."""

from promptmanager.core.errors import (
    CapabilityStaleError,
    EngineLoadError,
    NotInitializedError,
    OrphanedRecordError,
    PermissionDeniedError,
    PromptManagerError,
    WriteFailureError,
)
from promptmanager.core.models import COPY_SUFFIX, DEFAULT_PARAMS, Bot, Project, Prompt

__all__ = [
    "Project",
    "Bot",
    "Prompt",
    "DEFAULT_PARAMS",
    "COPY_SUFFIX",
    "PromptManagerError",
    "NotInitializedError",
    "EngineLoadError",
    "OrphanedRecordError",
    "PermissionDeniedError",
    "CapabilityStaleError",
    "WriteFailureError",
]
