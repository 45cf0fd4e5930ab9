"""Application services for higher-level orchestration."""

from promptmanager.services.workspace import SaveReport, WorkspaceService, export_filename

__all__ = ["WorkspaceService", "SaveReport", "export_filename"]
