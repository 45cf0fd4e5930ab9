# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Workspace entry points used by the presentation layer.

Wires a :class:`DatabaseSession`, :class:`HandleCache` and
:class:`PersistentHandleManager` together and exposes the start-up choices
(new in-memory database, create file, open file, drop bytes, resume the
remembered file) plus save with fallback export.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from promptmanager.storage.capability import LocalFileCapability, StorageCapability
from promptmanager.storage.database import DatabaseSession
from promptmanager.storage.handle_cache import HandleCache
from promptmanager.storage.handle_manager import PersistentHandleManager, SaveResult

log = logging.getLogger(__name__)

__all__ = ["WorkspaceService", "SaveReport", "export_filename"]

EXPORT_SUFFIX = ".sqlite"


def export_filename(day: date | None = None) -> str:
    """Return the download name for a fallback export, e.g. ``prompts_2025-01-31.sqlite``."""

    day = day or date.today()
    return f"prompts_{day.isoformat()}{EXPORT_SUFFIX}"


def _unique_path(path: Path) -> Path:
    if not path.exists():
        return path
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem} ({counter}){path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


@dataclass(frozen=True, slots=True)
class SaveReport:
    result: SaveResult
    download_path: Path | None = None

    @property
    def status(self) -> str:
        if self.result.written:
            return "Saved to disk!"
        if self.download_path is not None:
            return "Downloaded"
        return "Not saved"


class WorkspaceService:
    """Session lifecycle and saving for one application run."""

    def __init__(
        self,
        session: DatabaseSession | None = None,
        cache: HandleCache | None = None,
        manager: PersistentHandleManager | None = None,
    ) -> None:
        self.session = session or DatabaseSession()
        self.cache = cache or HandleCache()
        self.manager = manager or PersistentHandleManager(self.session, self.cache)

    @staticmethod
    def _as_capability(target: StorageCapability | str | os.PathLike[str]) -> StorageCapability:
        if isinstance(target, str | os.PathLike):
            return LocalFileCapability(target)
        return target

    # ------------------------------------------------------------------
    # Start-up choices

    def remembered(self) -> str | None:
        """Display name of the remembered database file, if any."""

        capability = self.cache.get()
        return capability.display_name if capability is not None else None

    async def start_in_memory(self) -> None:
        """Start an empty database that lives in memory only."""

        await self.manager.reset()
        log.info("Started in-memory workspace")

    async def create_at(self, target: StorageCapability | str | os.PathLike[str]) -> None:
        """Start an empty database stored at ``target``.

        If the location cannot be written, the previous database and binding
        are kept.
        """
        await self.manager.bind_new(self._as_capability(target), fresh=True)

    async def open_location(self, target: StorageCapability | str | os.PathLike[str]) -> None:
        """Open the database stored at ``target`` and keep saving to it."""

        await self.manager.bind_existing(self._as_capability(target))

    async def open_bytes(self, data: bytes) -> None:
        """Load a dropped or uploaded database image; it is not bound to any file."""

        await self.manager.reset(data)
        log.info("Loaded database image without a backing file (%d bytes)", len(data))

    async def resume(self) -> bool:
        """Reopen the remembered file; False when nothing is remembered."""

        return await self.manager.rehydrate() is not None

    # ------------------------------------------------------------------
    # Saving

    async def save(self, download_dir: str | os.PathLike[str] | None = None) -> SaveReport:
        """
        Save to the bound file, or export a copy when there is none.

        When the write-through reports ``UNBOUND`` and ``download_dir`` is
        given, the database is exported there instead.
        """
        result = await self.manager.save_through()
        if result.written or download_dir is None:
            return SaveReport(result)
        path = self.download(download_dir)
        return SaveReport(result, download_path=path)

    def download(self, download_dir: str | os.PathLike[str], *, day: date | None = None) -> Path:
        """Write the current database to a dated file in ``download_dir``."""

        directory = Path(download_dir).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        path = _unique_path(directory / export_filename(day))
        data = self.session.export_bytes()
        path.write_bytes(data)
        log.info("Exported %d bytes to %s", len(data), path)
        return path
