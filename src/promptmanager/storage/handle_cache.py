# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""One-slot durable memory of the last database location.

The slot lives in ``QSettings`` rather than in the database file so it can be
read and cleared even when that file is missing or corrupted.
"""

from __future__ import annotations

import logging

from PyQt5.QtCore import QSettings

from promptmanager.core.settings import open_settings
from promptmanager.storage.capability import (
    PermissionPrompt,
    StorageCapability,
    capability_from_record,
)

log = logging.getLogger(__name__)

__all__ = ["HandleCache", "HANDLE_GROUP"]

HANDLE_GROUP = "storage/db_handle"
_RECORD_KEYS = ("kind", "path", "display_name")


class HandleCache:
    """Remember at most one storage capability across restarts."""

    def __init__(
        self,
        settings: QSettings | None = None,
        *,
        prompt: PermissionPrompt | None = None,
    ) -> None:
        self._settings = settings
        self.prompt = prompt

    @property
    def settings(self) -> QSettings:
        if self._settings is None:
            self._settings = open_settings()
        return self._settings

    def get(self) -> StorageCapability | None:
        """Return the remembered capability, or ``None``. Never raises."""

        try:
            settings = self.settings
            settings.sync()
            record: dict[str, object] = {}
            for key in _RECORD_KEYS:
                value = settings.value(f"{HANDLE_GROUP}/{key}")
                if value is not None:
                    record[key] = str(value)
            if not record:
                return None
            capability = capability_from_record(record, prompt=self.prompt)
            if capability is None:
                log.warning("Ignoring unrecognised remembered handle: %s", record)
            return capability
        except Exception:
            log.warning("Could not read remembered database handle", exc_info=True)
            return None

    def put(self, capability: StorageCapability) -> bool:
        """Overwrite the slot with ``capability``; returns False if it could not be stored."""

        settings = self.settings
        settings.remove(HANDLE_GROUP)
        for key, value in capability.to_record().items():
            settings.setValue(f"{HANDLE_GROUP}/{key}", value)
        return self._sync("remember", capability.display_name)

    def clear(self) -> bool:
        """Forget the remembered location."""

        settings = self.settings
        settings.remove(HANDLE_GROUP)
        return self._sync("clear", None)

    def _sync(self, action: str, name: str | None) -> bool:
        settings = self.settings
        settings.sync()
        status = settings.status()
        if status != QSettings.NoError:
            log.warning(
                "Handle cache %s failed for %s (QSettings status=%s, file=%s)",
                action,
                name,
                status,
                settings.fileName(),
            )
            return False
        log.debug("Handle cache %s ok name=%s", action, name)
        return True
