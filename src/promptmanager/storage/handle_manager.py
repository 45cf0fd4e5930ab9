# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
Binding between the in-memory database and an external file.

The manager is the only holder of the bound :class:`StorageCapability`. Its
state is one of :class:`Unbound`, :class:`Bound`, :class:`PermissionPending`
or :class:`Stale`; a stale capability is dropped straight away (the manager
falls back to ``Unbound`` and forgets the remembered handle) while the
database keeps running in memory.

Saves are serialized: a second :meth:`PersistentHandleManager.save_through`
waits for the one in flight instead of writing alongside it. Replacing the
session (:meth:`PersistentHandleManager.reset`, a fresh ``bind_new``) takes the
same lock, so a save never exports a database it did not start with.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from promptmanager.core.errors import (
    CapabilityStaleError,
    PermissionDeniedError,
    WriteFailureError,
)
from promptmanager.storage.capability import PermissionState, StorageCapability
from promptmanager.storage.database import DatabaseSession
from promptmanager.storage.handle_cache import HandleCache

log = logging.getLogger(__name__)

__all__ = [
    "Unbound",
    "Bound",
    "PermissionPending",
    "Stale",
    "BindingState",
    "SaveOutcome",
    "SaveResult",
    "PersistentHandleManager",
]


@dataclass(frozen=True, slots=True)
class Unbound:
    """No external location; the database exists in memory only."""


@dataclass(frozen=True, slots=True)
class Bound:
    capability: StorageCapability


@dataclass(frozen=True, slots=True)
class PermissionPending:
    """Waiting on the host to answer a permission request."""

    capability: StorageCapability


@dataclass(frozen=True, slots=True)
class Stale:
    """A capability that stopped working; kept only for reporting."""

    capability: StorageCapability
    reason: str


BindingState = Unbound | Bound | PermissionPending | Stale

UNBOUND = Unbound()


class SaveOutcome(Enum):
    WRITTEN_TO_DISK = "written_to_disk"
    UNBOUND = "unbound"


@dataclass(frozen=True, slots=True)
class SaveResult:
    outcome: SaveOutcome
    notice: str | None = None
    bytes_written: int = 0

    @property
    def written(self) -> bool:
        return self.outcome is SaveOutcome.WRITTEN_TO_DISK


class PersistentHandleManager:
    """Mediates every write of the database image to its external location."""

    def __init__(self, session: DatabaseSession, cache: HandleCache) -> None:
        self._session = session
        self._cache = cache
        self._state: BindingState = UNBOUND
        self._lock = asyncio.Lock()
        self.last_stale: Stale | None = None

    # ------------------------------------------------------------------
    # Introspection

    @property
    def state(self) -> BindingState:
        return self._state

    @property
    def is_bound(self) -> bool:
        return isinstance(self._state, Bound | PermissionPending)

    @property
    def display_name(self) -> str | None:
        state = self._state
        if isinstance(state, Bound | PermissionPending):
            return state.capability.display_name
        return None

    @property
    def save_in_progress(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Binding

    async def bind_new(self, capability: StorageCapability, *, fresh: bool = False) -> None:
        """
        Bind to a freshly chosen location and write the current database to it.

        With ``fresh=True`` the session is first replaced by an empty database.
        The immediate write makes an unwritable location fail here rather than
        on the first save. On failure the previous database and binding are
        put back and nothing new is remembered.

        Raises:
            PermissionDeniedError: access to the location was refused.
            CapabilityStaleError: the location disappeared.
            WriteFailureError: any other I/O failure.
        """
        async with self._lock:
            log.info("Binding new database file %s", capability.display_name)
            previous_state = self._state
            previous_image: bytes | None = None
            if fresh:
                if self._session.is_initialized:
                    previous_image = self._session.export_bytes()
                self._session.initialize()
            try:
                if not await self._negotiate(capability):
                    raise PermissionDeniedError(
                        f"Write access to {capability.display_name} was refused"
                    )
                data = self._session.export_bytes()
                await capability.write_bytes(data, create=True)
            except BaseException:
                self._state = previous_state
                if fresh:
                    if previous_image is not None:
                        self._session.initialize(previous_image)
                    else:
                        self._session.close()
                log.warning("Could not bind %s", capability.display_name, exc_info=True)
                raise
            self._state = Bound(capability)
            self._remember(capability)
            log.info("Bound %s (%d bytes written)", capability.display_name, len(data))

    async def bind_existing(self, capability: StorageCapability) -> None:
        """
        Load the database from an existing location, then bind to it.

        The location is read and the image validated before anything is
        replaced, so opening never overwrites existing content.

        Raises:
            EngineLoadError: the file is not a database image.
            PermissionDeniedError: read access was refused.
            CapabilityStaleError: the location disappeared.
        """
        async with self._lock:
            log.info("Opening existing database file %s", capability.display_name)
            data = await capability.read_bytes()
            self._session.initialize(data)
            self._state = Bound(capability)
            self._remember(capability)
            log.info("Bound %s (%d bytes read)", capability.display_name, len(data))

    async def rehydrate(self) -> StorageCapability | None:
        """
        Reopen the remembered location, if there is one.

        Returns the capability now bound, or ``None`` when nothing was
        remembered. A refused or vanished location is forgotten and the
        matching error re-raised; an unreadable image keeps the memory so the
        user can repair the file.
        """
        capability = self._cache.get()
        if capability is None:
            return None

        async with self._lock:
            previous = self._state
            try:
                if not await self._negotiate(capability):
                    raise PermissionDeniedError(
                        f"Access to {capability.display_name} was refused"
                    )
                data = await capability.read_bytes()
                self._session.initialize(data)
            except (PermissionDeniedError, CapabilityStaleError) as exc:
                self._mark_stale(capability, str(exc))
                raise
            except BaseException:
                self._state = previous
                raise
            self._state = Bound(capability)
            log.info("Rehydrated %s (%d bytes)", capability.display_name, len(data))
            return capability

    async def reset(self, data: bytes | None = None) -> None:
        """
        Replace the database and drop the binding in one step.

        ``data`` is loaded as a database image; ``None`` starts an empty one.
        Runs under the save lock, so a save already in flight finishes against
        the database it started with.

        Raises:
            EngineLoadError: ``data`` is not a database image. Nothing changes.
        """
        async with self._lock:
            self._session.initialize(data)
            if self.is_bound:
                log.info("Unbinding %s", self.display_name)
            self._state = UNBOUND
            self._cache.clear()

    async def clear(self) -> None:
        """Drop the binding and forget the remembered location.

        The in-memory database is not touched.
        """
        async with self._lock:
            if self.is_bound:
                log.info("Unbinding %s", self.display_name)
            self._state = UNBOUND
            self._cache.clear()

    # ------------------------------------------------------------------
    # Saving

    async def save_through(self) -> SaveResult:
        """
        Write the current database image to the bound location.

        Returns ``UNBOUND`` without exporting when nothing is bound, and also
        when permission is refused or the location went stale; in those cases
        the binding is dropped and ``notice`` explains why.

        Raises:
            WriteFailureError: the write failed for any other reason.
        """
        async with self._lock:
            state = self._state
            if not isinstance(state, Bound):
                return SaveResult(SaveOutcome.UNBOUND)

            capability = state.capability
            try:
                if not await self._negotiate(capability):
                    return self._mark_stale(capability, "permission refused")
                data = self._session.export_bytes()
                await capability.write_bytes(data)
            except (PermissionDeniedError, CapabilityStaleError) as exc:
                return self._mark_stale(capability, str(exc))
            except WriteFailureError:
                self._state = state
                log.error("Save to %s failed", capability.display_name, exc_info=True)
                raise
            except BaseException:
                self._state = state
                raise

            self._state = state
            log.info("Saved %d bytes to %s", len(data), capability.display_name)
            return SaveResult(SaveOutcome.WRITTEN_TO_DISK, bytes_written=len(data))

    # ------------------------------------------------------------------
    # Internals

    async def _negotiate(self, capability: StorageCapability) -> bool:
        """Check read/write access, asking the host when the check is inconclusive."""

        permission = await capability.query_permission("readwrite")
        if permission is PermissionState.GRANTED:
            return True
        self._state = PermissionPending(capability)
        log.info("Requesting write permission for %s", capability.display_name)
        permission = await capability.request_permission("readwrite")
        return permission is PermissionState.GRANTED

    def _remember(self, capability: StorageCapability) -> None:
        if not self._cache.put(capability):
            log.warning(
                "Could not remember %s; it will not be reopened on the next start",
                capability.display_name,
            )

    def _mark_stale(self, capability: StorageCapability, reason: str) -> SaveResult:
        self.last_stale = Stale(capability, reason)
        self._state = UNBOUND
        self._cache.clear()
        notice = (
            f"Lost access to {capability.display_name} ({reason}). "
            "Changes are kept in memory only."
        )
        log.warning("%s", notice)
        return SaveResult(SaveOutcome.UNBOUND, notice=notice)
