"""Unit tests for promptmanager.storage.handle_manager: binding, permissions and saves."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from unittest import mock

import pytest
from PyQt5.QtCore import QSettings

from promptmanager.core.errors import (
    CapabilityStaleError,
    EngineLoadError,
    PermissionDeniedError,
    WriteFailureError,
)
from promptmanager.storage.capability import LocalFileCapability, PermissionState
from promptmanager.storage.database import DatabaseSession
from promptmanager.storage.handle_cache import HANDLE_GROUP, HandleCache
from promptmanager.storage.handle_manager import (
    Bound,
    PermissionPending,
    PersistentHandleManager,
    SaveOutcome,
    Stale,
    Unbound,
)


class FakeCapability:
    """In-memory capability with scriptable permission and failure behaviour."""

    kind = "fake"

    def __init__(
        self,
        data: bytes = b"",
        *,
        query: PermissionState = PermissionState.GRANTED,
        answer: PermissionState = PermissionState.GRANTED,
        write_delay: float = 0.0,
    ) -> None:
        self.data = data
        self.query = query
        self.answer = answer
        self.write_delay = write_delay
        self.stale = False
        self.fail_writes = False
        self.requests = 0
        self.writes = 0
        self.active_writers = 0
        self.max_writers = 0
        self.states_seen: list[type] = []
        self.manager: PersistentHandleManager | None = None

    @property
    def display_name(self) -> str:
        return "fake.sqlite"

    async def query_permission(self, mode: str = "readwrite") -> PermissionState:
        if self.stale:
            raise CapabilityStaleError("gone")
        return self.query

    async def request_permission(self, mode: str = "readwrite") -> PermissionState:
        self.requests += 1
        if self.manager is not None:
            self.states_seen.append(type(self.manager.state))
        return self.answer

    async def read_bytes(self) -> bytes:
        if self.stale:
            raise CapabilityStaleError("gone")
        return self.data

    async def write_bytes(self, data: bytes, *, create: bool = False) -> None:
        if self.stale:
            raise CapabilityStaleError("gone")
        if self.fail_writes:
            raise WriteFailureError("disk full")
        self.active_writers += 1
        self.max_writers = max(self.max_writers, self.active_writers)
        try:
            await asyncio.sleep(self.write_delay)
            self.data = data
            self.writes += 1
        finally:
            self.active_writers -= 1

    def to_record(self) -> dict[str, str]:
        return {"kind": self.kind, "path": "mem://fake", "display_name": self.display_name}


def _remembered_path(settings: QSettings) -> str | None:
    settings.sync()
    return settings.value(f"{HANDLE_GROUP}/path")


@pytest.fixture
def manager(session: DatabaseSession, cache: HandleCache) -> PersistentHandleManager:
    return PersistentHandleManager(session, cache)


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------


class TestBinding:
    @pytest.mark.asyncio
    async def test_starts_unbound(self, manager: PersistentHandleManager) -> None:
        assert isinstance(manager.state, Unbound)
        assert not manager.is_bound
        assert manager.display_name is None

    @pytest.mark.asyncio
    async def test_bind_new_writes_and_remembers(
        self, manager: PersistentHandleManager, cache: HandleCache, tmp_path: Path
    ) -> None:
        path = tmp_path / "prompts.sqlite"
        capability = LocalFileCapability(path)

        await manager.bind_new(capability)

        assert isinstance(manager.state, Bound)
        assert manager.display_name == "prompts.sqlite"
        assert path.read_bytes().startswith(b"SQLite format 3\x00")
        assert cache.get() == capability

    @pytest.mark.asyncio
    async def test_bind_new_into_missing_directory_fails(
        self, manager: PersistentHandleManager, cache: HandleCache, tmp_path: Path
    ) -> None:
        capability = LocalFileCapability(tmp_path / "missing" / "prompts.sqlite")
        with pytest.raises(CapabilityStaleError):
            await manager.bind_new(capability)
        assert isinstance(manager.state, Unbound)
        assert cache.get() is None

    @pytest.mark.asyncio
    async def test_bind_new_refused_permission(
        self, manager: PersistentHandleManager, settings: QSettings
    ) -> None:
        capability = FakeCapability(query=PermissionState.PROMPT, answer=PermissionState.DENIED)
        with pytest.raises(PermissionDeniedError):
            await manager.bind_new(capability)
        assert isinstance(manager.state, Unbound)
        assert capability.writes == 0
        assert _remembered_path(settings) is None

    @pytest.mark.asyncio
    async def test_bind_existing_loads_before_writing(
        self, manager: PersistentHandleManager, session: DatabaseSession, make_image
    ) -> None:
        image = make_image("Existing")
        capability = FakeCapability(image)

        await manager.bind_existing(capability)

        assert [p.name for p in session.list_projects()] == ["Existing"]
        assert capability.writes == 0
        assert capability.data == image
        assert isinstance(manager.state, Bound)

    @pytest.mark.asyncio
    async def test_bind_existing_invalid_image_keeps_session(
        self, manager: PersistentHandleManager, session: DatabaseSession, settings: QSettings
    ) -> None:
        session.create_project("Current", "")
        capability = FakeCapability(b"garbage")

        with pytest.raises(EngineLoadError):
            await manager.bind_existing(capability)

        assert [p.name for p in session.list_projects()] == ["Current"]
        assert isinstance(manager.state, Unbound)
        assert _remembered_path(settings) is None

    @pytest.mark.asyncio
    async def test_bind_existing_missing_file(
        self, manager: PersistentHandleManager, tmp_path: Path
    ) -> None:
        with pytest.raises(CapabilityStaleError):
            await manager.bind_existing(LocalFileCapability(tmp_path / "nope.sqlite"))
        assert isinstance(manager.state, Unbound)

    @pytest.mark.asyncio
    async def test_clear_keeps_database(
        self,
        manager: PersistentHandleManager,
        session: DatabaseSession,
        cache: HandleCache,
        tmp_path: Path,
    ) -> None:
        await manager.bind_new(LocalFileCapability(tmp_path / "db.sqlite"))
        session.create_project("Still here", "")

        await manager.clear()

        assert isinstance(manager.state, Unbound)
        assert cache.get() is None
        assert [p.name for p in session.list_projects()] == ["Still here"]


# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------


class TestSaveThrough:
    @pytest.mark.asyncio
    async def test_unbound_returns_without_export(self, cache: HandleCache) -> None:
        # an uninitialized session would raise if an export were attempted
        manager = PersistentHandleManager(DatabaseSession(), cache)
        result = await manager.save_through()
        assert result.outcome is SaveOutcome.UNBOUND
        assert result.notice is None

    @pytest.mark.asyncio
    async def test_bind_existing_then_save_round_trips(
        self, manager: PersistentHandleManager, tmp_path: Path, make_image
    ) -> None:
        path = tmp_path / "one.sqlite"
        path.write_bytes(make_image("Only project"))

        await manager.bind_existing(LocalFileCapability(path))
        result = await manager.save_through()

        assert result.outcome is SaveOutcome.WRITTEN_TO_DISK
        assert result.bytes_written == path.stat().st_size

        fresh = DatabaseSession()
        fresh.initialize(path.read_bytes())
        try:
            assert [p.name for p in fresh.list_projects()] == ["Only project"]
        finally:
            fresh.close()

    @pytest.mark.asyncio
    async def test_save_writes_latest_changes(
        self, manager: PersistentHandleManager, session: DatabaseSession, tmp_path: Path
    ) -> None:
        path = tmp_path / "db.sqlite"
        await manager.bind_new(LocalFileCapability(path))
        session.create_project("Added later", "")

        assert (await manager.save_through()).written

        fresh = DatabaseSession()
        fresh.initialize(path.read_bytes())
        try:
            assert [p.name for p in fresh.list_projects()] == ["Added later"]
        finally:
            fresh.close()
        assert not list(tmp_path.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_permission_refused_degrades_to_unbound(
        self,
        manager: PersistentHandleManager,
        session: DatabaseSession,
        settings: QSettings,
        make_image,
    ) -> None:
        capability = FakeCapability(make_image("P1"))
        capability.manager = manager
        await manager.bind_existing(capability)
        assert _remembered_path(settings) == "mem://fake"
        before = session.export_bytes()

        capability.query = PermissionState.PROMPT
        capability.answer = PermissionState.DENIED
        result = await manager.save_through()

        assert result.outcome is SaveOutcome.UNBOUND
        assert result.notice and "fake.sqlite" in result.notice
        assert capability.requests == 1
        assert capability.states_seen == [PermissionPending]
        assert isinstance(manager.state, Unbound)
        assert isinstance(manager.last_stale, Stale)
        assert manager.last_stale.capability is capability
        assert _remembered_path(settings) is None
        assert session.export_bytes() == before
        assert [p.name for p in session.list_projects()] == ["P1"]

    @pytest.mark.asyncio
    async def test_permission_granted_on_request(
        self, manager: PersistentHandleManager, make_image
    ) -> None:
        capability = FakeCapability(make_image(), query=PermissionState.PROMPT)
        await manager.bind_existing(capability)

        result = await manager.save_through()

        assert result.written
        assert capability.requests == 1
        assert isinstance(manager.state, Bound)

    @pytest.mark.asyncio
    async def test_granted_permission_skips_request(
        self, manager: PersistentHandleManager, make_image
    ) -> None:
        capability = FakeCapability(make_image())
        await manager.bind_existing(capability)
        await manager.save_through()
        assert capability.requests == 0

    @pytest.mark.asyncio
    async def test_deleted_file_goes_stale(
        self, manager: PersistentHandleManager, cache: HandleCache, tmp_path: Path
    ) -> None:
        path = tmp_path / "db.sqlite"
        await manager.bind_new(LocalFileCapability(path))
        path.unlink()

        result = await manager.save_through()

        assert result.outcome is SaveOutcome.UNBOUND
        assert not path.exists()
        assert isinstance(manager.state, Unbound)
        assert manager.last_stale is not None
        assert cache.get() is None

    @pytest.mark.asyncio
    async def test_write_failure_is_raised(
        self, manager: PersistentHandleManager, settings: QSettings, make_image
    ) -> None:
        capability = FakeCapability(make_image())
        await manager.bind_existing(capability)
        capability.fail_writes = True

        with pytest.raises(WriteFailureError):
            await manager.save_through()

        assert isinstance(manager.state, Bound)
        assert _remembered_path(settings) == "mem://fake"

    @pytest.mark.asyncio
    async def test_saves_never_overlap(
        self, manager: PersistentHandleManager, session: DatabaseSession, make_image
    ) -> None:
        capability = FakeCapability(make_image(), write_delay=0.02)
        await manager.bind_existing(capability)
        session.create_project("P", "")

        results = await asyncio.gather(*(manager.save_through() for _ in range(3)))

        assert all(r.written for r in results)
        assert capability.writes == 3
        assert capability.max_writers == 1


# ---------------------------------------------------------------------------
# Rehydration
# ---------------------------------------------------------------------------


class TestRehydrate:
    @pytest.mark.asyncio
    async def test_nothing_remembered(self, manager: PersistentHandleManager) -> None:
        assert await manager.rehydrate() is None
        assert isinstance(manager.state, Unbound)

    @pytest.mark.asyncio
    async def test_reopens_remembered_file(
        self, settings: QSettings, tmp_path: Path, make_image
    ) -> None:
        path = tmp_path / "remembered.sqlite"
        path.write_bytes(make_image("Remembered"))
        HandleCache(settings).put(LocalFileCapability(path))

        session = DatabaseSession()
        manager = PersistentHandleManager(session, HandleCache(settings))
        capability = await manager.rehydrate()

        assert capability == LocalFileCapability(path)
        assert manager.is_bound
        assert [p.name for p in session.list_projects()] == ["Remembered"]
        session.close()

    @pytest.mark.asyncio
    async def test_missing_file_is_forgotten(
        self, manager: PersistentHandleManager, cache: HandleCache, tmp_path: Path
    ) -> None:
        cache.put(LocalFileCapability(tmp_path / "moved.sqlite"))

        with pytest.raises(CapabilityStaleError):
            await manager.rehydrate()

        assert cache.get() is None
        assert isinstance(manager.state, Unbound)
        assert manager.last_stale is not None

    @pytest.mark.asyncio
    async def test_corrupt_file_is_remembered(
        self,
        manager: PersistentHandleManager,
        session: DatabaseSession,
        cache: HandleCache,
        tmp_path: Path,
    ) -> None:
        path = tmp_path / "corrupt.sqlite"
        path.write_bytes(b"\x00" * 4096)
        cache.put(LocalFileCapability(path))
        session.create_project("Untouched", "")

        with pytest.raises(EngineLoadError):
            await manager.rehydrate()

        assert cache.get() == LocalFileCapability(path)
        assert isinstance(manager.state, Unbound)
        assert [p.name for p in session.list_projects()] == ["Untouched"]


# ---------------------------------------------------------------------------
# Replacing the database
# ---------------------------------------------------------------------------


class TestReplace:
    @pytest.mark.asyncio
    async def test_reset_unbinds_and_loads(
        self,
        manager: PersistentHandleManager,
        session: DatabaseSession,
        settings: QSettings,
        make_image,
    ) -> None:
        await manager.bind_existing(FakeCapability(make_image("Old")))

        await manager.reset(make_image("New"))

        assert isinstance(manager.state, Unbound)
        assert _remembered_path(settings) is None
        assert [p.name for p in session.list_projects()] == ["New"]

    @pytest.mark.asyncio
    async def test_reset_with_invalid_image_changes_nothing(
        self, manager: PersistentHandleManager, session: DatabaseSession, make_image
    ) -> None:
        capability = FakeCapability(make_image("Old"))
        await manager.bind_existing(capability)

        with pytest.raises(EngineLoadError):
            await manager.reset(b"junk")

        assert manager.state == Bound(capability)
        assert [p.name for p in session.list_projects()] == ["Old"]

    @pytest.mark.asyncio
    async def test_fresh_bind_starts_empty(
        self, manager: PersistentHandleManager, session: DatabaseSession
    ) -> None:
        session.create_project("Previous", "")
        capability = FakeCapability()

        await manager.bind_new(capability, fresh=True)

        assert session.list_projects() == []
        fresh = DatabaseSession()
        fresh.initialize(capability.data)
        try:
            assert fresh.list_projects() == []
        finally:
            fresh.close()

    @pytest.mark.asyncio
    async def test_failed_fresh_bind_restores_database_and_binding(
        self,
        manager: PersistentHandleManager,
        session: DatabaseSession,
        settings: QSettings,
        make_image,
    ) -> None:
        original = FakeCapability(make_image())
        await manager.bind_existing(original)
        session.create_project("Unsaved", "")
        refused = FakeCapability(query=PermissionState.PROMPT, answer=PermissionState.DENIED)

        with pytest.raises(PermissionDeniedError):
            await manager.bind_new(refused, fresh=True)

        assert manager.state == Bound(original)
        assert _remembered_path(settings) == "mem://fake"
        assert [p.name for p in session.list_projects()] == ["Unsaved"]
        assert (await manager.save_through()).written
        assert refused.writes == 0

    @pytest.mark.asyncio
    async def test_unremembered_binding_is_logged(
        self, session: DatabaseSession, make_image, caplog
    ) -> None:
        cache = mock.Mock(spec=HandleCache)
        cache.put.return_value = False
        manager = PersistentHandleManager(session, cache)

        with caplog.at_level(logging.WARNING, logger="promptmanager.storage.handle_manager"):
            await manager.bind_existing(FakeCapability(make_image()))

        assert manager.is_bound
        assert "Could not remember fake.sqlite" in caplog.text
