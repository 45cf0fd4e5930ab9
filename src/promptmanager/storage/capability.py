# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
Revocable handles to an external storage location.

A capability is what the host hands out when the user picks a file: an opaque
reference that may stop working at any time (file moved, deleted, permission
revoked). Nothing here polls for that; failures surface on the next read or
write as :class:`CapabilityStaleError` or :class:`PermissionDeniedError`.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import os
import stat
import tempfile
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable

from promptmanager.core.errors import (
    CapabilityStaleError,
    PermissionDeniedError,
    WriteFailureError,
)

log = logging.getLogger(__name__)

__all__ = [
    "PermissionState",
    "PermissionPrompt",
    "StorageCapability",
    "LocalFileCapability",
    "LOCAL_FILE_KIND",
    "capability_from_record",
]

LOCAL_FILE_KIND = "local-file"

# Host-side permission dialog: (display_name, mode) -> granted?
PermissionPrompt = Callable[[str, str], "bool | Awaitable[bool]"]


class PermissionState(Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


@runtime_checkable
class StorageCapability(Protocol):
    """Capability to read and write one external database file."""

    kind: str

    @property
    def display_name(self) -> str: ...

    async def query_permission(self, mode: str = "readwrite") -> PermissionState: ...

    async def request_permission(self, mode: str = "readwrite") -> PermissionState: ...

    async def read_bytes(self) -> bytes: ...

    async def write_bytes(self, data: bytes, *, create: bool = False) -> None: ...

    def to_record(self) -> dict[str, str]: ...


class LocalFileCapability:
    """Capability over a file on local disk.

    ``prompt`` stands in for the host's permission dialog. Without one, a
    location that is not already writable is refused.
    """

    kind = LOCAL_FILE_KIND

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        prompt: PermissionPrompt | None = None,
        display_name: str | None = None,
    ) -> None:
        self.path = Path(path).expanduser()
        self.prompt = prompt
        self._display_name = display_name or self.path.name

    def __repr__(self) -> str:
        return f"LocalFileCapability({self.path.as_posix()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LocalFileCapability):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash((self.kind, self.path))

    @property
    def display_name(self) -> str:
        return self._display_name

    # ------------------------------------------------------------------
    # Permissions

    def _access_state(self, mode: str) -> PermissionState:
        target = self.path if self.path.exists() else self.path.parent
        if not target.exists():
            raise CapabilityStaleError(f"{self.display_name} is no longer available")
        flags = os.R_OK
        if mode == "readwrite":
            flags |= os.W_OK
        return PermissionState.GRANTED if os.access(target, flags) else PermissionState.PROMPT

    async def query_permission(self, mode: str = "readwrite") -> PermissionState:
        return await asyncio.to_thread(self._access_state, mode)

    async def request_permission(self, mode: str = "readwrite") -> PermissionState:
        state = await self.query_permission(mode)
        if state is PermissionState.GRANTED:
            return state
        if self.prompt is None:
            log.info("No permission prompt available for %s; refusing", self.display_name)
            return PermissionState.DENIED

        answer = self.prompt(self.display_name, mode)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            log.info("User refused %s access to %s", mode, self.display_name)
            return PermissionState.DENIED

        if mode == "readwrite" and self.path.exists():
            try:
                await asyncio.to_thread(self._grant_owner_write)
            except PermissionError:
                log.warning("Could not make %s writable", self.path, exc_info=True)
                return PermissionState.DENIED
        state = await self.query_permission(mode)
        return state if state is PermissionState.GRANTED else PermissionState.DENIED

    def _grant_owner_write(self) -> None:
        current = stat.S_IMODE(self.path.stat().st_mode)
        os.chmod(self.path, current | stat.S_IRUSR | stat.S_IWUSR)

    # ------------------------------------------------------------------
    # I/O

    async def read_bytes(self) -> bytes:
        try:
            return await asyncio.to_thread(self.path.read_bytes)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise CapabilityStaleError(f"{self.display_name} is no longer available") from exc
        except PermissionError as exc:
            raise PermissionDeniedError(f"Read access to {self.display_name} was refused") from exc

    async def write_bytes(self, data: bytes, *, create: bool = False) -> None:
        """Replace the file contents atomically.

        With ``create=False`` the file must still exist; a vanished file means
        the location is stale rather than something to recreate silently.
        """
        try:
            await asyncio.to_thread(self._write_atomic, data, create)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise CapabilityStaleError(f"{self.display_name} is no longer available") from exc
        except PermissionError as exc:
            raise PermissionDeniedError(
                f"Write access to {self.display_name} was refused"
            ) from exc
        except OSError as exc:
            raise WriteFailureError(f"Failed to write {self.display_name}: {exc}") from exc

    def _write_atomic(self, data: bytes, create: bool) -> None:
        if not create and not self.path.exists():
            raise FileNotFoundError(self.path)
        # os.replace only needs directory access; honour the file's own mode.
        if self.path.exists() and not os.access(self.path, os.W_OK):
            raise PermissionError(self.path)

        fd, tmp_name = tempfile.mkstemp(
            prefix=self.path.name + ".", suffix=".tmp", dir=self.path.parent
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            if self.path.exists():
                os.chmod(tmp_path, stat.S_IMODE(self.path.stat().st_mode))
            os.replace(tmp_path, self.path)
        finally:
            if tmp_path.exists():
                with contextlib.suppress(OSError):
                    tmp_path.unlink()

    # ------------------------------------------------------------------

    def to_record(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "path": self.path.as_posix(),
            "display_name": self.display_name,
        }


def capability_from_record(
    record: Mapping[str, object], *, prompt: PermissionPrompt | None = None
) -> StorageCapability | None:
    """Rebuild a capability from :meth:`to_record` output; ``None`` if unrecognised."""

    kind = record.get("kind")
    path = record.get("path")
    if kind != LOCAL_FILE_KIND or not isinstance(path, str) or not path:
        return None
    display_name = record.get("display_name")
    return LocalFileCapability(
        path,
        prompt=prompt,
        display_name=display_name if isinstance(display_name, str) and display_name else None,
    )
