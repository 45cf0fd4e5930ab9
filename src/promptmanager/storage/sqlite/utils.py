"""
Utility helpers for the in-memory SQLite engine.

Connection setup, pragmas and the byte-image import/export used to move the
whole database between memory and an external file.
"""

from __future__ import annotations

import sqlite3

__all__ = [
    "SQLITE_HEADER",
    "NOW_SQL",
    "open_memory_db",
    "apply_default_pragmas",
    "serialize_db",
    "deserialize_db",
    "looks_like_sqlite",
    "is_foreign_key_violation",
]

SQLITE_HEADER = b"SQLite format 3\x00"

# Engine-side clock, millisecond resolution so recents ordering is stable.
NOW_SQL = "strftime('%Y-%m-%d %H:%M:%f', 'now')"

# Offsets of the file-format write/read version bytes; 2 marks a WAL database.
_WRITE_VERSION_OFFSET = 18
_READ_VERSION_OFFSET = 19


# ---- Connections ------------------------------------------------------------


def open_memory_db() -> sqlite3.Connection:
    """Open an empty in-memory database with predictable defaults."""

    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    apply_default_pragmas(conn)
    return conn


def apply_default_pragmas(conn: sqlite3.Connection) -> None:
    """Apply the pragmas every engine connection relies on.

    ``foreign_keys`` is per-connection state, so it has to be re-applied after
    every open or deserialize for the cascade deletes to fire.
    """
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA temp_store = MEMORY;")


def is_foreign_key_violation(exc: sqlite3.IntegrityError) -> bool:
    """Return True when ``exc`` was raised by a failed FOREIGN KEY check."""

    if getattr(exc, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_FOREIGNKEY":
        return True
    return "FOREIGN KEY constraint failed" in str(exc)


# ---- Byte images ------------------------------------------------------------


def looks_like_sqlite(data: bytes) -> bool:
    """Return True when ``data`` starts with the SQLite file header."""

    return len(data) >= 100 and data[: len(SQLITE_HEADER)] == SQLITE_HEADER


def _without_wal_flag(data: bytes) -> bytes:
    """Rewrite the header of a WAL-mode image so it opens from memory.

    A serialized database has no ``-wal`` sidecar; leaving the WAL version bytes
    in place makes SQLite try to open one and fail.
    """
    if data[_WRITE_VERSION_OFFSET] == 2 or data[_READ_VERSION_OFFSET] == 2:
        patched = bytearray(data)
        patched[_WRITE_VERSION_OFFSET] = 1
        patched[_READ_VERSION_OFFSET] = 1
        return bytes(patched)
    return data


def serialize_db(conn: sqlite3.Connection) -> bytes:
    """Return the full database image held by ``conn``."""

    return bytes(conn.serialize())


def deserialize_db(data: bytes) -> sqlite3.Connection:
    """
    Open a new in-memory connection from a database image.

    The image is checked with ``PRAGMA quick_check`` before the connection is
    returned. Raises ``sqlite3.DatabaseError`` (or ``ValueError`` for a missing
    header) when ``data`` is not a usable database; the connection is closed
    in that case.
    """
    if not looks_like_sqlite(data):
        raise ValueError("missing SQLite header")

    conn = sqlite3.connect(":memory:", check_same_thread=False)
    try:
        conn.deserialize(_without_wal_flag(data))
        conn.row_factory = sqlite3.Row
        status = conn.execute("PRAGMA quick_check").fetchone()[0]
        if str(status).lower() != "ok":
            raise sqlite3.DatabaseError(f"quick_check failed: {status}")
        apply_default_pragmas(conn)
    except BaseException:
        conn.close()
        raise
    return conn
