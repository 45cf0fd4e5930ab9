"""
Bot row helpers.
"""

from __future__ import annotations

import sqlite3

from promptmanager.core.errors import OrphanedRecordError
from promptmanager.core.models import Bot
from promptmanager.storage.sqlite.utils import NOW_SQL, is_foreign_key_violation

__all__ = ["list_bots", "get_bot", "insert_bot", "update_bot", "delete_bot"]

_SELECT = "SELECT id, project_id, name, description, created_at, updated_at FROM bots"


def list_bots(conn: sqlite3.Connection, project_id: int) -> list[Bot]:
    rows = conn.execute(
        f"{_SELECT} WHERE project_id = ? ORDER BY updated_at DESC, id DESC",
        (project_id,),
    ).fetchall()
    return [Bot.from_row(row) for row in rows]


def get_bot(conn: sqlite3.Connection, bot_id: int) -> Bot | None:
    row = conn.execute(f"{_SELECT} WHERE id = ?", (bot_id,)).fetchone()
    return Bot.from_row(row) if row is not None else None


def insert_bot(
    conn: sqlite3.Connection, project_id: int, name: str, description: str | None
) -> int:
    try:
        with conn:
            cur = conn.execute(
                "INSERT INTO bots (project_id, name, description, updated_at) "
                f"VALUES (?, ?, ?, {NOW_SQL})",
                (project_id, name, description),
            )
    except sqlite3.IntegrityError as exc:
        if not is_foreign_key_violation(exc):
            raise
        raise OrphanedRecordError("bots", project_id) from exc
    if cur.lastrowid is None:
        raise RuntimeError("Failed to insert bot row")
    return int(cur.lastrowid)


def update_bot(conn: sqlite3.Connection, bot_id: int, name: str, description: str | None) -> int:
    with conn:
        cur = conn.execute(
            f"UPDATE bots SET name = ?, description = ?, updated_at = {NOW_SQL} WHERE id = ?",
            (name, description, bot_id),
        )
    return cur.rowcount


def delete_bot(conn: sqlite3.Connection, bot_id: int) -> int:
    with conn:
        cur = conn.execute("DELETE FROM bots WHERE id = ?", (bot_id,))
    return cur.rowcount
