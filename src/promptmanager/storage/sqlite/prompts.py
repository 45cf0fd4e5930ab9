"""
Prompt row helpers.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Mapping

from promptmanager.core.errors import OrphanedRecordError
from promptmanager.core.models import COPY_SUFFIX, PROMPT_UPDATABLE_FIELDS, Prompt
from promptmanager.storage.sqlite.utils import NOW_SQL, is_foreign_key_violation

__all__ = [
    "list_prompts",
    "get_prompt",
    "insert_prompt",
    "update_prompt",
    "delete_prompt",
    "duplicate_prompt",
]

_SELECT = (
    "SELECT id, bot_id, name, system_prompt, user_prompt, dev_prompt, params, "
    "created_at, updated_at FROM prompts"
)


def list_prompts(conn: sqlite3.Connection, bot_id: int) -> list[Prompt]:
    rows = conn.execute(
        f"{_SELECT} WHERE bot_id = ? ORDER BY updated_at DESC, id DESC",
        (bot_id,),
    ).fetchall()
    return [Prompt.from_row(row) for row in rows]


def get_prompt(conn: sqlite3.Connection, prompt_id: int) -> Prompt | None:
    row = conn.execute(f"{_SELECT} WHERE id = ?", (prompt_id,)).fetchone()
    return Prompt.from_row(row) if row is not None else None


def insert_prompt(conn: sqlite3.Connection, bot_id: int, name: str, params: str) -> int:
    """Insert an empty prompt and return the rowid assigned by the engine."""

    try:
        with conn:
            cur = conn.execute(
                "INSERT INTO prompts "
                "(bot_id, name, system_prompt, user_prompt, dev_prompt, params, updated_at) "
                f"VALUES (?, ?, '', '', '', ?, {NOW_SQL})",
                (bot_id, name, params),
            )
    except sqlite3.IntegrityError as exc:
        if not is_foreign_key_violation(exc):
            raise
        raise OrphanedRecordError("prompts", bot_id) from exc
    if cur.lastrowid is None:
        raise RuntimeError("Failed to insert prompt row")
    return int(cur.lastrowid)


def update_prompt(conn: sqlite3.Connection, prompt_id: int, fields: Mapping[str, str]) -> int:
    """
    Update only the columns present in ``fields``.

    Column names are taken from ``PROMPT_UPDATABLE_FIELDS``; anything else is
    rejected with ``TypeError``. An empty mapping is a no-op and leaves
    ``updated_at`` alone.
    """
    unknown = sorted(set(fields) - set(PROMPT_UPDATABLE_FIELDS))
    if unknown:
        raise TypeError(f"Unknown prompt field(s): {', '.join(unknown)}")

    columns = [col for col in PROMPT_UPDATABLE_FIELDS if col in fields]
    if not columns:
        return 0

    assignments = ", ".join(f"{col} = ?" for col in columns)
    params: list[object] = [fields[col] for col in columns]
    params.append(prompt_id)
    with conn:
        cur = conn.execute(
            f"UPDATE prompts SET {assignments}, updated_at = {NOW_SQL} WHERE id = ?",
            params,
        )
    return cur.rowcount


def delete_prompt(conn: sqlite3.Connection, prompt_id: int) -> int:
    with conn:
        cur = conn.execute("DELETE FROM prompts WHERE id = ?", (prompt_id,))
    return cur.rowcount


def duplicate_prompt(conn: sqlite3.Connection, prompt_id: int) -> int | None:
    """Copy a prompt under the same bot; ``None`` when ``prompt_id`` is unknown."""

    with conn:
        cur = conn.execute(
            "INSERT INTO prompts "
            "(bot_id, name, system_prompt, user_prompt, dev_prompt, params, updated_at) "
            "SELECT bot_id, name || ?, system_prompt, user_prompt, dev_prompt, params, "
            f"{NOW_SQL} FROM prompts WHERE id = ?",
            (COPY_SUFFIX, prompt_id),
        )
    if cur.rowcount < 1 or cur.lastrowid is None:
        return None
    return int(cur.lastrowid)
