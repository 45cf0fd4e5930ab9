"""
Project row helpers.
"""

from __future__ import annotations

import sqlite3

from promptmanager.core.models import Project
from promptmanager.storage.sqlite.utils import NOW_SQL

__all__ = [
    "list_projects",
    "get_project",
    "insert_project",
    "update_project",
    "delete_project",
]

_SELECT = "SELECT id, name, description, created_at, updated_at FROM projects"


def list_projects(conn: sqlite3.Connection) -> list[Project]:
    """Return all projects, most recently touched first."""

    rows = conn.execute(f"{_SELECT} ORDER BY updated_at DESC, id DESC").fetchall()
    return [Project.from_row(row) for row in rows]


def get_project(conn: sqlite3.Connection, project_id: int) -> Project | None:
    row = conn.execute(f"{_SELECT} WHERE id = ?", (project_id,)).fetchone()
    return Project.from_row(row) if row is not None else None


def insert_project(conn: sqlite3.Connection, name: str, description: str | None) -> int:
    with conn:
        cur = conn.execute(
            f"INSERT INTO projects (name, description, updated_at) VALUES (?, ?, {NOW_SQL})",
            (name, description),
        )
    if cur.lastrowid is None:
        raise RuntimeError("Failed to insert project row")
    return int(cur.lastrowid)


def update_project(
    conn: sqlite3.Connection, project_id: int, name: str, description: str | None
) -> int:
    """Rename/redescribe a project; returns the number of rows touched."""

    with conn:
        cur = conn.execute(
            f"UPDATE projects SET name = ?, description = ?, updated_at = {NOW_SQL} WHERE id = ?",
            (name, description, project_id),
        )
    return cur.rowcount


def delete_project(conn: sqlite3.Connection, project_id: int) -> int:
    """Delete a project; bots and prompts go with it via ON DELETE CASCADE."""

    with conn:
        cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    return cur.rowcount
