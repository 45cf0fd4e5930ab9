"""
Schema for the prompt database.
"""

from __future__ import annotations

import sqlite3

from promptmanager.storage.sqlite.utils import NOW_SQL

__all__ = ["TABLES", "ensure_schema", "missing_tables", "table_counts"]

TABLES = ("projects", "bots", "prompts")


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create any missing tables and indexes; existing rows are left alone."""

    conn.executescript(
        f"""
        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT,
            created_at DATETIME DEFAULT ({NOW_SQL}),
            updated_at DATETIME DEFAULT ({NOW_SQL})
        );

        CREATE TABLE IF NOT EXISTS bots (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            created_at DATETIME DEFAULT ({NOW_SQL}),
            updated_at DATETIME DEFAULT ({NOW_SQL}),
            FOREIGN KEY(project_id) REFERENCES projects(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS bots_project_updated ON bots(project_id, updated_at DESC);

        CREATE TABLE IF NOT EXISTS prompts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            bot_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            system_prompt TEXT,
            user_prompt TEXT,
            dev_prompt TEXT,
            params TEXT,
            created_at DATETIME DEFAULT ({NOW_SQL}),
            updated_at DATETIME DEFAULT ({NOW_SQL}),
            FOREIGN KEY(bot_id) REFERENCES bots(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS prompts_bot_updated ON prompts(bot_id, updated_at DESC);
        """
    )
    conn.commit()


def missing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the entity tables absent from ``conn``."""

    present = {
        row[0]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    }
    return [name for name in TABLES if name not in present]


def table_counts(conn: sqlite3.Connection) -> dict[str, int]:
    """Return row counts per entity table."""

    # Table names come from the fixed TABLES tuple, never from callers.
    return {
        name: int(conn.execute(f"SELECT COUNT(*) FROM {name}").fetchone()[0]) for name in TABLES
    }
