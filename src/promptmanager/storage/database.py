# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
In-memory SQLite session for the prompt database.

:class:`DatabaseSession` owns exactly one engine connection at a time. The
connection is created empty or loaded from a database image, every CRUD
operation runs against it, and :meth:`DatabaseSession.export_bytes` hands the
full image back out for writing to disk or downloading.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from promptmanager.core.errors import EngineLoadError, NotInitializedError
from promptmanager.core.models import Bot, Project, Prompt, default_params_text
from promptmanager.storage.sqlite import bots as _bots
from promptmanager.storage.sqlite import projects as _projects
from promptmanager.storage.sqlite import prompts as _prompts
from promptmanager.storage.sqlite.schema import ensure_schema, missing_tables, table_counts
from promptmanager.storage.sqlite.utils import deserialize_db, open_memory_db, serialize_db

log = logging.getLogger(__name__)

__all__ = ["DatabaseSession"]


@contextmanager
def _released(conn: sqlite3.Connection | None) -> Iterator[None]:
    """Close ``conn`` once the block exits, however it exits."""

    try:
        yield
    finally:
        if conn is not None:
            conn.close()


class DatabaseSession:
    """Owner of the embedded engine and typed CRUD over projects, bots and prompts."""

    def __init__(self) -> None:
        self._conn: sqlite3.Connection | None = None

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    def initialize(self, data: bytes | None = None) -> None:
        """
        Create an empty database, or open one from a database image.

        The replacement engine is fully built and validated before the current
        one is released, so a failed load leaves the session as it was.

        Raises:
            EngineLoadError: ``data`` is not a valid SQLite database image.
        """
        if data is None:
            conn = open_memory_db()
            ensure_schema(conn)
            log.info("Initialized empty prompt database")
        else:
            conn = self._load_image(data)

        with _released(self._conn):
            self._conn = conn

    def _load_image(self, data: bytes) -> sqlite3.Connection:
        try:
            conn = deserialize_db(bytes(data))
        except (sqlite3.DatabaseError, ValueError) as exc:
            log.warning("Rejected database image (%d bytes): %s", len(data), exc)
            raise EngineLoadError(f"Not a valid database image: {exc}") from exc

        try:
            missing = missing_tables(conn)
            if missing:
                log.info("Database image lacks tables %s; creating them", ", ".join(missing))
                ensure_schema(conn)
        except sqlite3.DatabaseError as exc:
            conn.close()
            raise EngineLoadError(f"Database image could not be prepared: {exc}") from exc

        log.info(
            "Opened prompt database from %d bytes counts=%s", len(data), table_counts(conn)
        )
        return conn

    def close(self) -> None:
        """Release the engine; the session must be initialized again before use."""

        with _released(self._conn):
            self._conn = None

    def _require(self, operation: str) -> sqlite3.Connection:
        if self._conn is None:
            raise NotInitializedError(operation)
        return self._conn

    def export_bytes(self) -> bytes:
        """Return the full database image; the engine is left untouched."""

        return serialize_db(self._require("export_bytes"))

    def counts(self) -> dict[str, int]:
        """Return row counts for the projects, bots and prompts tables."""

        return table_counts(self._require("counts"))

    # ------------------------------------------------------------------
    # Projects

    def list_projects(self) -> list[Project]:
        return _projects.list_projects(self._require("list_projects"))

    def get_project(self, project_id: int) -> Project | None:
        return _projects.get_project(self._require("get_project"), project_id)

    def create_project(self, name: str, description: str | None = "") -> int:
        project_id = _projects.insert_project(self._require("create_project"), name, description)
        log.debug("Created project id=%s name=%r", project_id, name)
        return project_id

    def update_project(self, project_id: int, name: str, description: str | None) -> None:
        _projects.update_project(self._require("update_project"), project_id, name, description)

    def delete_project(self, project_id: int) -> None:
        removed = _projects.delete_project(self._require("delete_project"), project_id)
        log.debug("Deleted project id=%s rows=%d", project_id, removed)

    # ------------------------------------------------------------------
    # Bots

    def list_bots(self, project_id: int) -> list[Bot]:
        return _bots.list_bots(self._require("list_bots"), project_id)

    def get_bot(self, bot_id: int) -> Bot | None:
        return _bots.get_bot(self._require("get_bot"), bot_id)

    def create_bot(self, project_id: int, name: str, description: str | None = "") -> int:
        bot_id = _bots.insert_bot(self._require("create_bot"), project_id, name, description)
        log.debug("Created bot id=%s project_id=%s", bot_id, project_id)
        return bot_id

    def update_bot(self, bot_id: int, name: str, description: str | None) -> None:
        _bots.update_bot(self._require("update_bot"), bot_id, name, description)

    def delete_bot(self, bot_id: int) -> None:
        removed = _bots.delete_bot(self._require("delete_bot"), bot_id)
        log.debug("Deleted bot id=%s rows=%d", bot_id, removed)

    # ------------------------------------------------------------------
    # Prompts

    def list_prompts(self, bot_id: int) -> list[Prompt]:
        return _prompts.list_prompts(self._require("list_prompts"), bot_id)

    def get_prompt(self, prompt_id: int) -> Prompt | None:
        return _prompts.get_prompt(self._require("get_prompt"), prompt_id)

    def create_prompt(self, bot_id: int, name: str) -> int:
        """Insert an empty prompt with the default params and return its id."""

        prompt_id = _prompts.insert_prompt(
            self._require("create_prompt"), bot_id, name, default_params_text()
        )
        log.debug("Created prompt id=%s bot_id=%s", prompt_id, bot_id)
        return prompt_id

    def update_prompt(self, prompt_id: int, **fields: str) -> None:
        """
        Partially update a prompt.

        Only the keyword arguments given are written. Accepted names are
        ``name``, ``system_prompt``, ``user_prompt``, ``dev_prompt`` and
        ``params``. Calling with no fields changes nothing, including
        ``updated_at``.
        """
        _prompts.update_prompt(self._require("update_prompt"), prompt_id, fields)

    def delete_prompt(self, prompt_id: int) -> None:
        _prompts.delete_prompt(self._require("delete_prompt"), prompt_id)

    def duplicate_prompt(self, prompt_id: int) -> int | None:
        new_id = _prompts.duplicate_prompt(self._require("duplicate_prompt"), prompt_id)
        if new_id is None:
            log.debug("duplicate_prompt: no prompt with id=%s", prompt_id)
        return new_id
