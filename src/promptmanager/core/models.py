# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Record types for rows stored in the prompt database."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass

__all__ = [
    "Project",
    "Bot",
    "Prompt",
    "DEFAULT_PARAMS",
    "COPY_SUFFIX",
    "PROMPT_UPDATABLE_FIELDS",
    "default_params_text",
]

DEFAULT_PARAMS: dict[str, float | int] = {"temperature": 0.7, "maxOutputTokens": 1024}
COPY_SUFFIX = " (Copy)"

# Columns ``update_prompt`` may touch, in statement order.
PROMPT_UPDATABLE_FIELDS = ("name", "system_prompt", "user_prompt", "dev_prompt", "params")


def default_params_text() -> str:
    """Return the serialized parameter payload given to new prompts."""

    return json.dumps(DEFAULT_PARAMS, indent=2)


@dataclass(frozen=True, slots=True)
class Project:
    id: int
    name: str
    description: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Project:
        return cls(
            id=int(row["id"]),
            name=row["name"],
            description=row["description"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True, slots=True)
class Bot:
    id: int
    project_id: int
    name: str
    description: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Bot:
        return cls(
            id=int(row["id"]),
            project_id=int(row["project_id"]),
            name=row["name"],
            description=row["description"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True, slots=True)
class Prompt:
    """A prompt owned by a bot.

    ``params`` is stored verbatim; its JSON syntax is owned by the editor that
    consumes it.
    """

    id: int
    bot_id: int
    name: str
    system_prompt: str
    user_prompt: str
    dev_prompt: str
    params: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Prompt:
        return cls(
            id=int(row["id"]),
            bot_id=int(row["bot_id"]),
            name=row["name"],
            system_prompt=row["system_prompt"] or "",
            user_prompt=row["user_prompt"] or "",
            dev_prompt=row["dev_prompt"] or "",
            params=row["params"] or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
