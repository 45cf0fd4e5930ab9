# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Persistent application settings backed by ``QSettings``.

Settings live outside the prompt database so they survive a missing or
corrupted database file. Setting ``PROMPTMANAGER_SETTINGS_FILE`` redirects
them to an INI file, which is how tests and portable installs isolate state.
"""

from __future__ import annotations

import logging
import os

from PyQt5.QtCore import QSettings

log = logging.getLogger(__name__)

__all__ = [
    "ORGANIZATION",
    "APP_NAME",
    "SETTINGS_FILE_ENV",
    "THEME_MODES",
    "open_settings",
    "theme_mode",
    "set_theme_mode",
]

ORGANIZATION = "PromptManager"
APP_NAME = "PromptManager"
SETTINGS_FILE_ENV = "PROMPTMANAGER_SETTINGS_FILE"

THEME_KEY = "appearance/themeMode"
THEME_MODES = ("light", "dark", "system")


def open_settings() -> QSettings:
    """Return the settings store for the current process."""

    override = os.environ.get(SETTINGS_FILE_ENV, "").strip()
    if override:
        return QSettings(override, QSettings.IniFormat)
    return QSettings(ORGANIZATION, APP_NAME)


def theme_mode(settings: QSettings | None = None) -> str:
    """Return the persisted theme mode, ``"system"`` when unset or unreadable."""

    try:
        settings = settings or open_settings()
        mode = settings.value(THEME_KEY, "system", type=str)
    except Exception:
        log.warning("Could not read theme preference", exc_info=True)
        return "system"
    mode = (mode or "system").lower()
    return mode if mode in THEME_MODES else "system"


def set_theme_mode(mode: str, settings: QSettings | None = None) -> str:
    """
    Persist the theme mode.

    Args:
        mode: "light", "dark" or "system". Unknown values fall back to "system".
        settings: Store to write to; defaults to :func:`open_settings`.

    Returns:
        The mode that was stored.
    """
    requested = (mode or "system").lower()
    if requested == "auto":
        requested = "system"
    if requested not in THEME_MODES:
        requested = "system"

    settings = settings or open_settings()
    settings.setValue(THEME_KEY, requested)
    settings.sync()
    return requested
