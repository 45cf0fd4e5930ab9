# PromptManager
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Production-grade logging configuration with file rotation."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from promptmanager.core.settings import APP_NAME

PACKAGE_LOGGER = "promptmanager"


def setup_production_logging(
    app_name: str = APP_NAME,
    console_level: int = logging.INFO,
    *,
    log_dir: Path | None = None,
) -> Path:
    """
    Configure logging with file rotation.

    Creates two log files:
    - promptmanager.log: DEBUG+ messages from the package (10 MB per file, 5 rotations)
    - errors.log: ERROR+ messages from everything (5 MB per file, 3 rotations)

    Args:
        app_name: Application name for the log directory
        console_level: Minimum level for console output
        log_dir: Override for the platform log directory

    Returns:
        Path to the log directory
    """
    log_dir = log_dir or _get_log_directory(app_name)
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    simple_formatter = logging.Formatter("%(levelname)-8s | %(name)s | %(message)s")

    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    pkg_logger.setLevel(logging.DEBUG)
    pkg_logger.handlers.clear()

    app_log_path = log_dir / "promptmanager.log"
    app_handler = RotatingFileHandler(
        app_log_path,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    app_handler.setLevel(logging.DEBUG)
    app_handler.setFormatter(detailed_formatter)
    pkg_logger.addHandler(app_handler)

    error_log_path = log_dir / "errors.log"
    error_handler = RotatingFileHandler(
        error_log_path,
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(error_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(simple_formatter)
    pkg_logger.addHandler(console_handler)

    # Statement-level chatter stays in the file log
    logging.getLogger("promptmanager.storage.database").setLevel(logging.INFO)

    log = logging.getLogger(__name__)
    log.info("%s logging initialized in %s", app_name, log_dir)

    return log_dir


def _get_log_directory(app_name: str) -> Path:
    """
    Get platform-specific log directory.

    - Windows: %LOCALAPPDATA%\\AppName\\logs
    - macOS: ~/Library/Logs/AppName
    - Linux: ~/.local/share/AppName/logs
    """
    home = Path.home()

    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", home / "AppData" / "Local"))
        return base / app_name / "logs"

    elif sys.platform == "darwin":
        return home / "Library" / "Logs" / app_name

    else:
        xdg_data_home = os.environ.get("XDG_DATA_HOME", home / ".local" / "share")
        return Path(xdg_data_home) / app_name / "logs"

