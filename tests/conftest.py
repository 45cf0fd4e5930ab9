from pathlib import Path

import pytest
from PyQt5.QtCore import QSettings

from promptmanager.storage.database import DatabaseSession
from promptmanager.storage.handle_cache import HandleCache


def _make_image(*project_names: str) -> bytes:
    db = DatabaseSession()
    db.initialize()
    try:
        for name in project_names:
            db.create_project(name, "")
        return db.export_bytes()
    finally:
        db.close()


@pytest.fixture
def settings(tmp_path: Path) -> QSettings:
    return QSettings(str(tmp_path / "settings.ini"), QSettings.IniFormat)


@pytest.fixture
def cache(settings: QSettings) -> HandleCache:
    return HandleCache(settings)


@pytest.fixture
def session() -> DatabaseSession:
    db = DatabaseSession()
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def make_image():
    """Build a database image containing one project per name given."""

    return _make_image
