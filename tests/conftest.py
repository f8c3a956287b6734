"""Shared pytest configuration and fixtures for the test suite."""

import atexit
import importlib
import os
import shutil
import tempfile
from pathlib import Path

import pytest
import yaml
from sqlalchemy.engine import create_engine
from sqlalchemy.orm import sessionmaker

_TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="mc-tests-"))
os.environ["MC_DATA_PATH"] = str(_TEST_DATA_DIR)
_TEST_CONFIG_FILE = _TEST_DATA_DIR / "config.yaml"

_TEST_CONFIG_FILE.write_text(
    yaml.safe_dump(
        {
            "log_level": "DEBUG",
            "mappings_url": "https://mappings.test/anime-list-full.json",
        },
        sort_keys=False,
    ),
    encoding="utf-8",
)

from metachan.config import settings as settings_module  # noqa: E402
from metachan.models.db.base import Base  # noqa: E402

settings_module.get_config.cache_clear()

_DB_MODULES = (
    "metachan.config.database",
    "metachan.core.identity",
    "metachan.core.cache",
    "metachan.core.tasks.manager",
    "metachan.core.tasks.mapping_sync",
)


@pytest.fixture
def in_memory_db(monkeypatch: pytest.MonkeyPatch):
    """Provide an in-memory database patched into every module that uses `db`."""
    engine = create_engine("sqlite:///:memory:", future=True)

    Base.metadata.create_all(engine)
    session_factory = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )

    class _DB:
        def __init__(self) -> None:
            self._session = None

        def __enter__(self):
            self._session = session_factory()
            return self

        def __exit__(self, exc_type, exc_val, exc_tb) -> None:
            if self._session is not None:
                self._session.close()
                self._session = None

        @property
        def session(self):
            if self._session is None:
                self._session = session_factory()
            return self._session

    db_instance = _DB()
    for module_name in _DB_MODULES:
        module = importlib.import_module(module_name)
        monkeypatch.setattr(module, "db", lambda: db_instance)

    try:
        yield db_instance
    finally:
        session = getattr(db_instance, "_session", None)
        if session is not None:
            session.close()
        engine.dispose()


@atexit.register
def _cleanup_test_data_dir() -> None:
    """Remove the temporary test data directory after the test session."""
    shutil.rmtree(_TEST_DATA_DIR, ignore_errors=True)
