"""Shared fixtures: isolated data dir, in-memory and sqlite-backed clients."""

import os
import tempfile

# Establish isolated temp directory and set env BEFORE importing settings
TEMP_DIR = tempfile.mkdtemp(prefix="expense_tracker_test_")
os.environ["DATA_DIR"] = TEMP_DIR
os.environ["DB_FILENAME"] = "test.sqlite3"

import pytest
from fastapi.testclient import TestClient

from expense_tracker.core.config import Settings
from expense_tracker.db.memory_repository import InMemoryExpenseTrackerRepository
from expense_tracker.main import create_app


@pytest.fixture
def repository():
    return InMemoryExpenseTrackerRepository()


@pytest.fixture
def memory_settings():
    return Settings(repository_backend="memory")


@pytest.fixture
def client(repository, memory_settings):
    app = create_app(settings_override=memory_settings, repository=repository)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def sqlite_settings(tmp_path):
    return Settings(
        repository_backend="sqlite",
        data_dir=tmp_path,
        db_path=tmp_path / "expenses.sqlite3",
    )


@pytest.fixture
def sqlite_client(sqlite_settings):
    app = create_app(settings_override=sqlite_settings)
    with TestClient(app) as c:
        yield c
