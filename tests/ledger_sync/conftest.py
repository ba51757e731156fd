"""
Shared pytest fixtures for all ledger_sync tests.

Storage fixtures are parametrized over both adapters, so every test written
against the `database` fixture runs once on SQLite and once in memory.
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from ledger_sync.storage import Database, InMemoryDatabase, SQLiteDatabase
from tests.ledger_sync.helpers import MockChainReader, MockValueSource


@pytest.fixture(params=["sqlite", "memory"])
def database(request: pytest.FixtureRequest, tmp_path: Path) -> Generator[Database, None, None]:
    """Empty store, once per adapter."""
    db: Database
    if request.param == "sqlite":
        db = SQLiteDatabase(tmp_path / "ledger.sqlite")
    else:
        db = InMemoryDatabase()
    yield db
    db.close()


@pytest.fixture
def reader() -> MockChainReader:
    """Chain reader with head at 10."""
    return MockChainReader(head=10)


@pytest.fixture
def source() -> MockValueSource:
    """Value source returning 1000 + block number."""
    return MockValueSource()
