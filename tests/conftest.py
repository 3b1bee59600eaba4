import sqlite3

import pytest

from relationism import Database, EngineSettings
from relationism.dialects import SqliteDialect
from tests.helpers import SCHEMA, SEED, RecordingConnection


def _database(settings=None) -> Database:
    connection = RecordingConnection(sqlite3.connect(":memory:"))
    connection.executescript(SCHEMA + SEED)
    return Database(connection, SqliteDialect(), settings=settings)


@pytest.fixture(scope="function")
def db():
    """In-memory SQLite database with the helper schema and seed rows; no statement recorded yet."""
    database = _database()
    yield database
    database.close()


@pytest.fixture(scope="function")
def strict_db():
    """Same as db, with strict preloading."""
    database = _database(EngineSettings(strict_preloads=True))
    yield database
    database.close()


@pytest.fixture(scope="function")
def empty_db():
    """In-memory SQLite database with the schema only."""
    connection = RecordingConnection(sqlite3.connect(":memory:"))
    connection.executescript(SCHEMA)
    database = Database(connection, SqliteDialect())
    yield database
    database.close()
