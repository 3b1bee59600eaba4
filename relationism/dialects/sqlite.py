"""SQLite dialect."""

import logging
import urllib.parse

from typing import ClassVar

from .base import Dialect

logger = logging.getLogger(__name__)


class SqliteDialect(Dialect):
    """Dialect for SQLite (scheme sqlite).

    SQLite has no identifier limit; the PostgreSQL one is kept so plans stay
    the same when a model moves between engines.
    """

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("sqlite",)
    IDENTIFIER_LIMIT: ClassVar[int] = 63

    def connect(self, url: str):
        import sqlite3
        parsed = urllib.parse.urlparse(url)
        path = (parsed.path or "")[1:] or parsed.hostname or ":memory:"
        logger.info("Connecting to SQLite database %s", path)
        conn = sqlite3.connect(path, check_same_thread=False)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def positional_marker(self, index: int) -> str:
        return f"?{index}"

    def table_reference(self, full_name: str) -> str:
        # no schemas: "schema.table" is stored as "schema_table"
        schema, table = self.split_table_name(full_name)
        return f"{schema}_{table}" if schema else table
