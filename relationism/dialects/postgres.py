"""PostgreSQL dialect."""

import urllib.parse
from typing import ClassVar

from .base import Dialect


class PostgresDialect(Dialect):
    """Dialect for PostgreSQL (scheme postgresql), driven through psycopg2."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("postgresql", "postgres")
    IDENTIFIER_LIMIT: ClassVar[int] = 63

    def connect(self, url: str):
        import psycopg2  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        return psycopg2.connect(
            host=parsed.hostname,
            user=parsed.username,
            password=parsed.password,
            database=(parsed.path or "")[1:] or None,
            port=parsed.port,
        )

    def positional_marker(self, index: int) -> str:
        return "%s"

    def escape_text(self, text: str) -> str:
        # the driver %-formats every statement run with a parameter tuple
        return text.replace("%", "%%")
