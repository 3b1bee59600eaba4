"""MySQL dialect."""

import urllib.parse
from typing import ClassVar

from .base import Dialect


class MysqlDialect(Dialect):
    """Dialect for MySQL (scheme mysql)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("mysql",)
    IDENTIFIER_LIMIT: ClassVar[int] = 64
    SUPPORTS_RETURNING: ClassVar[bool] = False

    def connect(self, url: str):
        import pymysql  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        return pymysql.connect(
            host=parsed.hostname,
            user=parsed.username,
            password=parsed.password,
            database=(parsed.path or "")[1:] or None,
            port=parsed.port or 3306,
        )

    def positional_marker(self, index: int) -> str:
        return "%s"

    def escape_text(self, text: str) -> str:
        # the driver %-formats every statement run with a parameter tuple
        return text.replace("%", "%%")
