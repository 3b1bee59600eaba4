"""SQL Server dialect."""

import urllib.parse
from typing import ClassVar, Optional

from .base import Dialect


class SqlserverDialect(Dialect):
    """Dialect for SQL Server (schemes mssql, sqlserver)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("mssql", "sqlserver")
    IDENTIFIER_LIMIT: ClassVar[int] = 128
    SUPPORTS_RETURNING: ClassVar[bool] = False

    def connect(self, url: str):
        import pyodbc  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        database = (parsed.path or "").lstrip("/") or None
        port = parsed.port or 1433
        server = parsed.hostname or "localhost"
        if port and port != 1433:
            server = f"{server},{port}"
        conn_str = (
            f"DRIVER={{ODBC Driver 17 for SQL Server}};"
            f"SERVER={server};"
            f"DATABASE={database or ''};"
            f"UID={parsed.username or ''};"
            f"PWD={parsed.password or ''}"
        )
        return pyodbc.connect(conn_str)

    def paging(self, limit: Optional[int], offset: Optional[int], ordered: bool = True) -> str:
        # OFFSET/FETCH is only valid after an ORDER BY
        if not (limit and limit > 0) and not (offset and offset > 0):
            return ""
        sql = "" if ordered else "ORDER BY (SELECT NULL) "
        sql += f"OFFSET {offset if offset and offset > 0 else 0} ROWS"
        if limit and limit > 0:
            sql += f" FETCH NEXT {limit} ROWS ONLY"
        return sql
