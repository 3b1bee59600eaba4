"""Base Dialect type: subclasses implement connect() and the engine's SQL conventions."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from pydantic import BaseModel


class Dialect(BaseModel, ABC):
    """Base for database dialects; subclasses implement connect() for a given URL."""

    model_config = {"arbitrary_types_allowed": True}

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ()
    """URL schemes this dialect handles (e.g. ('sqlite',), ('mssql', 'sqlserver'))."""

    IDENTIFIER_LIMIT: ClassVar[int] = 63
    """Maximum length of an identifier (table alias, column alias) on this engine."""

    SUPPORTS_RETURNING: ClassVar[bool] = True
    """Whether INSERT/UPDATE accept a RETURNING clause."""

    @property
    def name(self) -> str:
        return self.SUPPORTED_SCHEMA[0] if self.SUPPORTED_SCHEMA else type(self).__name__

    @abstractmethod
    def connect(self, url: str) -> Any:
        """Return a new raw driver connection for the given URL.

        The return value is engine-specific (e.g. sqlite3.Connection, pymysql.Connection).
        """
        ...  # pylint: disable=unnecessary-ellipsis

    def positional_marker(self, index: int) -> str:
        """Return the bound-parameter marker for the 1-based position index."""
        return "?"

    def escape_text(self, text: str) -> str:
        """Escape statement text around bound-parameter markers; identity unless the driver %-formats."""
        return text

    def split_table_name(self, full_name: str) -> tuple[Optional[str], str]:
        """Split 'schema.table' into (schema, table); schema is None when absent."""
        if "." in full_name:
            schema, table = full_name.rsplit(".", 1)
            return schema, table
        return None, full_name

    def table_reference(self, full_name: str) -> str:
        """Return how a possibly schema-qualified table name is written in statements."""
        schema, table = self.split_table_name(full_name)
        return f"{schema}.{table}" if schema else table

    def paging(self, limit: Optional[int], offset: Optional[int], ordered: bool = True) -> str:
        """Return the LIMIT/OFFSET tail; values that are not positive are omitted.

        ordered tells whether the statement already has an ORDER BY clause.
        """
        parts = []
        if limit and limit > 0:
            parts.append(f"LIMIT {limit}")
        if offset and offset > 0:
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)
