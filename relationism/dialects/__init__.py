"""Dialects: marker style, identifier limit and driver connection of each engine."""

import urllib.parse

from ..errors import ConfigurationError
from .base import Dialect
from .sqlite import SqliteDialect
from .mysql import MysqlDialect
from .postgres import PostgresDialect
from .sqlserver import SqlserverDialect

_DIALECT_CLASSES: tuple[type[Dialect], ...] = (
    SqliteDialect,
    MysqlDialect,
    PostgresDialect,
    SqlserverDialect,
)


def get_dialect_for_scheme(scheme: str) -> Dialect:
    """Return a Dialect for a URL scheme; driver suffixes (`postgresql+psycopg2`) are ignored."""
    normalized = (scheme or "").split("+")[0].lower()
    for dialect_cls in _DIALECT_CLASSES:
        if normalized in dialect_cls.SUPPORTED_SCHEMA:
            return dialect_cls()
    raise ConfigurationError(f"Unsupported database scheme: {scheme}")


def get_dialect_for_url(url: str) -> Dialect:
    return get_dialect_for_scheme(urllib.parse.urlparse(url).scheme)


__all__ = [
    "Dialect",
    "SqliteDialect",
    "MysqlDialect",
    "PostgresDialect",
    "SqlserverDialect",
    "get_dialect_for_scheme",
    "get_dialect_for_url",
]
