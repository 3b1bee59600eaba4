"""A DB-API connection bound to a dialect, settings and model registry."""

import inspect
import logging
from typing import Any, Optional, Sequence

from pydantic import BaseModel, Field

from .context import Context, check
from .dialects.base import Dialect
from .errors import QueryExecutionError
from .query import DeleteQuery, InsertQuery, SelectQuery, UpdateQuery
from .registry import ModelRegistry
from .settings import EngineSettings

logger = logging.getLogger("relationism")


class Result(BaseModel):
    """Outcome of a write statement."""

    rows_affected: int = 0
    last_insert_id: Optional[Any] = None
    rows: list[dict[str, Any]] = Field(default_factory=list)
    """Rows returned by a RETURNING clause."""


class Database:
    """Executes statements on one raw driver connection and creates query builders for it."""

    def __init__(
        self,
        connection,
        dialect: Dialect,
        settings: Optional[EngineSettings] = None,
        registry: Optional[ModelRegistry] = None,
        name: str = "default",
    ):
        self.connection = connection
        self.dialect = dialect
        self.settings = settings or EngineSettings()
        self.registry = registry if registry is not None else ModelRegistry()
        self.name = name

    def __repr__(self) -> str:
        return f"Database(name={self.name!r}, dialect={self.dialect.name!r})"

    def _run(self, sql: str, parameters: Sequence[Any], rows_as_dicts: bool, context, operation: str, commit: bool):
        check(context, operation)
        parameters = tuple(parameters or ())
        logger.debug("%s: %s [args: %s]", operation, sql, parameters)
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql, parameters)
            rows = []
            if cursor.description is not None:
                fetched = cursor.fetchall()
                if rows_as_dicts:
                    names = [d[0] for d in cursor.description]
                    rows = [dict(zip(names, row)) for row in fetched]
                else:
                    rows = [tuple(row) for row in fetched]
            if commit:
                self.connection.commit()
            return rows, cursor.rowcount, getattr(cursor, "lastrowid", None)
        except Exception as error:
            logger.error("%s failed: %s [SQL: %s]", operation, error, sql)
            self.connection.rollback()
            raise QueryExecutionError(str(error), operation=operation, statement=sql, arguments=parameters) from error
        finally:
            cursor.close()

    def execute(
        self,
        sql: str,
        parameters: Sequence[Any] = (),
        rows_as_dicts: bool = True,
        context: Optional[Context] = None,
        operation: str = "Database.execute",
    ) -> list:
        """Run a read statement and return its rows (dicts, or tuples if rows_as_dicts is False).

        Raises:
            QueryExecutionError: If the driver rejects the statement; carries the SQL.
            QueryCancelledError: If context is cancelled or past its deadline.
        """
        rows, _, _ = self._run(sql, parameters, rows_as_dicts, context, operation, commit=False)
        return rows

    def exec(
        self,
        sql: str,
        parameters: Sequence[Any] = (),
        context: Optional[Context] = None,
        operation: str = "Database.exec",
    ) -> Result:
        """Run a write statement and commit it."""
        rows, rowcount, lastrowid = self._run(sql, parameters, True, context, operation, commit=True)
        return Result(
            rows_affected=max(rowcount or 0, 0),
            last_insert_id=lastrowid or None,
            rows=rows,
        )

    def select(self, model: Any = None) -> SelectQuery:
        """Start a SELECT on a model class or instance, or on a table name."""
        query = SelectQuery(database=self, dialect=self.dialect, settings=self.settings)
        if isinstance(model, str):
            return query.table(model)
        return query.model(model)

    def insert(self, model: Any = None) -> InsertQuery:
        query = InsertQuery(database=self, dialect=self.dialect, registry=self.registry)
        return query.table(model) if isinstance(model, str) else query.model(model)

    def update(self, model: Any = None) -> UpdateQuery:
        query = UpdateQuery(database=self, dialect=self.dialect, registry=self.registry)
        return query.table(model) if isinstance(model, str) else query.model(model)

    def delete(self, model: Any = None) -> DeleteQuery:
        query = DeleteQuery(database=self, dialect=self.dialect, registry=self.registry)
        return query.table(model) if isinstance(model, str) else query.model(model)

    def register(self, *models: type) -> None:
        for model in models:
            if not inspect.isclass(model):
                model = type(model)
            self.registry.register(model)

    def close(self) -> None:
        self.connection.close()
