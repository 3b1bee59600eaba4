"""Exception types raised by relationism, and the recovery boundary for public entry points."""

import functools
import logging
from typing import Any, Callable, Optional, Sequence

logger = logging.getLogger("relationism")


class RelationismError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(RelationismError, ValueError):
    """Invalid usage: missing destination or model, incomplete relation declaration, bad placeholders."""


class QueryExecutionError(RelationismError):
    """A statement failed at the database, or an unexpected fault happened while running it."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        statement: Optional[str] = None,
        arguments: Optional[Sequence[Any]] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.statement = statement
        self.arguments = tuple(arguments) if arguments is not None else ()

    def __str__(self) -> str:
        message = super().__str__()
        if self.operation:
            message = f"{self.operation}: {message}"
        if self.statement:
            message += f" [SQL: {self.statement}]"
        return message


class NoRowsError(QueryExecutionError, LookupError):
    """A single-record scan found no rows."""


class PreloadError(RelationismError):
    """Loading a relation failed while strict preloading is enabled."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class QueryCancelledError(RelationismError):
    """The context attached to a call was cancelled or its deadline passed."""


class ScanError(RelationismError):
    """A value could not be converted into the destination field."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ModelNotFoundError(RelationismError, LookupError):
    """No model is registered under the requested name."""


def recover(operation: str) -> Callable:
    """Decorate a public entry point so unexpected faults surface as QueryExecutionError.

    Errors of this package propagate unchanged; anything else is logged with its
    traceback and converted, keeping the original exception as __cause__.
    """
    def decorator(method: Callable) -> Callable:
        @functools.wraps(method)
        def wrapper(*args, **kwargs):
            try:
                return method(*args, **kwargs)
            except RelationismError:
                raise
            except Exception as error:
                logger.exception("Unexpected fault in %s", operation)
                raise QueryExecutionError(
                    f"unexpected {type(error).__name__}: {error}",
                    operation=operation,
                ) from error
        return wrapper
    return decorator
