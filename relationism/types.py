"""Value wrappers shared by models and the scanner."""

import inspect
import typing
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class SqlNull(BaseModel, Generic[T]):
    """A nullable database value: `value` is meaningful only when `valid` is True."""

    value: Optional[T] = None
    valid: bool = False

    @classmethod
    def of(cls, value: Any) -> "SqlNull":
        return cls(value=value, valid=value is not None)

    def get(self, default: Any = None) -> Any:
        return self.value if self.valid else default


def is_null_wrapper(annotation: Any) -> bool:
    """Return True if annotation is a model exposing a settable `value` and a `valid` flag."""
    return (
        inspect.isclass(annotation)
        and issubclass(annotation, BaseModel)
        and "value" in annotation.model_fields
        and "valid" in annotation.model_fields
    )


def null_wrapper_inner_type(annotation: type) -> Any:
    """Return the annotation of the wrapper's inner value, or Any when it is unbound."""
    inner = annotation.model_fields["value"].annotation
    args = [a for a in typing.get_args(inner) if a is not type(None)]
    if len(args) == 1:
        inner = args[0]
    if isinstance(inner, TypeVar):
        return Any
    return inner


def unwrap_null(value: Any) -> Any:
    """Return the plain value behind a null wrapper (None when invalid); other values pass through."""
    if isinstance(value, BaseModel) and is_null_wrapper(type(value)):
        return value.value if value.valid else None
    return value
