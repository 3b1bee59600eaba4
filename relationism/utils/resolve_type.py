"""Resolve field annotations: forward references, Optional/Annotated wrappers, collections."""

import sys
import typing
from typing import Any, ForwardRef, Union

from pydantic import BaseModel

from .find_subclass import find_subclass

_COLLECTION_ORIGINS = (list, tuple, set, frozenset)


def resolve_type(annotation: Any, owner: type) -> Any:
    """Resolve a ForwardRef or string annotation to a class.

    Looks in the owner's module first, then among BaseModel subclasses by name.
    """
    if isinstance(annotation, ForwardRef):
        annotation = annotation.__forward_arg__
    if not isinstance(annotation, str):
        return annotation
    namespace = vars(sys.modules.get(owner.__module__, object))
    resolved = namespace.get(annotation)
    if resolved is None:
        resolved = find_subclass(BaseModel, annotation)
    if resolved is None:
        raise ValueError(f"Could not resolve {annotation!r} referenced from {owner.__name__}")
    return resolved


def unwrap_annotation(annotation: Any, owner: type) -> tuple[Any, bool]:
    """Return (element type, is_collection) after stripping Optional, Annotated and forward refs.

    `Optional[list["Post"]]` gives (Post, True); `Person | None` gives (Person, False).
    """
    annotation = resolve_type(annotation, owner)
    origin = typing.get_origin(annotation)
    if origin is typing.Annotated:
        return unwrap_annotation(typing.get_args(annotation)[0], owner)
    if origin is Union or (origin is not None and type(None) in typing.get_args(annotation)):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return unwrap_annotation(args[0], owner)
        return annotation, False
    if origin in _COLLECTION_ORIGINS:
        args = [a for a in typing.get_args(annotation) if a is not Ellipsis]
        if not args:
            return Any, True
        element, _ = unwrap_annotation(args[0], owner)
        return element, True
    return annotation, False
