"""Struct scanner and map merger: turn result rows into model instances."""

import enum
import inspect
import json
import logging
import typing
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import ConfigurationError, NoRowsError, ScanError
from .metadata import FieldDescriptor, ModelDescriptor, resolve_model
from .types import is_null_wrapper, null_wrapper_inner_type

logger = logging.getLogger("relationism")

_adapters: dict[Any, TypeAdapter] = {}


def build_field_map(model: type) -> dict[str, FieldDescriptor]:
    """Return the lower-cased column name -> field mapping used to match result columns."""
    return resolve_model(model).field_map


def _adapter(annotation: Any) -> TypeAdapter:
    try:
        adapter = _adapters.get(annotation)
    except TypeError:
        # unhashable annotation
        return TypeAdapter(annotation)
    if adapter is None:
        adapter = _adapters[annotation] = TypeAdapter(annotation)
    return adapter


def _strip_optional(annotation: Any) -> Any:
    args = typing.get_args(annotation)
    if args and type(None) in args:
        remaining = [a for a in args if a is not type(None)]
        if len(remaining) == 1:
            return remaining[0]
    return annotation


def convert_value(annotation: Any, value: Any, field_name: str = "") -> Any:
    """Convert a database value to the annotated type.

    Null wrappers receive the converted inner value with `valid=True`, or
    `valid=False` for None. Everything else goes through a pydantic
    TypeAdapter in lax mode, with a JSON fallback for text holding structures.

    Raises:
        ScanError: If the value cannot be converted.
    """
    target = _strip_optional(annotation)
    if inspect.isclass(target) and is_null_wrapper(target):
        if isinstance(value, target):
            return value
        if value is None:
            return target.model_construct(value=None, valid=False)
        inner = convert_value(null_wrapper_inner_type(target), value, field_name)
        return target.model_construct(value=inner, valid=True)
    if value is None or target is None or target is Any:
        return value
    if inspect.isclass(target) and not typing.get_args(target) and isinstance(value, target):
        return value
    try:
        return _adapter(annotation).validate_python(value)
    except ValidationError as error:
        if isinstance(value, (str, bytes, bytearray)):
            try:
                return _adapter(annotation).validate_json(value)
            except ValidationError:
                pass
        raise ScanError(
            f"cannot convert {type(value).__name__} value {value!r} for field `{field_name}`: "
            f"{error.errors()[0]['msg']}",
            field=field_name,
        ) from error


def assign_columns(descriptor: ModelDescriptor, instance: BaseModel, row: Mapping[str, Any]) -> BaseModel:
    """Set every field matched by a column of row; unmatched columns are discarded."""
    for column, value in row.items():
        f = descriptor.field_for_column(column)
        if f is None:
            continue
        descriptor.set_value(instance, f, convert_value(f.annotation, value, f.name))
    return instance


def row_to_instance(descriptor: ModelDescriptor, row: Mapping[str, Any]) -> BaseModel:
    """Allocate a new instance of the descriptor's model and fill it from row."""
    return assign_columns(descriptor, descriptor.model.model_construct(), row)


def map_to_struct(values: Mapping[str, Any], instance: BaseModel) -> BaseModel:
    """Merge a partial key/value mapping into an existing instance.

    Keys are matched to fields by column name or attribute name, case-insensitively.
    Keys without a field, and fields without a key, are left untouched.
    """
    if instance is None:
        raise ConfigurationError("destination cannot be None")
    descriptor = resolve_model(type(instance))
    for key, value in values.items():
        f = descriptor.find_field(key)
        if f is None:
            logger.debug("map_to_struct: %s has no field for `%s`", type(instance).__name__, key)
            continue
        descriptor.set_value(instance, f, convert_value(f.annotation, value, f.name))
    return instance


def scan_rows(rows: Iterable[Mapping[str, Any]], destination: Any, model: Optional[type] = None) -> Any:
    """Scan dict rows into destination.

    Args:
        rows: Result rows as column -> value mappings, in column order.
        destination: A model class (returns a list of instances), `dict`
            (returns a list of dicts), a model instance (filled from the first
            row), or a list (instances, or dicts when no model is known, are
            appended to it).
        model: Model used when destination is a list.

    Raises:
        ConfigurationError: If destination is None or of an unsupported kind.
        NoRowsError: If destination is an instance and there are no rows.
    """
    if destination is None:
        raise ConfigurationError("destination cannot be None")
    rows = list(rows)
    if destination is dict:
        return [dict(row) for row in rows]
    if inspect.isclass(destination) and issubclass(destination, BaseModel):
        descriptor = resolve_model(destination)
        return [row_to_instance(descriptor, row) for row in rows]
    if isinstance(destination, BaseModel):
        if not rows:
            raise NoRowsError("no rows in result set", operation="scan")
        return assign_columns(resolve_model(type(destination)), destination, rows[0])
    if isinstance(destination, list):
        if model is None:
            destination.extend(dict(row) for row in rows)
        else:
            descriptor = resolve_model(model)
            destination.extend(row_to_instance(descriptor, row) for row in rows)
        return destination
    raise ConfigurationError(f"unsupported scan destination {type(destination).__name__}")


def dump_value(value: Any) -> Any:
    """Convert a field value to something a DB-API driver can bind."""
    if isinstance(value, BaseModel):
        if is_null_wrapper(type(value)):
            return dump_value(value.value) if value.valid else None
        return value.model_dump_json()
    if isinstance(value, (dict, list, tuple, set)):
        return json.dumps(_adapter(type(value)).dump_python(value, mode="json"))
    if isinstance(value, enum.Enum):
        return value.value
    return value
