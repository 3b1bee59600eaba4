"""Convert key values to a hashable, comparable form for batching and association."""

import datetime
import decimal
import enum
import uuid
from typing import Any

from pydantic import BaseModel

from ..types import unwrap_null


def normalize_key(value: Any) -> Any:
    """Return a hashable representation of a key value.

    Null wrappers are unwrapped (invalid ones give None), enums give their value,
    integral decimals and floats give int so `2`, `2.0` and `Decimal(2)` match.
    """
    value = unwrap_null(value)
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, decimal.Decimal) and value.is_finite() and value == value.to_integral_value():
        return int(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if isinstance(value, dict):
        return tuple(sorted((key, normalize_key(item)) for key, item in value.items()))
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(normalize_key(item) for item in value)
    if value is None or isinstance(value, (int, float, str, decimal.Decimal, datetime.date, datetime.time)):
        return value
    raise ValueError(f"Cannot use `{value!r}` ({type(value).__name__}) as a relation key")
