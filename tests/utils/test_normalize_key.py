"""Tests for relationism.utils.normalize_key."""

import decimal
import enum
import uuid

import pytest

from relationism import SqlNull
from relationism.utils.normalize_key import normalize_key


class Color(enum.Enum):
    RED = 1


def test_normalize_key_unwraps_null_wrappers():
    assert normalize_key(SqlNull[int](value=4, valid=True)) == 4
    assert normalize_key(SqlNull[int](value=4, valid=False)) is None
    assert normalize_key(SqlNull.of(None)) is None


def test_normalize_key_makes_integral_numbers_match():
    assert normalize_key(2.0) == normalize_key(2) == normalize_key(decimal.Decimal("2.00"))
    assert normalize_key(2.5) == 2.5
    assert normalize_key(True) is True


def test_normalize_key_enums_uuids_and_bytes():
    u = uuid.uuid4()
    assert normalize_key(Color.RED) == 1
    assert normalize_key(u) == str(u)
    assert normalize_key(bytearray(b"ab")) == b"ab"


def test_normalize_key_containers_become_hashable():
    key = normalize_key({"b": [1, 2], "a": 1})
    assert key == (("a", 1), ("b", (1, 2)))
    hash(key)


def test_normalize_key_rejects_other_objects():
    with pytest.raises(ValueError, match="as a relation key"):
        normalize_key(object())
