"""Tests for relationism.utils.find_subclass (find_subclass, iter_subclasses)."""

import pytest

from relationism.utils.find_subclass import find_subclass, iter_subclasses


class _BaseA:
    pass


class _ChildA1(_BaseA):
    pass


class _ChildA2(_BaseA):
    pass


class _GrandChild(_ChildA1):
    pass


def test_find_subclass_returns_none_when_no_match():
    assert find_subclass(_BaseA, "NonExistent") is None


def test_find_subclass_returns_unique_subclass():
    assert find_subclass(_BaseA, "_ChildA1") is _ChildA1
    assert find_subclass(_BaseA, "_GrandChild") is _GrandChild


def test_find_subclass_raises_when_multiple_match():
    class _Base:
        pass

    class _One(_Base):
        pass

    class _Two(_Base):
        pass

    _Two.__name__ = "_One"
    with pytest.raises(ValueError, match="More than one subclass"):
        find_subclass(_Base, "_One")


def test_iter_subclasses_is_recursive():
    assert set(iter_subclasses(_BaseA)) == {_ChildA1, _ChildA2, _GrandChild}


def test_iter_subclasses_skips_parametrized_generics():
    from relationism import SqlNull
    SqlNull[int]
    names = [c.__name__ for c in iter_subclasses(SqlNull)]
    assert all("[" not in name for name in names)
