"""Tests for relationism.scanner: scan_rows destinations, map_to_struct and value conversion."""

import datetime
from typing import Optional

import pytest
from pydantic import BaseModel

from relationism import ConfigurationError, NoRowsError, ScanError, SqlNull, field, map_to_struct, scan_rows
from relationism.scanner import build_field_map, convert_value, dump_value
from tests.helpers import Account, Post


class Sample(BaseModel):
    a: str = "x"
    b: int = 5
    when: Optional[datetime.datetime] = None
    flags: dict = field(default_factory=dict)
    score: SqlNull[float] = field(default_factory=SqlNull)


def test_map_to_struct_preserves_untouched_fields():
    sample = Sample(a="x", b=5)
    map_to_struct({"b": 9}, sample)
    assert sample.a == "x"
    assert sample.b == 9


def test_map_to_struct_ignores_unknown_keys():
    sample = Sample()
    map_to_struct({"nope": 1, "B": "7"}, sample)
    assert sample.b == 7
    assert not hasattr(sample, "nope")


def test_map_to_struct_sets_null_wrappers():
    sample = Sample()
    map_to_struct({"score": "2.5"}, sample)
    assert sample.score.valid and sample.score.value == 2.5
    map_to_struct({"score": None}, sample)
    assert not sample.score.valid
    assert sample.score.get(0.0) == 0.0


def test_map_to_struct_requires_an_instance():
    with pytest.raises(ConfigurationError, match="destination cannot be None"):
        map_to_struct({"a": 1}, None)


def test_convert_value_best_effort():
    assert convert_value(Optional[datetime.datetime], "2024-05-01T10:00:00") == datetime.datetime(2024, 5, 1, 10)
    assert convert_value(bool, 1) is True
    assert convert_value(dict, '{"k": [1, 2]}') == {"k": [1, 2]}
    assert convert_value(list[int], "[1, 2]") == [1, 2]
    assert convert_value(bytes, "abc") == b"abc"
    assert convert_value(int, None) is None


def test_convert_value_failure_names_the_field():
    with pytest.raises(ScanError, match="field `b`") as info:
        convert_value(int, "not a number", "b")
    assert info.value.field == "b"


def test_scan_rows_into_model_class():
    rows = [{"id": 1, "title": "First", "author_id": 1, "extra": "dropped"}, {"ID": 2, "Title": "Second"}]
    posts = scan_rows(rows, Post)
    assert [p.id for p in posts] == [1, 2]
    assert posts[1].title == "Second"
    assert posts[1].author_id is None


def test_scan_rows_into_instance_uses_first_row():
    post = Post(title="kept")
    scan_rows([{"id": 3}, {"id": 4}], post)
    assert post.id == 3
    assert post.title == "kept"


def test_scan_rows_into_instance_without_rows():
    with pytest.raises(NoRowsError, match="no rows in result set"):
        scan_rows([], Post())


def test_scan_rows_into_dicts_and_lists():
    rows = [{"id": 1, "title": "First"}]
    assert scan_rows(rows, dict) == [{"id": 1, "title": "First"}]
    target = [Post(id=0)]
    assert scan_rows(rows, target, model=Post) is target
    assert [p.id for p in target] == [0, 1]
    untyped = []
    scan_rows(rows, untyped)
    assert untyped == [{"id": 1, "title": "First"}]


def test_scan_rows_rejects_missing_or_unknown_destination():
    with pytest.raises(ConfigurationError, match="destination cannot be None"):
        scan_rows([], None)
    with pytest.raises(ConfigurationError, match="unsupported scan destination int"):
        scan_rows([], 3)


def test_scan_rows_fills_embedded_models():
    rows = [{"id": 1, "name": "acme", "created_by": "ada", "rev": 2, "like_count": 10, "balance": 1.5}]
    account = scan_rows(rows, Account)[0]
    assert account.display_name == "acme"
    assert account.audit.created_by == "ada"
    assert account.audit.revision == 2
    assert account.stats.likes == 10
    assert account.balance.valid and account.balance.value == 1.5


def test_build_field_map():
    field_map = build_field_map(Account)
    assert field_map["email_address"].name == "email"
    assert field_map["nickname"].name == "nick"


def test_dump_value():
    assert dump_value(SqlNull[int](value=3, valid=True)) == 3
    assert dump_value(SqlNull[int]()) is None
    assert dump_value({"a": datetime.date(2024, 1, 2)}) == '{"a": "2024-01-02"}'
    assert dump_value(Sample(a="y")).startswith('{"a":"y"')
    assert dump_value(4) == 4
