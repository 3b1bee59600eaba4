"""Tests for relationism.utils.normalize_table_alias."""

import pytest

from relationism.utils.normalize_table_alias import is_acronym_of, normalize_table_alias


@pytest.mark.parametrize("prefix, name, expected", [
    ("cmt", "comment", True),
    ("bp", "blog_posts", True),
    ("pst", "post", True),
    ("xyz", "comment", False),
    ("mc", "comment", False),
    ("", "comment", False),
])
def test_is_acronym_of(prefix, name, expected):
    assert is_acronym_of(prefix, name) is expected


def test_strips_qualifier_abbreviating_the_table():
    assert normalize_table_alias("cmt.body = ?", "comments", "comment") == "body = ?"
    assert normalize_table_alias("blog_po.title = ?", "p", "blog_posts") == "title = ?"


def test_keeps_expected_alias_and_table_name():
    assert normalize_table_alias("comments.body = ?", "comments", "comment") == "comments.body = ?"
    assert normalize_table_alias("comment.body = ?", "comments", "comment") == "comment.body = ?"


def test_keeps_unrelated_and_short_qualifiers():
    condition = "person.name = ? AND c.body = ?"
    assert normalize_table_alias(condition, "comments", "comment") == condition


def test_ignores_numbers_and_schema_paths():
    assert normalize_table_alias("score > 1.5", "t", "comment") == "score > 1.5"
