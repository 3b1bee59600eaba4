"""Tests for relationism.metadata.resolve_model: columns, writability, embedded models, primary keys."""

from typing import Optional

import pytest
from pydantic import BaseModel

from relationism import ConfigurationError, Model, field, resolve_model
from relationism.metadata import FieldDescriptor
from tests.helpers import Account, Audit, Person, Post


def test_resolve_model_is_cached_by_type():
    assert resolve_model(Post) is resolve_model(Post)


def test_resolve_model_rejects_non_models():
    with pytest.raises(ConfigurationError, match="Expected a pydantic model class"):
        resolve_model(int)


def test_table_name_defaults_to_lowercase_class_name():
    descriptor = resolve_model(Post)
    assert descriptor.table_name == "post"
    assert descriptor.schema_name is None


def test_schema_qualified_table_name():
    descriptor = resolve_model(Account)
    assert descriptor.table_name == "billing.accounts"
    assert descriptor.schema_name == "billing"


def test_relation_fields_are_not_columns():
    assert resolve_model(Post).columns == ["id", "title", "author_id"]
    assert set(resolve_model(Post).relations) == {"author", "comments", "tags"}


def test_column_name_priority():
    descriptor = resolve_model(Account)
    by_name = {f.name: f for f in descriptor.fields}
    # primary tag wins over secondary tag and alias
    assert by_name["display_name"].column == "name"
    # secondary tag wins over the field name
    assert by_name["email"].column == "email_address"
    # alias is cut at its first comma
    assert by_name["nick"].column == "nickname"
    assert by_name["balance"].column == "balance"


def test_field_map_is_case_insensitive_and_knows_every_candidate():
    descriptor = resolve_model(Account)
    assert descriptor.field_for_column("NAME").name == "display_name"
    assert descriptor.field_for_column("dn").name == "display_name"
    assert descriptor.field_for_column("displayName").name == "display_name"
    assert descriptor.field_for_column("unknown") is None
    assert descriptor.find_field("Display_Name").name == "display_name"


def test_ignored_fields_are_dropped():
    assert resolve_model(Account).find_field("secret") is None


def test_read_only_markers():
    descriptor = resolve_model(Account)
    assert not descriptor.is_column_writable("created")
    assert not descriptor.is_column_writable("locked")
    assert descriptor.is_column_writable("name")
    assert descriptor.is_column_writable("not_a_column")
    assert "created" not in descriptor.writable_columns


def test_embedded_fields_are_flattened():
    descriptor = resolve_model(Account)
    created_by = descriptor.field_for_column("created_by")
    assert created_by.path == ("audit", "created_by")
    assert created_by.writable
    assert descriptor.field_for_column("rev").name == "revision"


def test_scan_only_embedded_model_makes_descendants_read_only():
    descriptor = resolve_model(Account)
    assert not descriptor.field_for_column("views").writable
    # the child's own tags do not win over the embedding field's scanonly
    assert not descriptor.field_for_column("like_count").writable


def test_embedded_values_read_and_write():
    descriptor = resolve_model(Account)
    account = Account(id=1)
    created_by = descriptor.field_for_column("created_by")
    assert descriptor.get_value(account, created_by) is None
    assert [f.name for f, _ in descriptor.iter_values(account)].count("created_by") == 0
    descriptor.set_value(account, created_by, "ada")
    assert isinstance(account.audit, Audit)
    assert account.audit.created_by == "ada"


def test_primary_key_from_tag_or_id_column():
    assert resolve_model(Post).primary_key.name == "id"
    assert resolve_model(Account).primary_key.name == "id"

    class Keyless(Model):
        code: str = ""

    class Coded(Model):
        id: int = 0
        code: str = field("", orm="primaryKey")

    assert resolve_model(Keyless).primary_key is None
    assert resolve_model(Coded).primary_key.name == "code"


def test_plain_pydantic_models_are_accepted():
    class Note(BaseModel):
        id: int = 0
        text: str = ""

    descriptor = resolve_model(Note)
    assert descriptor.table_name == "note"
    assert isinstance(descriptor.fields[0], FieldDescriptor)


def test_embedding_a_list_is_rejected():
    class Broken(Model):
        audits: list[Audit] = field(default_factory=list, sql="embed")

    with pytest.raises(ConfigurationError, match="only a single model can be embedded"):
        resolve_model(Broken)


def test_relations_inside_embedded_models_are_ignored():
    class Wrapper(BaseModel):
        owner_id: Optional[int] = None
        owner: Optional[Person] = None

    class Holder(Model):
        id: int = 0
        wrapper: Optional[Wrapper] = field(None, sql="embed")

    descriptor = resolve_model(Holder)
    assert descriptor.relations == {}
    assert descriptor.columns == ["id", "owner_id"]
