"""Tests for relation descriptors and relationism.metadata.get_relation_type."""

from typing import Optional

import pytest

from relationism import Cardinality, ConfigurationError, Model, field, get_relation_type, resolve_model
from relationism.metadata import get_relation_model
from tests.helpers import Comment, Company, Person, Post, Profile, Tag


class Team(Model):
    id: Optional[int] = field(None, sql="id,pk")
    members: Optional[list[Person]] = field(None, orm="foreignKey:team_id")
    leader: Optional[Person] = field(None, orm="foreignKey:leader_id")
    mascot: Optional[Person] = field(None, orm="references:id")
    sponsors: Optional[list[Company]] = field(None, orm="many2many:team_sponsors")
    board: Optional[list[Person]] = field(None, sql="relation:m2m")
    history: Optional[list[Post]] = None
    owner: Optional[Person] = field(None, sql="relation:sometimes")


@pytest.mark.parametrize("model, name, expected", [
    (Post, "author", Cardinality.BELONGS_TO),
    (Post, "comments", Cardinality.HAS_MANY),
    (Post, "tags", Cardinality.MANY_TO_MANY),
    (Person, "profile", Cardinality.HAS_ONE),
    (Team, "members", Cardinality.HAS_MANY),
    (Team, "leader", Cardinality.BELONGS_TO),
    (Team, "mascot", Cardinality.HAS_ONE),
    (Team, "sponsors", Cardinality.MANY_TO_MANY),
    (Team, "board", Cardinality.MANY_TO_MANY),
    (Team, "history", Cardinality.HAS_MANY),
    (Profile, "person", Cardinality.BELONGS_TO),
])
def test_get_relation_type(model, name, expected):
    assert get_relation_type(model, name) is expected


def test_get_relation_type_is_case_insensitive_and_alias_aware():
    assert get_relation_type(Post, "Author") is Cardinality.BELONGS_TO
    assert get_relation_type(Post, "REPLIES") is Cardinality.HAS_MANY
    assert get_relation_type(Post(), "comments") is Cardinality.HAS_MANY


def test_get_relation_type_unknown():
    assert get_relation_type(Post, "title") is Cardinality.UNKNOWN
    assert get_relation_type(Post, "nothing") is Cardinality.UNKNOWN
    assert get_relation_type(None, "author") is Cardinality.UNKNOWN
    assert get_relation_type(int, "author") is Cardinality.UNKNOWN


def test_structural_inference_is_flagged():
    assert resolve_model(Profile).relations["person"].inferred
    assert resolve_model(Team).relations["history"].inferred
    assert not resolve_model(Post).relations["author"].inferred


def test_unrecognized_relation_falls_back_to_inference(caplog):
    class Club(Model):
        id: Optional[int] = None
        owner: Optional[Person] = field(None, sql="relation:sometimes")

    with caplog.at_level("WARNING", logger="relationism"):
        relation = resolve_model(Club).relations["owner"]
    assert relation.cardinality is Cardinality.BELONGS_TO
    assert relation.inferred
    assert "Unrecognized relation `sometimes`" in caplog.text


def test_declared_join_keys():
    author = resolve_model(Post).relations["author"]
    assert (author.local_key, author.foreign_key) == ("author_id", "id")
    comments = resolve_model(Post).relations["comments"]
    assert (comments.local_key, comments.foreign_key) == ("id", "post_id")
    assert comments.many and comments.target_model is Comment


def test_conventional_join_keys():
    team = resolve_model(Team)
    assert (team.relations["members"].local_key, team.relations["members"].foreign_key) == ("id", "team_id")
    assert (team.relations["leader"].local_key, team.relations["leader"].foreign_key) == ("leader_id", "id")
    assert (team.relations["mascot"].local_key, team.relations["mascot"].foreign_key) == ("id", "team_id")
    assert (team.relations["history"].local_key, team.relations["history"].foreign_key) == ("id", "team_id")
    person = resolve_model(Profile).relations["person"]
    assert (person.local_key, person.foreign_key) == ("person_id", "id")


def test_many_to_many_junction_columns():
    tags = resolve_model(Post).relations["tags"]
    assert tags.junction_table == "post_tags"
    assert tags.target_model is Tag
    assert tags.junction_owner_column == "post_id"
    assert tags.junction_target_column == "tag_id"
    sponsors = resolve_model(Team).relations["sponsors"]
    assert sponsors.junction_table == "team_sponsors"
    assert sponsors.junction_owner_column == "team_id"


@pytest.mark.parametrize("declaration", ["join:author_id", "join:=id", "join:author_id="])
def test_incomplete_join_declaration_is_rejected(declaration):
    class Draft(Model):
        id: Optional[int] = None
        author: Optional[Person] = field(None, sql=f"relation:belongs-to,{declaration}")

    with pytest.raises(ConfigurationError, match="Incomplete relation declaration on `author`"):
        resolve_model(Draft)


def test_relation_target_must_be_a_model():
    class Odd(Model):
        id: Optional[int] = None
        things: list[int] = field(default_factory=list, sql="relation:has-many")

    with pytest.raises(ConfigurationError, match="relation target must be a model class"):
        resolve_model(Odd)


def test_get_relation_model_walks_paths():
    assert get_relation_model(Post, "author.company") is Company
    assert get_relation_model(Comment, "post.comments") is Comment
    assert get_relation_model(Post, "author.nothing") is None


def test_cardinality_parse():
    assert Cardinality.parse("M2M") is Cardinality.MANY_TO_MANY
    assert Cardinality.parse("many2many") is Cardinality.MANY_TO_MANY
    assert Cardinality.parse(" has-one ") is Cardinality.HAS_ONE
    assert Cardinality.parse("") is Cardinality.UNKNOWN
    assert Cardinality.BELONGS_TO.prefers_join and Cardinality.HAS_ONE.prefers_join
    assert not Cardinality.HAS_MANY.prefers_join and not Cardinality.UNKNOWN.prefers_join
