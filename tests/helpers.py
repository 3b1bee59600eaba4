"""Shared test models, schema and a recording DB-API connection."""

from typing import Any, Optional

from pydantic import BaseModel

from relationism import Model, SqlNull, field


class Company(Model):
    id: Optional[int] = field(None, sql="id,pk")
    name: str = ""


class Person(Model):
    id: Optional[int] = field(None, sql="id,pk")
    name: str = ""
    company_id: Optional[int] = None
    headquarters_id: Optional[int] = None
    company: Optional[Company] = field(None, sql="relation:belongs-to,join:company_id=id")
    employer_headquarters: Optional[Company] = field(None, sql="relation:belongs-to,join:headquarters_id=id")
    profile: Optional["Profile"] = field(None, sql="relation:has-one,join:id=person_id")


class Profile(Model):
    id: Optional[int] = field(None, sql="id,pk")
    person_id: Optional[int] = None
    bio: str = ""
    person: Optional[Person] = None


class Comment(Model):
    id: Optional[int] = field(None, sql="id,pk")
    post_id: Optional[int] = None
    body: str = ""
    post: Optional["Post"] = field(None, sql="relation:belongs-to,join:post_id=id")


class Tag(Model):
    id: Optional[int] = field(None, sql="id,pk")
    label: str = ""


class Post(Model):
    id: Optional[int] = field(None, sql="id,pk")
    title: str = ""
    author_id: Optional[int] = None
    author: Optional[Person] = field(None, sql="relation:belongs-to,join:author_id=id")
    comments: Optional[list[Comment]] = field(None, sql="relation:has-many,join:id=post_id", alias="replies")
    tags: Optional[list[Tag]] = field(None, sql="relation:many-to-many,m2m:post_tags")


class Audit(BaseModel):
    created_by: str = ""
    revision: int = field(0, sql="rev")


class Stats(BaseModel):
    views: int = 0
    likes: int = field(0, orm="column:like_count")


class Account(Model):
    __table_name__ = "billing.accounts"

    id: Optional[int] = field(None, orm="primaryKey")
    display_name: str = field("", sql="name", orm="column:dn", alias="displayName")
    email: str = field("", orm="column:email_address")
    nick: str = field("", alias="nickname,omitempty")
    balance: SqlNull[float] = field(default_factory=SqlNull)
    created: str = field("", orm="->")
    locked: bool = field(False, orm="<-:false")
    secret: str = field("", sql="-")
    audit: Optional[Audit] = field(None, sql="embed")
    stats: Optional[Stats] = field(None, sql="embed,scanonly")


SCHEMA = """
CREATE TABLE company (id INTEGER PRIMARY KEY, name TEXT);
CREATE TABLE person (id INTEGER PRIMARY KEY, name TEXT, company_id INTEGER, headquarters_id INTEGER);
CREATE TABLE profile (id INTEGER PRIMARY KEY, person_id INTEGER, bio TEXT);
CREATE TABLE post (id INTEGER PRIMARY KEY, title TEXT, author_id INTEGER);
CREATE TABLE comment (id INTEGER PRIMARY KEY, post_id INTEGER, body TEXT);
CREATE TABLE tag (id INTEGER PRIMARY KEY, label TEXT);
CREATE TABLE post_tags (post_id INTEGER, tag_id INTEGER);
"""

SEED = """
INSERT INTO company (id, name) VALUES (1, 'Acme'), (2, 'Globex');
INSERT INTO person (id, name, company_id, headquarters_id) VALUES (1, 'Ada', 1, 2), (2, 'Bob', 2, NULL);
INSERT INTO profile (id, person_id, bio) VALUES (1, 1, 'mathematician');
INSERT INTO post (id, title, author_id) VALUES (1, 'First', 1), (2, 'Second', 1), (3, 'Third', 2);
INSERT INTO comment (id, post_id, body) VALUES (1, 1, 'a'), (2, 1, 'b'), (3, 2, 'c');
INSERT INTO tag (id, label) VALUES (1, 'python'), (2, 'sql');
INSERT INTO post_tags (post_id, tag_id) VALUES (1, 1), (1, 2), (2, 2);
"""


class RecordingCursor:
    """Cursor wrapper appending every executed (sql, args) pair to a shared list."""

    def __init__(self, cursor, statements: list):
        self._cursor = cursor
        self._statements = statements

    def execute(self, sql: str, parameters: Any = ()):
        self._statements.append((sql, tuple(parameters)))
        return self._cursor.execute(sql, parameters)

    def __getattr__(self, name: str):
        return getattr(self._cursor, name)


class RecordingConnection:
    """DB-API connection wrapper recording the statements run through its cursors."""

    def __init__(self, connection):
        self._connection = connection
        self.statements: list[tuple[str, tuple]] = []

    def cursor(self):
        return RecordingCursor(self._connection.cursor(), self.statements)

    def __getattr__(self, name: str):
        return getattr(self._connection, name)


def selects(database) -> list[tuple[str, tuple]]:
    """Statements recorded on database's connection that read rows."""
    return [(sql, args) for sql, args in database.connection.statements if sql.startswith("SELECT")]
