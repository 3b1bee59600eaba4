"""Parsing of the field declaration strings stored by `relationism.field`.

Two tag languages are understood:

* the primary tag (``sql=``), comma separated, e.g. ``"author_id"``,
  ``"id,pk"``, ``"total,scanonly"`` or ``"relation:has-many,join:id=post_id"``;
* the secondary tag (``orm=``), semicolon separated ``key:value`` items, e.g.
  ``"column:author_id;foreignKey:author_id"`` or ``"->"``.

The structured-data tag is the pydantic alias of the field.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.fields import FieldInfo

from .errors import ConfigurationError

_SQL_FLAGS = {"pk", "scanonly", "embed", "notnull", "nullzero", "unique"}
_SQL_OPTIONS = {"relation", "rel", "join", "m2m", "type", "default"}


class FieldTags(BaseModel):
    """Everything the declaration strings of one field say about it."""

    model_config = ConfigDict(frozen=True)

    name: str
    sql: str = ""
    orm: str = ""
    alias: Optional[str] = None

    sql_column: Optional[str] = None
    orm_column: Optional[str] = None
    ignored: bool = False
    primary_key: bool = False
    scan_only: bool = False
    read_only: bool = False
    embedded: bool = False

    relation: Optional[str] = None
    join: Optional[tuple[str, str]] = None
    junction_table: Optional[str] = None
    orm_foreign_key: Optional[str] = None
    orm_references: Optional[str] = None
    orm_many2many: Optional[str] = None

    @property
    def has_orm_relation_hint(self) -> bool:
        return bool(self.orm_foreign_key or self.orm_references or self.orm_many2many)

    @property
    def column_candidates(self) -> list[str]:
        """Column names in priority order: primary tag, secondary tag, alias, field name."""
        candidates = [self.sql_column, self.orm_column, self.alias, self.name]
        return [c for c in candidates if c]

    @property
    def column(self) -> str:
        return self.column_candidates[0]

    @classmethod
    def from_field_info(cls, name: str, info: FieldInfo) -> "FieldTags":
        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        sql = str(extra.get("sql") or "").strip()
        orm = str(extra.get("orm") or "").strip()
        alias = info.alias or info.serialization_alias
        if alias:
            alias = alias.split(",", 1)[0].strip() or None
        data: dict[str, Any] = {"name": name, "sql": sql, "orm": orm, "alias": alias}
        data.update(_parse_sql_tag(name, sql))
        orm_data = _parse_orm_tag(orm)
        data["ignored"] = data.get("ignored", False) or orm_data.pop("ignored", False)
        data["primary_key"] = data.get("primary_key", False) or orm_data.pop("primary_key", False)
        data["embedded"] = data.get("embedded", False) or orm_data.pop("embedded", False)
        data.update(orm_data)
        return cls(**data)


def _parse_sql_tag(name: str, tag: str) -> dict[str, Any]:
    if not tag:
        return {}
    if tag == "-":
        return {"ignored": True}
    result: dict[str, Any] = {}
    parts = [p.strip() for p in tag.split(",")]
    first = parts[0]
    if first and ":" not in first and first not in _SQL_FLAGS:
        result["sql_column"] = first
        parts = parts[1:]
    for part in parts:
        if not part:
            continue
        if part == "pk":
            result["primary_key"] = True
        elif part == "scanonly":
            result["scan_only"] = True
        elif part == "embed":
            result["embedded"] = True
        elif ":" in part:
            key, value = (s.strip() for s in part.split(":", 1))
            if key in ("relation", "rel"):
                result["relation"] = value
            elif key == "join":
                result["join"] = parse_join(name, value)
            elif key == "m2m":
                result["junction_table"] = value or None
    return result


def parse_join(name: str, value: str) -> tuple[str, str]:
    """Parse 'local=foreign' from a join declaration."""
    local, sep, foreign = value.partition("=")
    local, foreign = local.strip(), foreign.strip()
    if not sep or not local or not foreign:
        raise ConfigurationError(
            f"Incomplete relation declaration on `{name}`: expected join:<localKey>=<foreignKey>, got `join:{value}`"
        )
    return local, foreign


def _parse_orm_tag(tag: str) -> dict[str, Any]:
    if not tag:
        return {}
    if tag == "-":
        return {"ignored": True}
    result: dict[str, Any] = {}
    for part in (p.strip() for p in tag.split(";")):
        if not part:
            continue
        if part == "->":
            result["read_only"] = True
            continue
        key, _, value = part.partition(":")
        key, value = key.strip(), value.strip()
        lowered = key.lower()
        if lowered == "<-":
            if value == "false":
                result["read_only"] = True
        elif lowered == "-":
            result["ignored"] = True
        elif lowered == "column":
            result["orm_column"] = value or None
        elif lowered == "primarykey":
            result["primary_key"] = True
        elif lowered == "embedded":
            result["embedded"] = True
        elif lowered == "foreignkey":
            result["orm_foreign_key"] = value or None
        elif lowered == "references":
            result["orm_references"] = value or None
        elif lowered == "many2many":
            result["orm_many2many"] = value or None
    return result
