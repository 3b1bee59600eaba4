"""Rebuild nested records from the flat rows of a query with joined relations."""

import logging
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .metadata import ModelDescriptor
from .planner import ALIAS_SEPARATOR
from .scanner import row_to_instance
from .utils.normalize_key import normalize_key

logger = logging.getLogger("relationism")


class JoinedPath(BaseModel):
    """A relation folded into the main statement with a LEFT JOIN."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    alias: str
    """Alias chain of the joined table, e.g. 'author__company'."""
    parent_alias: str
    """Alias chain of the parent, '' for the root table."""
    field_name: str
    many: bool = False
    target: ModelDescriptor

    @property
    def depth(self) -> int:
        return self.alias.count(ALIAS_SEPARATOR) + 1


def rearrange_row(row: Mapping[str, Any], aliases: Iterable[str]) -> dict[str, dict[str, Any]]:
    """Group the columns of one row by alias chain; root columns go under ''."""
    known = set(aliases)
    data_per_table: dict[str, dict[str, Any]] = {"": {}}
    for key, value in row.items():
        table_path, column_name = "", key
        if ALIAS_SEPARATOR in key:
            prefix, column = key.rsplit(ALIAS_SEPARATOR, 1)
            if prefix.lower() in known:
                table_path, column_name = prefix.lower(), column
        data_per_table.setdefault(table_path, {})[column_name] = value
    return data_per_table


def _identity(descriptor: ModelDescriptor, values: Mapping[str, Any]) -> Optional[Any]:
    pk = descriptor.primary_key
    if pk is None:
        return None
    for column, value in values.items():
        if column.lower() == pk.column.lower():
            return normalize_key(value)
    return None


def hydrate(rows: Iterable[Mapping[str, Any]], root: ModelDescriptor, joined: list[JoinedPath]) -> list[BaseModel]:
    """Build root instances with their joined relations attached.

    Rows sharing a root primary key collapse into one instance, so a forced join
    on a to-many relation yields one record per parent with all children
    appended. A joined side with only NULL columns means no related record.
    """
    ordered = sorted(joined, key=lambda j: j.depth)
    aliases = [j.alias for j in ordered]
    records: list[BaseModel] = []
    by_identity: dict[Any, BaseModel] = {}
    touched: set[tuple[int, str]] = set()

    for row in rows:
        data_per_table = rearrange_row(row, aliases)
        root_values = data_per_table[""]
        identity = _identity(root, root_values)
        instance = by_identity.get(identity) if identity is not None else None
        if instance is None:
            instance = row_to_instance(root, root_values)
            records.append(instance)
            if identity is not None:
                by_identity[identity] = instance

        objects: dict[str, BaseModel] = {"": instance}
        for j in ordered:
            parent = objects.get(j.parent_alias)
            if parent is None:
                continue
            marker = (id(parent), j.field_name)
            if j.many and marker not in touched:
                # fresh list per parent, so defaults are never shared
                setattr(parent, j.field_name, [])
                touched.add(marker)
            values = data_per_table.get(j.alias, {})
            if all(value is None for value in values.values()):
                if not j.many and marker not in touched:
                    setattr(parent, j.field_name, None)
                    touched.add(marker)
                continue
            objects[j.alias] = _attach(parent, j, values)
            touched.add(marker)
    logger.debug("Hydrated %d records with joins %s", len(records), aliases)
    return records


def _attach(parent: BaseModel, j: JoinedPath, values: Mapping[str, Any]) -> BaseModel:
    identity = _identity(j.target, values)
    if j.many:
        children = getattr(parent, j.field_name)
        if identity is not None:
            for child in children:
                if _identity(j.target, _columns_of(j.target, child)) == identity:
                    return child
        child = row_to_instance(j.target, values)
        children.append(child)
        return child
    current = getattr(parent, j.field_name, None)
    if current is not None and identity is not None and _identity(j.target, _columns_of(j.target, current)) == identity:
        return current
    child = row_to_instance(j.target, values)
    setattr(parent, j.field_name, child)
    return child


def _columns_of(descriptor: ModelDescriptor, instance: BaseModel) -> dict[str, Any]:
    pk = descriptor.primary_key
    if pk is None:
        return {}
    return {pk.column: descriptor.get_value(instance, pk)}
