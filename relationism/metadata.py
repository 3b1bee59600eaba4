"""Metadata resolver: column mappings, primary keys and relation descriptors derived from model classes.

Descriptors are computed once per model class (cached by type identity) and
are immutable afterwards, so they can be shared across threads and calls.
"""

from __future__ import annotations

import enum
import inspect
import logging
from functools import cache, cached_property
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict

from .errors import ConfigurationError
from .model import table_alias_of, table_name_of
from .tags import FieldTags
from .types import is_null_wrapper
from .utils.resolve_type import unwrap_annotation

logger = logging.getLogger("relationism")


class Cardinality(str, enum.Enum):
    """Multiplicity of a relation, as written in `relation:<cardinality>`."""

    HAS_MANY = "has-many"
    BELONGS_TO = "belongs-to"
    HAS_ONE = "has-one"
    MANY_TO_MANY = "many-to-many"
    UNKNOWN = "unknown"

    @property
    def prefers_join(self) -> bool:
        """True for relations resolved with a JOIN by default (at most one row per parent)."""
        return self in (Cardinality.BELONGS_TO, Cardinality.HAS_ONE)

    @classmethod
    def parse(cls, value: str) -> "Cardinality":
        normalized = (value or "").strip().lower()
        if normalized in ("m2m", "many2many"):
            return cls.MANY_TO_MANY
        for member in cls:
            if member.value == normalized:
                return member
        return cls.UNKNOWN


class FieldDescriptor(BaseModel):
    """One storage column of a model."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    column: str
    writable: bool = True
    is_primary_key: bool = False
    path: tuple[str, ...]
    """Attribute path from the model instance; longer than one for fields of embedded models."""
    annotation: Any = None
    aliases: tuple[str, ...] = ()
    """Lower-cased names this field answers to, in priority order."""


class RelationDescriptor(BaseModel):
    """A relation-bearing field and the keys joining it to its target model."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    field_name: str
    cardinality: Cardinality
    local_key: str
    """Column on the owning model."""
    foreign_key: str
    """Column on the target model matched against local_key."""
    target_model: Any
    many: bool = False
    """True if the field holds a list of records."""
    inferred: bool = False
    """True if the cardinality came from the field's type rather than a declaration."""
    junction_table: Optional[str] = None
    owner_table: str = ""
    aliases: tuple[str, ...] = ()

    @property
    def junction_owner_column(self) -> str:
        return f"{_bare_table_name(self.owner_table)}_id"

    @property
    def junction_target_column(self) -> str:
        return f"{_bare_table_name(table_name_of(self.target_model))}_id"


class ModelDescriptor(BaseModel):
    """Column and relation metadata of one model class."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    model: Any
    table_name: str
    alias: Optional[str] = None
    fields: tuple[FieldDescriptor, ...] = ()
    relations: dict[str, RelationDescriptor] = {}

    @cached_property
    def field_map(self) -> dict[str, FieldDescriptor]:
        """Lower-cased column name -> field, honoring declaration priority across all fields."""
        result: dict[str, FieldDescriptor] = {}
        depth = max((len(f.aliases) for f in self.fields), default=0)
        for level in range(depth):
            for f in self.fields:
                if level < len(f.aliases):
                    result.setdefault(f.aliases[level], f)
        return result

    @property
    def schema_name(self) -> Optional[str]:
        return self.table_name.rsplit(".", 1)[0] if "." in self.table_name else None

    @property
    def primary_key(self) -> Optional[FieldDescriptor]:
        for f in self.fields:
            if f.is_primary_key:
                return f
        return None

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self.fields]

    @property
    def writable_columns(self) -> list[str]:
        return [f.column for f in self.fields if f.writable]

    def field_for_column(self, column: str) -> Optional[FieldDescriptor]:
        """Return the field stored in column (case-insensitive), or None."""
        return self.field_map.get((column or "").lower())

    def find_field(self, name: str) -> Optional[FieldDescriptor]:
        """Find a field by attribute name or any of its column names."""
        lowered = (name or "").lower()
        for f in self.fields:
            if f.name.lower() == lowered:
                return f
        return self.field_for_column(lowered)

    def find_relation(self, name: str) -> Optional[RelationDescriptor]:
        """Find a relation by field name (case-insensitive) or its structured-data alias."""
        lowered = (name or "").lower()
        if name in self.relations:
            return self.relations[name]
        for relation in self.relations.values():
            if lowered in relation.aliases:
                return relation
        return None

    def require_relation(self, name: str) -> RelationDescriptor:
        relation = self.find_relation(name)
        if relation is None:
            raise ConfigurationError(f"{self.model.__name__} has no relation named `{name}`")
        return relation

    def is_column_writable(self, column: str) -> bool:
        """False only for known scan-only/read-only columns; unknown columns are allowed."""
        f = self.field_for_column(column)
        return True if f is None else f.writable

    def get_value(self, instance: Any, f: FieldDescriptor) -> Any:
        """Read a field's value; a None embedded model gives None."""
        current = instance
        for attribute in f.path:
            if current is None:
                return None
            current = getattr(current, attribute, None)
        return current

    def iter_values(self, instance: Any, writable_only: bool = False) -> Iterator[tuple[FieldDescriptor, Any]]:
        """Yield (field, value) pairs, skipping fields under a None embedded model."""
        for f in self.fields:
            if writable_only and not f.writable:
                continue
            owner = self._owner_of(instance, f, create=False)
            if owner is None:
                continue
            yield f, getattr(owner, f.path[-1], None)

    def set_value(self, instance: Any, f: FieldDescriptor, value: Any) -> None:
        """Assign a field's value, allocating embedded models on the way when needed."""
        owner = self._owner_of(instance, f, create=True)
        setattr(owner, f.path[-1], value)

    def _owner_of(self, instance: Any, f: FieldDescriptor, create: bool) -> Any:
        current = instance
        model = type(instance)
        for attribute in f.path[:-1]:
            child = getattr(current, attribute, None)
            if child is None:
                if not create:
                    return None
                child_type, _ = unwrap_annotation(model.model_fields[attribute].annotation, model)
                child = child_type.model_construct()
                setattr(current, attribute, child)
            current, model = child, type(child)
        return current


def _bare_table_name(table_name: str) -> str:
    return table_name.rsplit(".", 1)[-1]


def _is_model_class(t: Any) -> bool:
    return inspect.isclass(t) and issubclass(t, BaseModel) and not is_null_wrapper(t)


def _ensure_complete(model: type[BaseModel]) -> None:
    if not getattr(model, "__pydantic_complete__", True):
        model.model_rebuild(raise_errors=False)


@cache
def _primary_key_column(model: type[BaseModel]) -> Optional[str]:
    """Primary key column without resolving relations (safe for mutually referencing models)."""
    fallback = None
    for name, info in model.model_fields.items():
        tags = FieldTags.from_field_info(name, info)
        if tags.ignored:
            continue
        if tags.primary_key:
            return tags.column
        if tags.column.lower() == "id":
            fallback = tags.column
    return fallback


def _classify(tags: FieldTags, is_collection: bool) -> tuple[Cardinality, bool]:
    """Return (cardinality, inferred) for a relation field."""
    if tags.relation:
        cardinality = Cardinality.parse(tags.relation)
        if cardinality is not Cardinality.UNKNOWN:
            return cardinality, False
        logger.warning("Unrecognized relation `%s` on field `%s`; inferring from its type", tags.relation, tags.name)
    if tags.orm:
        if tags.orm_many2many:
            return Cardinality.MANY_TO_MANY, False
        if is_collection:
            return Cardinality.HAS_MANY, False
        if tags.orm_foreign_key:
            return Cardinality.BELONGS_TO, False
        return Cardinality.HAS_ONE, False
    if is_collection:
        return Cardinality.HAS_MANY, True
    return Cardinality.BELONGS_TO, True


def _relation_keys(
    model: type[BaseModel], tags: FieldTags, cardinality: Cardinality, target: type[BaseModel]
) -> tuple[str, str]:
    if tags.join:
        return tags.join
    own_pk = _primary_key_column(model) or "id"
    target_pk = _primary_key_column(target) or "id"
    if cardinality is Cardinality.BELONGS_TO:
        return tags.orm_foreign_key or f"{tags.name}_id", tags.orm_references or target_pk
    if cardinality is Cardinality.MANY_TO_MANY:
        return tags.orm_references or own_pk, target_pk
    return tags.orm_references or own_pk, tags.orm_foreign_key or f"{_bare_table_name(table_name_of(model))}_id"


def _is_relation(tags: FieldTags, element: Any) -> bool:
    if tags.relation or tags.has_orm_relation_hint or tags.junction_table:
        return True
    return _is_model_class(element) and not (tags.sql_column or tags.orm_column)


def _collect(
    root: type[BaseModel],
    model: type[BaseModel],
    prefix: tuple[str, ...],
    scan_only: bool,
    fields: list[FieldDescriptor],
    relations: dict[str, RelationDescriptor],
) -> None:
    _ensure_complete(model)
    for name, info in model.model_fields.items():
        tags = FieldTags.from_field_info(name, info)
        if tags.ignored:
            continue
        try:
            element, is_collection = unwrap_annotation(info.annotation, model)
        except ValueError as error:
            raise ConfigurationError(f"{model.__name__}.{name}: {error}") from error

        if tags.embedded:
            if not _is_model_class(element) or is_collection:
                raise ConfigurationError(f"{model.__name__}.{name}: only a single model can be embedded")
            # scan-only on the embedded field overrides whatever its children declare
            _collect(root, element, prefix + (name,), scan_only or tags.scan_only, fields, relations)
            continue

        if _is_relation(tags, element):
            if prefix:
                logger.debug("Ignoring relation %s inside embedded model %s", name, model.__name__)
                continue
            if not _is_model_class(element):
                raise ConfigurationError(
                    f"{model.__name__}.{name}: relation target must be a model class, got {element!r}"
                )
            cardinality, inferred = _classify(tags, is_collection)
            local_key, foreign_key = _relation_keys(model, tags, cardinality, element)
            relations[name] = RelationDescriptor(
                field_name=name,
                cardinality=cardinality,
                local_key=local_key,
                foreign_key=foreign_key,
                target_model=element,
                many=is_collection,
                inferred=inferred,
                junction_table=tags.junction_table or tags.orm_many2many,
                owner_table=table_name_of(root),
                aliases=tuple(a.lower() for a in (name, tags.alias) if a),
            )
            continue

        aliases: list[str] = []
        for candidate in tags.column_candidates:
            if candidate.lower() not in aliases:
                aliases.append(candidate.lower())
        fields.append(FieldDescriptor(
            name=name,
            column=tags.column,
            writable=not (scan_only or tags.scan_only or tags.read_only),
            is_primary_key=tags.primary_key,
            path=prefix + (name,),
            annotation=info.annotation,
            aliases=tuple(aliases),
        ))


@cache
def resolve_model(model: type) -> ModelDescriptor:
    """Return the (cached) descriptor of a model class.

    Raises:
        ConfigurationError: If model is not a pydantic model class, or a declaration is invalid.
    """
    if not _is_model_class(model):
        raise ConfigurationError(f"Expected a pydantic model class, got {model!r}")
    fields: list[FieldDescriptor] = []
    relations: dict[str, RelationDescriptor] = {}
    _collect(model, model, (), False, fields, relations)
    if not any(f.is_primary_key for f in fields):
        pk_column = _primary_key_column(model)
        fields = [
            f.model_copy(update={"is_primary_key": True}) if pk_column and f.column == pk_column and len(f.path) == 1 else f
            for f in fields
        ]
    descriptor = ModelDescriptor(
        model=model,
        table_name=table_name_of(model),
        alias=table_alias_of(model),
        fields=tuple(fields),
        relations=relations,
    )
    logger.debug(
        "Resolved %s: table=%s columns=%s relations=%s",
        model.__name__, descriptor.table_name, descriptor.columns, list(relations),
    )
    return descriptor


def get_relation_type(model: Any, field_name: str) -> Cardinality:
    """Return the cardinality of a relation field (case-insensitive, alias aware), or UNKNOWN."""
    if model is None or not field_name:
        return Cardinality.UNKNOWN
    if not inspect.isclass(model):
        model = type(model)
    try:
        descriptor = resolve_model(model)
    except ConfigurationError:
        return Cardinality.UNKNOWN
    relation = descriptor.find_relation(field_name)
    return relation.cardinality if relation is not None else Cardinality.UNKNOWN


def get_relation_model(model: Any, path: str) -> Optional[type]:
    """Return the target model at the end of a dotted relation path, or None."""
    if not inspect.isclass(model):
        model = type(model)
    for segment in (s for s in (path or "").split(".") if s):
        relation = resolve_model(model).find_relation(segment)
        if relation is None:
            return None
        model = relation.target_model
    return model
