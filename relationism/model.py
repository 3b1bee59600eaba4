"""Model base class and the `field` declaration helper."""

from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import PydanticUndefined


def field(default: Any = PydanticUndefined, *, sql: Optional[str] = None, orm: Optional[str] = None, **kwargs) -> Any:
    """Declare a model field with its column and relation tags.

    Args:
        default: Field default, as for pydantic.Field.
        sql: Primary tag, comma separated: column name first, then flags
            (`pk`, `scanonly`, `embed`) or a relation such as
            `relation:has-many,join:id=post_id`. `-` ignores the field.
        orm: Secondary tag, semicolon separated `key:value` items such as
            `column:name`, `primaryKey`, `->`, `foreignKey:author_id`, `many2many:post_tags`.
        **kwargs: Passed to pydantic.Field (e.g. alias, default_factory).
    """
    extra = dict(kwargs.pop("json_schema_extra", None) or {})
    if sql is not None:
        extra["sql"] = sql
    if orm is not None:
        extra["orm"] = orm
    return Field(default, json_schema_extra=extra or None, **kwargs)


class Model(BaseModel):
    """Base class for records; relationism also accepts plain pydantic models."""

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    __table_name__: ClassVar[Optional[str]] = None
    """Table name, optionally schema-qualified ('blog.posts'); defaults to the lower-cased class name."""
    __table_alias__: ClassVar[Optional[str]] = None
    """Alias used in FROM clauses, if any."""

    @classmethod
    def _get_table_name(cls) -> str:
        return cls.__table_name__ or cls.__name__.lower()

    @classmethod
    def _get_table_alias(cls) -> Optional[str]:
        return cls.__table_alias__

    @classmethod
    def q(cls, connection_name: str = "default") -> "SelectQuery":
        """Return a SelectQuery for this model on the named connection."""
        from .connection import get_database
        return get_database(connection_name).select(cls)


def table_name_of(model: type) -> str:
    """Table name for any model class, with or without the Model base."""
    getter = getattr(model, "_get_table_name", None)
    if getter is not None:
        return getter()
    return model.__name__.lower()


def table_alias_of(model: type) -> Optional[str]:
    getter = getattr(model, "_get_table_alias", None)
    return getter() if getter is not None else None
