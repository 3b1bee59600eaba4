"""Explicit model registry: resolve a model class from a table or entity name."""

from typing import Iterator, Optional, Union

from .errors import ConfigurationError, ModelNotFoundError
from .metadata import resolve_model


class ModelNotFound:
    """Falsy result of a registry lookup that matched nothing."""

    def __init__(self, name: str):
        self.name = name

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"ModelNotFound({self.name!r})"


class ModelRegistry:
    """Maps lower-cased table names (optionally schema-qualified) to model classes."""

    def __init__(self):
        self._models: dict[str, type] = {}

    def register(self, model: type, name: Optional[str] = None) -> type:
        """Register model under name, or under its table name.

        Registering the same model twice is a no-op.

        Raises:
            ConfigurationError: If model is not a model class, or name is taken by another model.
        """
        descriptor = resolve_model(model)
        key = (name or descriptor.table_name).lower()
        existing = self._models.get(key)
        if existing is not None and existing is not model:
            raise ConfigurationError(f"`{key}` is already registered to {existing.__name__}")
        self._models[key] = model
        return model

    def lookup(self, name: str) -> Union[type, ModelNotFound]:
        """Return the model registered under name (case-insensitive), or a falsy ModelNotFound."""
        key = (name or "").lower()
        model = self._models.get(key)
        if model is None and "." not in key:
            # a bare name also matches a single schema-qualified registration
            matches = [m for k, m in self._models.items() if k.rsplit(".", 1)[-1] == key]
            if len(matches) == 1:
                model = matches[0]
        return model if model is not None else ModelNotFound(name)

    def get(self, name: str) -> type:
        model = self.lookup(name)
        if not model:
            raise ModelNotFoundError(f"No model registered with name=`{name}`")
        return model

    def get_by_entity(self, schema: Optional[str], entity: str) -> type:
        return self.get(f"{schema}.{entity}" if schema else entity)

    def models(self) -> list[type]:
        return list(self._models.values())

    def __iter__(self) -> Iterator[type]:
        return iter(self.models())

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, name: str) -> bool:
        return bool(self.lookup(name))
