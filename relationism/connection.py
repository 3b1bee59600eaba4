import threading
from typing import Callable, Union

from .database import Database
from .dialects import get_dialect_for_url
from .registry import ModelRegistry
from .settings import EngineSettings


_urls: dict[str, Union[str, Callable[[], str]]] = {}
_settings: dict[str, EngineSettings] = {}
_registries: dict[str, ModelRegistry] = {}
_local = threading.local()


def connect(database_url: Union[str, Callable[[], str]], name: str = "default", **settings) -> None:
    """Record the URL and engine settings of a named connection.

    database_url may also be a function returning the URL; it is called each
    time a thread opens the connection. The connection itself is opened lazily,
    once per thread, by get_database(). Settings are EngineSettings fields
    (identifier_limit, column_suffix_margin, strict_preloads).
    """
    if not isinstance(database_url, str) and not callable(database_url):
        raise ValueError("database_url must be a str, or a method returning a str")
    _settings[name] = EngineSettings(**settings)
    _urls[name] = database_url
    _registries.setdefault(name, ModelRegistry())
    databases = getattr(_local, "databases", {})
    previous = databases.pop(name, None)
    if previous is not None:
        previous.close()


def get_database(name: str = "default") -> Database:
    databases = _local.__dict__.setdefault("databases", {})
    if name in databases:
        return databases[name]
    try:
        url = _urls[name]
    except KeyError as error:
        raise ValueError(f"No connection configured with name=`{name}`") from error
    if callable(url):
        url = url()

    dialect = get_dialect_for_url(url)
    database = Database(
        dialect.connect(url),
        dialect,
        settings=_settings[name],
        registry=_registries[name],
        name=name,
    )
    databases[name] = database
    return database
