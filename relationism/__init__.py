"""relationism: relation-aware query planning and batch loading on Pydantic models and SQL."""

from .model import Model, field
from .types import SqlNull
from .connection import connect, get_database
from .context import Context
from .database import Database, Result
from .metadata import Cardinality, get_relation_type, resolve_model
from .parameters import In
from .planner import Planner, PreloadPlan, PreloadSpec, Strategy
from .query import DeleteQuery, InsertQuery, SelectQuery, UpdateQuery
from .registry import ModelNotFound, ModelRegistry
from .scanner import map_to_struct, scan_rows
from .settings import EngineSettings
from .errors import (
    ConfigurationError,
    ModelNotFoundError,
    NoRowsError,
    PreloadError,
    QueryCancelledError,
    QueryExecutionError,
    RelationismError,
    ScanError,
)
