"""Query spec builders: SELECT with relation preloading, INSERT, UPDATE and DELETE."""

from __future__ import annotations

import inspect
import logging
import re
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, Field

from .dialects.base import Dialect
from .errors import ConfigurationError, NoRowsError, recover
from .hydration import ALIAS_SEPARATOR, JoinedPath, hydrate
from .loader import BatchLoader, PreloadExecutor
from .metadata import ModelDescriptor, resolve_model
from .parameters import Fragment, ParameterSequence
from .planner import Planner, PreloadPlan, PreloadSpec, Strategy, alias_chain
from .scanner import map_to_struct, scan_rows
from .settings import EngineSettings
from .types import unwrap_null
from .utils.normalize_table_alias import normalize_table_alias

logger = logging.getLogger("relationism")

_JOIN_KEYWORD = re.compile(r"^\s*((NATURAL|LEFT|RIGHT|FULL|INNER|OUTER|CROSS)\s+)*JOIN\b", re.IGNORECASE)


def _model_class(model: Any) -> type:
    return model if inspect.isclass(model) else type(model)


class SelectQuery(BaseModel):
    """Mutable SELECT builder; every builder method returns the query itself.

    Fragments keep their portable `?` placeholders and arguments; markers are
    assigned when a statement is compiled, in the order they appear in its text.
    """

    model_config = {"arbitrary_types_allowed": True}

    database: Any = None
    dialect: Dialect
    settings: EngineSettings = Field(default_factory=EngineSettings)

    record_class: Optional[type] = None
    """Model the rows are scanned into."""
    scan_target: Any = None
    """Instance or list given to model(), filled by scan_model()."""
    table_name: Optional[str] = None
    table_alias: Optional[str] = None

    columns: list[str] = Field(default_factory=list)
    column_exprs: list[Fragment] = Field(default_factory=list)
    where_and: list[Fragment] = Field(default_factory=list)
    or_conditions: list[Fragment] = Field(default_factory=list)
    joins: list[Fragment] = Field(default_factory=list)
    group_by: list[str] = Field(default_factory=list)
    having_conditions: list[Fragment] = Field(default_factory=list)
    order_by: list[Fragment] = Field(default_factory=list)
    limit_value: Optional[int] = None
    offset_value: Optional[int] = None

    preload_plans: list[PreloadPlan] = Field(default_factory=list)
    joined_paths: list[JoinedPath] = Field(default_factory=list)
    normalize_aliases: bool = False
    """Strip qualifiers abbreviating the queried table from conditions (used by batch queries)."""

    # builders

    def model(self, model: Any) -> SelectQuery:
        """Target a model class; an instance or list is also remembered for scan_model()."""
        if model is None:
            return self
        if isinstance(model, list):
            self.scan_target = model
            return self
        if not inspect.isclass(model):
            self.scan_target = model
        cls = _model_class(model)
        descriptor = resolve_model(cls)
        self.record_class = cls
        self.table_name = descriptor.table_name
        if descriptor.alias:
            self.table_alias = descriptor.alias
        return self

    def table(self, name: Optional[str], alias: Optional[str] = None) -> SelectQuery:
        if name:
            self.table_name = name
        if alias:
            self.table_alias = alias
        return self

    def column(self, *columns: str) -> SelectQuery:
        columns = [c for c in columns if c]
        if columns and self.columns == ["*"]:
            self.columns = []
        self.columns.extend(columns)
        return self

    def column_expr(self, expression: str, *args: Any) -> SelectQuery:
        if expression:
            self.column_exprs.append(Fragment(expression, args))
        return self

    def where(self, condition: str, *args: Any) -> SelectQuery:
        if condition:
            self.where_and.append(self._condition(condition, args))
        return self

    def where_or(self, condition: str, *args: Any) -> SelectQuery:
        if condition:
            self.or_conditions.append(self._condition(condition, args))
        return self

    def join(self, clause: str, *args: Any) -> SelectQuery:
        if clause:
            if not _JOIN_KEYWORD.match(clause):
                clause = "JOIN " + clause
            self.joins.append(Fragment(clause, args))
        return self

    def left_join(self, clause: str, *args: Any) -> SelectQuery:
        if clause:
            self.joins.append(Fragment("LEFT JOIN " + clause, args))
        return self

    def preload(self, path: str, *apply: Callable) -> SelectQuery:
        """Load a relation path with batched follow-up queries."""
        return self._add_preload(path, apply, "separate")

    def preload_relation(self, path: str, *apply: Callable) -> SelectQuery:
        """Load a relation path, letting the planner pick a join or follow-up queries."""
        return self._add_preload(path, apply, None)

    def join_relation(self, path: str, *apply: Callable) -> SelectQuery:
        """Load a relation path with LEFT JOINs in the main statement."""
        return self._add_preload(path, apply, "join")

    def order(self, *orders: str) -> SelectQuery:
        self.order_by.extend(Fragment(o, literal=True) for o in orders if o)
        return self

    def order_expr(self, expression: str, *args: Any) -> SelectQuery:
        if expression:
            self.order_by.append(Fragment(expression, args))
        return self

    def group(self, *columns: str) -> SelectQuery:
        self.group_by.extend(c for c in columns if c)
        return self

    def having(self, condition: str, *args: Any) -> SelectQuery:
        if condition:
            self.having_conditions.append(Fragment(condition, args))
        return self

    def limit(self, limit: Optional[int]) -> SelectQuery:
        self.limit_value = limit
        return self

    def offset(self, offset: Optional[int]) -> SelectQuery:
        self.offset_value = offset
        return self

    def _condition(self, condition: str, args: tuple) -> Fragment:
        if self.normalize_aliases and self.table_name:
            bare = self.dialect.split_table_name(self.table_name)[1]
            condition = normalize_table_alias(condition, self.table_alias or bare, bare)
        return Fragment(condition, args)

    # relation preloading

    def _planner(self) -> Planner:
        return Planner.from_settings(self.settings, self.dialect)

    def _add_preload(self, path: str, apply: tuple, force: Optional[str]) -> SelectQuery:
        if not path:
            return self
        if self.record_class is None:
            raise ConfigurationError(f"call model() before preloading `{path}`")
        apply = tuple(fn for fn in apply if fn is not None)
        plan = self._planner().plan(PreloadSpec(path=path, apply=apply, force=force), self.record_class)
        self.preload_plans.append(plan)
        joined = plan.joined_segments
        for depth in range(1, len(joined) + 1):
            deepest = depth == len(joined) and plan.strategy is Strategy.JOIN
            self._join_path(joined[:depth], apply if deepest else ())
        return self

    def _join_path(self, segments: list[str], apply: tuple) -> None:
        alias = alias_chain(".".join(segments))
        if any(j.alias == alias for j in self.joined_paths):
            if apply:
                logger.warning("Relation '%s' is already joined; its query functions are ignored", alias)
            return
        relation = self._planner().walk(self.record_class, segments)[-1]
        target = resolve_model(relation.target_model)
        parent_alias = alias_chain(".".join(segments[:-1])) if len(segments) > 1 else ""
        parent = parent_alias or self._root_alias()
        table = self.dialect.table_reference(target.table_name)

        if relation.junction_table:
            link = f"{alias}{ALIAS_SEPARATOR}link"
            self.joins.append(Fragment(
                f"LEFT JOIN {self.dialect.table_reference(relation.junction_table)} AS {link} "
                f"ON {link}.{relation.junction_owner_column} = {parent}.{relation.local_key}",
                literal=True,
            ))
            on = f"{alias}.{relation.foreign_key} = {link}.{relation.junction_target_column}"
        else:
            on = f"{parent}.{relation.local_key} = {alias}.{relation.foreign_key}"
        clause = f"LEFT JOIN {table} AS {alias} ON {on}"
        conditions = self._scope_conditions(target, alias, apply)
        if conditions is None:
            self.joins.append(Fragment(clause, literal=True))
        else:
            self.joins.append(Fragment(f"{clause} AND {conditions.text}", conditions.args))
        self.joined_paths.append(JoinedPath(
            alias=alias,
            parent_alias=parent_alias,
            field_name=relation.field_name,
            many=relation.many,
            target=target,
        ))

    def _scope_conditions(self, target: ModelDescriptor, alias: str, apply: tuple) -> Optional[Fragment]:
        """Run query functions on a scope of the joined table; return its WHERE body."""
        if not apply:
            return None
        scope = SelectQuery(
            dialect=self.dialect,
            settings=self.settings,
            record_class=target.model,
            table_name=target.table_name,
            table_alias=alias,
        )
        for fn in apply:
            result = fn(scope)
            if isinstance(result, SelectQuery):
                scope = result
        if scope.order_by or scope.limit_value or scope.columns or scope.joins:
            logger.debug("Only conditions apply to joined relation '%s'; other clauses are ignored", alias)
        return scope._where_fragment()

    # assembly

    def _root_alias(self) -> str:
        return self.table_alias or self.dialect.table_reference(self.table_name or "")

    def _projection(self) -> list[Fragment]:
        projection = [Fragment(c, literal=True) for c in self.columns] + list(self.column_exprs)
        if self.joined_paths:
            if not projection:
                root = self._root_alias()
                projection = [Fragment(f"{root}.{c}", literal=True) for c in resolve_model(self.record_class).columns]
            for j in self.joined_paths:
                projection.extend(
                    Fragment(f"{j.alias}.{c} AS {j.alias}{ALIAS_SEPARATOR}{c}", literal=True) for c in j.target.columns
                )
        return projection

    def _where_fragment(self) -> Optional[Fragment]:
        groups = [
            Fragment.join(self.where_and, " AND ", "(", ")"),
            Fragment.join(self.or_conditions, " OR ", "(", ")"),
        ]
        return Fragment.join([g for g in groups if g is not None], " AND ")

    def _compile(self, projection: list[Fragment], grouping: bool = True, ordering: bool = True,
                 paging: bool = True) -> tuple[str, tuple]:
        """Assemble the statement, numbering markers and collecting arguments in text order."""
        parameters = ParameterSequence(self.dialect)
        escape = self.dialect.escape_text
        parts = ["SELECT " + (", ".join(parameters.bind(p) for p in projection) or "*")]
        if self.table_name:
            source = self.dialect.table_reference(self.table_name)
            if self.table_alias:
                source += f" AS {self.table_alias}"
            parts.append(escape(f"FROM {source}"))
        parts.extend(parameters.bind(j) for j in self.joins)
        where = self._where_fragment()
        if where is not None:
            parts.append("WHERE " + parameters.bind(where))
        if grouping and self.group_by:
            parts.append(escape("GROUP BY " + ", ".join(self.group_by)))
        if grouping and self.having_conditions:
            parts.append("HAVING " + parameters.bind(Fragment.join(self.having_conditions, " AND ")))
        if ordering and self.order_by:
            parts.append("ORDER BY " + ", ".join(parameters.bind(o) for o in self.order_by))
        if paging:
            tail = self.dialect.paging(self.limit_value, self.offset_value, ordered=bool(ordering and self.order_by))
            if tail:
                parts.append(tail)
        return " ".join(parts), tuple(parameters.args)

    @property
    def statement(self) -> tuple[str, tuple]:
        return self._compile(self._projection())

    @property
    def sql(self) -> str:
        return self.statement[0]

    @property
    def args(self) -> tuple:
        return self.statement[1]

    @property
    def count_statement(self) -> tuple[str, tuple]:
        """COUNT statement over the same joins and filters, without projection, ordering or paging."""
        if self.group_by or self.having_conditions:
            inner, args = self._compile(self._projection(), ordering=False, paging=False)
            return f"SELECT COUNT(*) FROM ({inner}) AS count_subquery", args
        target = "*"
        if any(j.many for j in self.joined_paths):
            pk = resolve_model(self.record_class).primary_key
            if pk is not None:
                target = f"DISTINCT {self._root_alias()}.{pk.column}"
        return self._compile([Fragment(f"COUNT({target})", literal=True)], grouping=False, ordering=False, paging=False)

    @property
    def count_sql(self) -> str:
        return self.count_statement[0]

    @property
    def count_args(self) -> tuple:
        return self.count_statement[1]

    # execution

    def _require_database(self):
        if self.database is None:
            raise ConfigurationError("query is not bound to a database")
        return self.database

    def rows(self, context=None) -> list[dict[str, Any]]:
        """Execute and return the raw rows as dicts."""
        sql, args = self.statement
        return self._require_database().execute(sql, args, context=context, operation="SelectQuery.rows")

    @recover("SelectQuery.scan")
    def scan(self, destination: Any, context=None) -> Any:
        """Execute and scan into destination, then run the follow-up preloads.

        destination is a model class (returns a list), a model instance (filled
        from the first row), a list (appended to), or `dict` (list of dicts).

        Raises:
            ConfigurationError: If destination is None.
            NoRowsError: If destination is an instance and nothing matched.
        """
        if destination is None:
            raise ConfigurationError("destination cannot be None")
        model = self.record_class
        rows = self.rows(context)
        as_records = model is not None and (
            destination is model or isinstance(destination, (list, model))
        )
        if not as_records:
            return scan_rows(rows, destination, model=model)

        descriptor = resolve_model(model)
        if self.joined_paths:
            records = hydrate(rows, descriptor, self.joined_paths)
        else:
            records = scan_rows(rows, model)
        if isinstance(destination, BaseModel):
            if not records:
                raise NoRowsError("no rows in result set", operation="SelectQuery.scan", statement=self.sql, arguments=self.args)
            first = records[0]
            for name in first.model_fields_set:
                setattr(destination, name, getattr(first, name))
            records = [destination]
        self._run_preloads(records, context)
        if isinstance(destination, list):
            destination.extend(records)
            return destination
        return destination if isinstance(destination, BaseModel) else records

    def _run_preloads(self, records: list, context) -> None:
        pending = [p for p in self.preload_plans if p.strategy is not Strategy.JOIN]
        if not pending or not records:
            return
        executor = PreloadExecutor(BatchLoader(self._require_database(), self.settings))
        executor.run(records, self.record_class, pending, joined={j.alias for j in self.joined_paths}, context=context)

    def scan_model(self, context=None) -> Any:
        """Scan into what was given to model(): its instance or list, else a new list."""
        if self.record_class is None:
            raise ConfigurationError("scan_model() needs model() to be called first")
        target = self.scan_target if self.scan_target is not None else self.record_class
        return self.scan(target, context)

    def all(self, context=None) -> list:
        if self.record_class is None:
            return self.scan(dict, context)
        return self.scan(self.record_class, context)

    def first(self, context=None) -> Optional[Any]:
        records = self.limit(1).all(context)
        return records[0] if records else None

    @recover("SelectQuery.count")
    def count(self, context=None) -> int:
        sql, args = self.count_statement
        rows = self._require_database().execute(
            sql, args, rows_as_dicts=False, context=context, operation="SelectQuery.count"
        )
        return int(rows[0][0]) if rows else 0

    @recover("SelectQuery.exists")
    def exists(self, context=None) -> bool:
        return self.count(context) > 0


class _WriteQuery(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    database: Any = None
    dialect: Dialect
    registry: Any = None
    table_name: Optional[str] = None
    descriptor: Optional[ModelDescriptor] = None
    record: Any = None
    """Instance given to model(); RETURNING rows are merged back into it."""
    conditions: list[Fragment] = Field(default_factory=list)
    returning_columns: list[str] = Field(default_factory=list)

    def model(self, model: Any):
        if model is None:
            return self
        self.descriptor = resolve_model(_model_class(model))
        self.table_name = self.descriptor.table_name
        if not inspect.isclass(model):
            self.record = model
        return self

    def table(self, name: Optional[str]):
        """Target a table by name; a model registered under that name enables writability checks."""
        if not name:
            return self
        self.table_name = name
        if self.registry is not None:
            model = self.registry.lookup(name)
            if model:
                self.descriptor = resolve_model(model)
        return self

    def where(self, condition: str, *args: Any):
        if condition:
            self.conditions.append(Fragment(condition, args))
        return self

    def returning(self, *columns: str):
        self.returning_columns.extend(c for c in columns if c)
        return self

    def _target(self) -> str:
        if not self.table_name:
            raise ConfigurationError(f"{type(self).__name__} has no table; call model() or table()")
        return self.dialect.table_reference(self.table_name)

    def _pk_condition(self) -> list[Fragment]:
        """`pk = ?` for the instance given to model(), when no explicit condition was set."""
        if self.conditions or self.record is None or self.descriptor is None:
            return self.conditions
        pk = self.descriptor.primary_key
        if pk is None:
            return self.conditions
        value = unwrap_null(self.descriptor.get_value(self.record, pk))
        if value is None:
            return self.conditions
        return [Fragment(f"{pk.column} = ?", (value,))]

    def _where_sql(self, parameters: ParameterSequence) -> str:
        conditions = [parameters.bind(c) for c in self._pk_condition()]
        return " WHERE " + " AND ".join(conditions) if conditions else ""

    def _returning_sql(self) -> str:
        if not self.returning_columns:
            return ""
        if not type(self.dialect).SUPPORTS_RETURNING:
            logger.debug("%s does not support RETURNING; skipping it", self.dialect.name)
            return ""
        return " RETURNING " + ", ".join(self.returning_columns)

    def _execute(self, sql: str, args: tuple, context, operation: str):
        if self.database is None:
            raise ConfigurationError("query is not bound to a database")
        result = self.database.exec(sql, args, context=context, operation=operation)
        if self.record is not None and result.rows:
            map_to_struct(result.rows[0], self.record)
        return result


class InsertQuery(_WriteQuery):
    """INSERT builder."""

    column_values: dict[str, Any] = Field(default_factory=dict)
    conflict: Optional[str] = None
    conflict_args: tuple = ()

    def model(self, model: Any) -> InsertQuery:
        """Target a model; an instance contributes its writable columns, skipping a None primary key."""
        super().model(model)
        if self.record is not None:
            for f, value in self.descriptor.iter_values(self.record, writable_only=True):
                if f.is_primary_key and unwrap_null(value) is None:
                    continue
                self.column_values[f.column] = value
        return self

    def value(self, column: str, value: Any) -> InsertQuery:
        if column:
            self.column_values[column] = value
        return self

    def on_conflict(self, clause: str, *args: Any) -> InsertQuery:
        """Append `ON CONFLICT <clause>`, e.g. `on_conflict("(id) DO NOTHING")`."""
        self.conflict = clause or None
        self.conflict_args = args
        return self

    def build(self) -> tuple[str, tuple]:
        if not self.column_values:
            raise ConfigurationError("no values to insert")
        parameters = ParameterSequence(self.dialect)
        columns = ", ".join(self.column_values)
        markers = ", ".join(parameters.next_marker(v) for v in self.column_values.values())
        sql = f"INSERT INTO {self._target()} ({columns}) VALUES ({markers})"
        if self.conflict:
            sql += " ON CONFLICT " + parameters.bind(self.conflict, self.conflict_args)
        sql += self._returning_sql()
        return sql, tuple(parameters.args)

    @recover("InsertQuery.exec")
    def exec(self, context=None):
        sql, args = self.build()
        result = self._execute(sql, args, context, "InsertQuery.exec")
        if self.record is not None and not result.rows and result.last_insert_id is not None:
            pk = self.descriptor.primary_key
            if pk is not None and unwrap_null(self.descriptor.get_value(self.record, pk)) is None:
                map_to_struct({pk.column: result.last_insert_id}, self.record)
        return result


class UpdateQuery(_WriteQuery):
    """UPDATE builder; SET markers come first, WHERE markers are numbered after them."""

    assignments: dict[str, Any] = Field(default_factory=dict)

    def model(self, model: Any) -> UpdateQuery:
        """Target a model; an instance contributes its writable columns and a `pk = ?` condition."""
        super().model(model)
        if self.record is not None:
            for f, value in self.descriptor.iter_values(self.record, writable_only=True):
                if not f.is_primary_key:
                    self.assignments[f.column] = value
        return self

    def set(self, column: str, value: Any) -> UpdateQuery:
        """Assign a column; read-only and scan-only columns are skipped."""
        if not column:
            return self
        if self.descriptor is not None and not self.descriptor.is_column_writable(column):
            logger.debug("Skipping non-writable column %s.%s", self.table_name, column)
            return self
        self.assignments[column] = value
        return self

    def set_map(self, values: Mapping[str, Any]) -> UpdateQuery:
        """Assign several columns; the primary key is skipped along with non-writable columns."""
        pk = self.descriptor.primary_key if self.descriptor is not None else None
        for column, value in (values or {}).items():
            if pk is not None and column.lower() == pk.column.lower():
                continue
            self.set(column, value)
        return self

    def build(self) -> tuple[str, tuple]:
        if not self.assignments:
            raise ConfigurationError("no values to update")
        parameters = ParameterSequence(self.dialect)
        assignments = ", ".join(f"{c} = {parameters.next_marker(v)}" for c, v in self.assignments.items())
        sql = f"UPDATE {self._target()} SET {assignments}"
        sql += self._where_sql(parameters)
        sql += self._returning_sql()
        return sql, tuple(parameters.args)

    @recover("UpdateQuery.exec")
    def exec(self, context=None):
        sql, args = self.build()
        return self._execute(sql, args, context, "UpdateQuery.exec")


class DeleteQuery(_WriteQuery):
    """DELETE builder."""

    def build(self) -> tuple[str, tuple]:
        parameters = ParameterSequence(self.dialect)
        sql = f"DELETE FROM {self._target()}" + self._where_sql(parameters) + self._returning_sql()
        return sql, tuple(parameters.args)

    @recover("DeleteQuery.exec")
    def exec(self, context=None):
        sql, args = self.build()
        return self._execute(sql, args, context, "DeleteQuery.exec")
