"""Batch relation loader: resolve a relation for many parents with one `IN` query per level."""

import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from .context import Context, check
from .errors import ConfigurationError, PreloadError, QueryExecutionError, ScanError, recover
from .metadata import RelationDescriptor, resolve_model
from .parameters import In
from .planner import PreloadPlan, Strategy, alias_chain
from .scanner import row_to_instance
from .settings import EngineSettings
from .types import unwrap_null
from .utils.normalize_key import normalize_key

logger = logging.getLogger("relationism")

OWNER_KEY_COLUMN = "relationism_owner_key"
"""Extra column carrying the parent key when loading through a junction table."""


def _row_value(row: Mapping[str, Any], column: str) -> Any:
    if column in row:
        return row[column]
    lowered = column.lower()
    for key, value in row.items():
        if key.lower() == lowered:
            return value
    raise KeyError(column)


def _is_loaded(value: Any, many: bool) -> bool:
    if value is None:
        return False
    return len(value) > 0 if many else True


class BatchLoader:
    """Loads one relation level for a set of parent records.

    Many-valued relations are replaced on every parent, so loading twice gives
    the same result. Single-valued relations are only set where still empty.
    """

    def __init__(self, database, settings: Optional[EngineSettings] = None):
        self.database = database
        self.settings = settings or database.settings

    @recover("BatchLoader.load_level")
    def load_level(
        self,
        parents: Iterable[Any],
        relation: RelationDescriptor,
        apply: Sequence[Callable] = (),
        context: Optional[Context] = None,
        assume_loaded: bool = False,
        path: Optional[str] = None,
    ) -> list:
        """Load relation for every parent and return the child records.

        Args:
            parents: Records of the relation's owning model; None entries are skipped.
            relation: Descriptor of the relation field.
            apply: Functions receiving the batch SelectQuery, e.g. to add conditions.
            context: Cancellation token checked before the query runs.
            assume_loaded: Reuse the values already on the parents (joined earlier in the call).
            path: Relation path used in diagnostics.

        Returns:
            The children, to be used as parents of the next level.
        """
        path = path or relation.field_name
        parents = [p for p in parents if p is not None]
        if not parents:
            return []
        owner = resolve_model(type(parents[0]))
        local_field = owner.find_field(relation.local_key)
        if local_field is None:
            raise ConfigurationError(
                f"{owner.model.__name__}.{relation.field_name}: local key `{relation.local_key}` is not a column"
            )

        keyed: list[tuple[Any, Any]] = []
        candidates: dict[Any, Any] = {}
        for parent in parents:
            raw = unwrap_null(owner.get_value(parent, local_field))
            key = normalize_key(raw)
            if key is None:
                continue
            keyed.append((parent, key))
            candidates.setdefault(key, raw)
        if not candidates:
            logger.debug("Preload '%s': no parent keys, nothing to load", path)
            return []

        if assume_loaded or all(_is_loaded(getattr(p, relation.field_name, None), relation.many) for p, _ in keyed):
            logger.debug("Preload '%s': already loaded on %d records, reusing it", path, len(keyed))
            return self._loaded_children(parents, relation)

        check(context, f"loading '{path}'")
        query = self._batch_query(relation, list(candidates.values()), apply)
        try:
            rows = query.rows(context=context)
        except QueryExecutionError as error:
            return self._failed(path, error)

        key_column = OWNER_KEY_COLUMN if relation.junction_table else relation.foreign_key
        target = resolve_model(relation.target_model)
        grouped: dict[Any, list] = {}
        children = []
        for row in rows:
            try:
                key = normalize_key(_row_value(row, key_column))
            except KeyError as error:
                raise ConfigurationError(
                    f"batch query for '{path}' did not return key column `{key_column}`"
                ) from error
            try:
                child = row_to_instance(target, row)
            except ScanError as error:
                self._failed(path, error)
                continue
            grouped.setdefault(key, []).append(child)
            children.append(child)

        for parent, key in keyed:
            try:
                self._associate(parent, relation, grouped.get(key, []))
            except (ValueError, TypeError, AttributeError) as error:
                self._failed(f"{path} on {type(parent).__name__}", error)
        logger.debug("Preload '%s': %d children for %d keys", path, len(children), len(candidates))
        return children

    def load_path(
        self,
        parents: Iterable[Any],
        model: type,
        segments: Sequence[str],
        apply: Sequence[Callable] = (),
        context: Optional[Context] = None,
        joined: Iterable[str] = (),
    ) -> list:
        """Load a dotted path level by level; apply runs only at the deepest level.

        joined holds the alias chains already populated by a join in the same call.
        """
        joined = set(joined)
        records = list(parents)
        for depth, segment in enumerate(segments):
            path = ".".join(segments[:depth + 1])
            check(context, f"loading '{path}'")
            relation = resolve_model(model).require_relation(segment)
            deepest = depth == len(segments) - 1
            records = self.load_level(
                records,
                relation,
                apply if deepest else (),
                context=context,
                assume_loaded=alias_chain(path) in joined,
                path=path,
            )
            if not records:
                break
            model = relation.target_model
        return records

    def _batch_query(self, relation: RelationDescriptor, keys: list, apply: Sequence[Callable]):
        target = resolve_model(relation.target_model)
        alias = relation.field_name.lower()
        query = self.database.select(relation.target_model).table(target.table_name, alias=alias)
        if relation.junction_table:
            link = self.database.dialect.table_reference(relation.junction_table)
            owner_column = f"{link}.{relation.junction_owner_column}"
            query.column_expr(f"{alias}.*").column_expr(f"{owner_column} AS {OWNER_KEY_COLUMN}")
            query.join(f"{link} ON {link}.{relation.junction_target_column} = {alias}.{relation.foreign_key}")
            query.where(f"{owner_column} IN (?)", In(keys))
        else:
            query.where(f"{alias}.{relation.foreign_key} IN (?)", In(keys))
        query.normalize_aliases = True
        for fn in apply:
            result = fn(query)
            if result is not None:
                query = result
        return query

    def _associate(self, parent: Any, relation: RelationDescriptor, children: list) -> None:
        if relation.many:
            setattr(parent, relation.field_name, list(children))
            return
        if getattr(parent, relation.field_name, None) is not None:
            return
        setattr(parent, relation.field_name, children[0] if children else None)

    def _loaded_children(self, parents: list, relation: RelationDescriptor) -> list:
        children = []
        for parent in parents:
            value = getattr(parent, relation.field_name, None)
            if value is None:
                continue
            if relation.many:
                children.extend(c for c in value if c is not None)
            else:
                children.append(value)
        return children

    def _failed(self, path: str, error: Exception) -> list:
        if self.settings.strict_preloads:
            raise PreloadError(f"loading '{path}' failed: {error}", path=path) from error
        logger.warning("Preload '%s' failed, leaving it unset: %s", path, error)
        return []


class PreloadExecutor:
    """Runs the non-join preload plans of a query once its rows are scanned."""

    def __init__(self, loader: BatchLoader):
        self.loader = loader

    def run(
        self,
        records: list,
        model: type,
        plans: Iterable[PreloadPlan],
        joined: Iterable[str] = (),
        context: Optional[Context] = None,
    ) -> None:
        joined = set(joined)
        for plan in plans:
            if plan.strategy is Strategy.JOIN:
                continue
            if plan.degraded and plan.remainder is not None:
                logger.debug("Preload '%s': head '%s' then '%s'", plan.path, plan.head, plan.remainder.path)
            self.loader.load_path(records, model, plan.segments, plan.spec.apply, context=context, joined=joined)
