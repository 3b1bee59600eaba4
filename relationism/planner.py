"""Preload planner: choose between a JOIN and batched follow-up queries for each relation path."""

import enum
import logging
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict

from .errors import ConfigurationError, recover
from .metadata import Cardinality, RelationDescriptor, resolve_model
from .settings import DEFAULT_COLUMN_SUFFIX_MARGIN, EngineSettings

logger = logging.getLogger("relationism")

ALIAS_SEPARATOR = "__"


class Strategy(str, enum.Enum):
    JOIN = "join"
    SEPARATE_QUERY = "separate-query"
    DEFERRED_SEPARATE_QUERY = "deferred-separate-query"


class PreloadSpec(BaseModel):
    """A requested relation path, with the transforms to apply at its deepest level."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: str
    apply: tuple[Callable[..., Any], ...] = ()
    force: Optional[Literal["join", "separate"]] = None

    @property
    def segments(self) -> list[str]:
        return self.path.split(".")


class PreloadPlan(BaseModel):
    """The strategy chosen for one PreloadSpec."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    spec: PreloadSpec
    strategy: Strategy
    cardinality: Cardinality
    """Cardinality of the deepest segment."""
    heuristic: bool = False
    """True if any segment's cardinality was inferred from its type."""
    degraded: bool = False
    alias_chain: str
    alias_length: int
    head: Optional[str] = None
    """First segment of a split path."""
    head_strategy: Optional[Strategy] = None
    remainder: Optional[PreloadSpec] = None
    """Rest of a split path, loaded level by level after the head."""

    @property
    def path(self) -> str:
        return self.spec.path

    @property
    def segments(self) -> list[str]:
        return self.spec.segments

    @property
    def joined_segments(self) -> list[str]:
        """Segments folded into the main statement."""
        if self.strategy is Strategy.JOIN:
            return self.segments
        if self.head_strategy is Strategy.JOIN:
            return [self.head]
        return []


def alias_chain(path: str) -> str:
    """'Author.Company' -> 'author__company'"""
    return ALIAS_SEPARATOR.join(segment.lower() for segment in path.split("."))


def alias_length(path: str) -> int:
    return len(alias_chain(path))


class Planner:
    """Plans preloads against an identifier budget.

    A path is over budget when its alias chain plus the column suffix margin
    exceeds the identifier limit, since joined columns are aliased
    `<alias_chain>__<column>` and would be truncated by the engine.
    """

    def __init__(self, identifier_limit: int = 63, column_suffix_margin: int = DEFAULT_COLUMN_SUFFIX_MARGIN):
        self.identifier_limit = identifier_limit
        self.column_suffix_margin = column_suffix_margin

    @classmethod
    def from_settings(cls, settings: EngineSettings, dialect) -> "Planner":
        return cls(settings.resolve_identifier_limit(dialect), settings.column_suffix_margin)

    def exceeds_budget(self, path: str) -> bool:
        return alias_length(path) + self.column_suffix_margin > self.identifier_limit

    def walk(self, model: type, segments: list[str]) -> list[RelationDescriptor]:
        """Resolve each segment of a path to its relation descriptor."""
        relations = []
        for segment in segments:
            if not segment:
                raise ConfigurationError(f"empty segment in relation path `{'.'.join(segments)}`")
            relation = resolve_model(model).require_relation(segment)
            relations.append(relation)
            model = relation.target_model
        return relations

    @recover("Planner.plan")
    def plan(self, spec: PreloadSpec | str, model: type) -> PreloadPlan:
        """Choose a strategy for spec on model.

        Raises:
            ConfigurationError: If a segment is not a relation of the model it applies to.
        """
        if isinstance(spec, str):
            spec = PreloadSpec(path=spec)
        if model is None:
            raise ConfigurationError(f"a model is required to plan preload `{spec.path}`")
        segments = spec.segments
        relations = self.walk(model, segments)
        chain = alias_chain(spec.path)
        length = len(chain)
        heuristic = any(r.inferred for r in relations)
        if heuristic:
            inferred = [r.field_name for r in relations if r.inferred]
            logger.warning(
                "Preload '%s': cardinality of %s inferred from the field type (heuristic); "
                "declare relation:<cardinality> to make it explicit",
                spec.path, inferred,
            )
        common = dict(
            spec=spec,
            cardinality=relations[-1].cardinality,
            heuristic=heuristic,
            alias_chain=chain,
            alias_length=length,
        )

        if self.exceeds_budget(spec.path):
            if len(segments) > 1:
                head_strategy = self._strategy_for(relations[:1], spec.force)
                remainder = PreloadSpec(path=".".join(segments[1:]), apply=spec.apply, force=spec.force)
                logger.info(
                    "Preload '%s' creates alias chain '%s' (%d chars, limit %d with margin %d); "
                    "loading '%s' by %s, then '%s' with separate queries",
                    spec.path, chain, length, self.identifier_limit, self.column_suffix_margin,
                    segments[0], head_strategy.value, remainder.path,
                )
                return PreloadPlan(
                    strategy=Strategy.DEFERRED_SEPARATE_QUERY,
                    degraded=True,
                    head=segments[0],
                    head_strategy=head_strategy,
                    remainder=remainder,
                    **common,
                )
            logger.warning(
                "Single-level preload '%s' has a very long name (%d chars, limit %d with margin %d); "
                "loading it with a separate query",
                spec.path, length, self.identifier_limit, self.column_suffix_margin,
            )
            return PreloadPlan(strategy=Strategy.DEFERRED_SEPARATE_QUERY, degraded=True, **common)

        strategy = self._strategy_for(relations, spec.force)
        logger.debug("Preload '%s' (%s): %s", spec.path, relations[-1].cardinality.value, strategy.value)
        return PreloadPlan(strategy=strategy, **common)

    def _strategy_for(self, relations: list[RelationDescriptor], force: Optional[str]) -> Strategy:
        if force == "separate":
            return Strategy.SEPARATE_QUERY
        if force == "join":
            to_many = [r.field_name for r in relations if not r.cardinality.prefers_join]
            if to_many:
                logger.debug("Forcing JOIN through to-many relations %s; parent rows will repeat", to_many)
            return Strategy.JOIN
        if all(r.cardinality.prefers_join for r in relations):
            return Strategy.JOIN
        return Strategy.SEPARATE_QUERY
