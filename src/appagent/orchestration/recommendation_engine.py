"""
appagent.orchestration.recommendation_engine - Pattern-Based Recommendations
==============================================================================

The Recommendation Engine turns prior successes into suggestions for a
workflow that is about to plan or validate. It is a pure function over the
candidate configuration and the Pattern Store's success records.

Recommendation Flow:

    partial config ──→ ┌──────────────────────────────────────┐
    {"framework": ..}  │ get_recommendations(type, config)     │
                       │                                       │
                       │ for record in successes_for(type):    │
                       │   score = similarity(config, record)  │
                       │   if score >= threshold: keep         │
                       │                                       │
                       │ + SuggestionSource outputs (optional) │
                       └──────────────────┬────────────────────┘
                                          │
                                          ▼
                       [Recommendation, ...]  (source order kept)

Similarity:
    |common keys| / max(|keys(a)|, |keys(b)|)

    Only top-level key names count; values are ignored. Both configurations
    empty score 1.0 and exactly one empty scores 0.0.

    {"framework": "express"} vs {"framework": "express", "db": "postgres"}
        → 1 / max(1, 2) = 0.5

Suggestion Sources:
    Extra ranked-suggestion providers (e.g. vector-search services over
    capabilities, patterns or policies) plug in as SuggestionSource objects.
    Their output is appended after the engine's own recommendations. A
    source that raises is logged and skipped.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

import structlog

from appagent.core.models import Recommendation, config_keys
from appagent.infrastructure.pattern_store import PatternStore


logger = structlog.get_logger()


DEFAULT_SIMILARITY_THRESHOLD = 0.5


# =============================================================================
# Similarity
# =============================================================================
def calculate_similarity(a: Any, b: Any) -> float:
    """Key-presence similarity of two configuration payloads.

    Args:
        a: Candidate configuration (mapping or pydantic model).
        b: Stored configuration (mapping or pydantic model).

    Returns:
        A score in [0, 1].

    Example:
        >>> calculate_similarity({"framework": "express"}, {"framework": "x", "db": "y"})
        0.5
        >>> calculate_similarity({}, {})
        1.0
    """
    keys_a = config_keys(a)
    keys_b = config_keys(b)

    if not keys_a and not keys_b:
        return 1.0
    if not keys_a or not keys_b:
        return 0.0

    return len(keys_a & keys_b) / max(len(keys_a), len(keys_b))


def rank(recommendations: Iterable[Recommendation]) -> list[Recommendation]:
    """Sort recommendations by descending confidence.

    Recommendations come back in source order; callers that want the best
    first opt in with this helper. The sort is stable, so equal scores keep
    their source order.
    """
    return sorted(recommendations, key=lambda r: r.confidence, reverse=True)


# =============================================================================
# Abstract Base Class: SuggestionSource
# =============================================================================
class SuggestionSource(ABC):
    """An additional source of ranked suggestions.

    Example:
        >>> class StaticSource(SuggestionSource):
        ...     @property
        ...     def name(self) -> str:
        ...         return "StaticSource"
        ...
        ...     async def suggest(self, resource_type, partial_config):
        ...         return [Recommendation(suggestion="Use a PDB", confidence=0.7)]
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in logs."""

    @abstractmethod
    async def suggest(
        self,
        resource_type: str,
        partial_config: Any,
    ) -> list[Recommendation]:
        """Suggestions for a candidate configuration of the given type."""


# =============================================================================
# Recommendation Engine
# =============================================================================
class RecommendationEngine:
    """Scores prior successes against a candidate configuration.

    Attributes:
        pattern_store: Where success records are read from.
        similarity_threshold: Minimum score for a record to qualify.

    Example:
        >>> engine = RecommendationEngine(store)
        >>> await store.record_success("web", {"framework": "express", "db": "postgres"})
        >>> recs = await engine.get_recommendations("web", {"framework": "express"})
        >>> recs[0].confidence
        0.5
    """

    def __init__(
        self,
        pattern_store: PatternStore,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        extra_sources: Sequence[SuggestionSource] = (),
    ) -> None:
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValueError(
                f"similarity_threshold must be within [0, 1], got {similarity_threshold}"
            )

        self._pattern_store = pattern_store
        self._similarity_threshold = similarity_threshold
        self._sources: list[SuggestionSource] = list(extra_sources)
        self._logger = logger.bind(component="recommendation_engine")

    @property
    def pattern_store(self) -> PatternStore:
        return self._pattern_store

    @property
    def similarity_threshold(self) -> float:
        return self._similarity_threshold

    @property
    def sources(self) -> list[SuggestionSource]:
        return list(self._sources)

    def register_source(self, source: SuggestionSource) -> None:
        """Add a suggestion source; its output follows the engine's own."""
        self._sources.append(source)
        self._logger.info("suggestion_source_registered", source=source.name)

    def calculate_similarity(self, a: Any, b: Any) -> float:
        """See the module-level calculate_similarity()."""
        return calculate_similarity(a, b)

    async def get_recommendations(
        self,
        resource_type: str,
        partial_config: Any,
    ) -> list[Recommendation]:
        """Recommendations for a candidate configuration.

        One Recommendation per success record of ``resource_type`` whose
        similarity to ``partial_config`` reaches the threshold, in the order
        the records were appended. Never raises for unknown types.

        Args:
            resource_type: Pattern collection to search.
            partial_config: Candidate configuration.

        Returns:
            Qualifying recommendations followed by suggestion-source output.
        """
        records = await self._pattern_store.successes_for(resource_type)
        recommendations: list[Recommendation] = []

        for record in records:
            similarity = calculate_similarity(partial_config, record.config)
            if similarity >= self._similarity_threshold:
                recommendations.append(
                    Recommendation(
                        suggestion=(
                            f"Consider using configuration similar to successful {resource_type}"
                        ),
                        confidence=similarity,
                        based_on=[f"Success pattern from {record.recorded_at.isoformat()}"],
                    )
                )

        for source in self._sources:
            try:
                recommendations.extend(await source.suggest(resource_type, partial_config))
            except Exception as exc:
                self._logger.warning(
                    "suggestion_source_failed",
                    source=source.name,
                    resource_type=resource_type,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )

        self._logger.debug(
            "recommendations_computed",
            resource_type=resource_type,
            candidates=len(records),
            returned=len(recommendations),
        )
        return recommendations
