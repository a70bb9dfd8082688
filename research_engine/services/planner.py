"""
Query planning stage: turns a job's question into a SearchPlan.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from research_engine.core.config import (
    DEFAULT_PLANNER_MAX_QUERIES,
    DEFAULT_PLANNER_PROVIDERS,
    DEFAULT_SEARCH_TIMEOUT_SECS,
    DEFAULT_EXECUTOR_MAX_SOURCES,
)
from research_engine.models.base import (
    ContentType,
    QuestionType,
    Recency,
    TimeConstraintKind,
)
from research_engine.models.research import QueryIntent, validate_query
from research_engine.models.search import SearchFilters, SearchPlan, SearchQuery


@dataclass
class PlannerConfig:
    max_queries: int = DEFAULT_PLANNER_MAX_QUERIES
    default_providers: List[str] = field(
        default_factory=lambda: list(DEFAULT_PLANNER_PROVIDERS)
    )
    max_sources: int = DEFAULT_EXECUTOR_MAX_SOURCES
    timeout_secs: int = DEFAULT_SEARCH_TIMEOUT_SECS


def filters_for_intent(intent: Optional[QueryIntent]) -> SearchFilters:
    """Derive provider filters from a parsed intent (empty when unknown)."""
    if intent is None:
        return SearchFilters()

    recency = None
    if intent.time_constraint and intent.time_constraint.kind == TimeConstraintKind.RECENT:
        recency = Recency.WEEK

    content_type = None
    if intent.question_type == QuestionType.CURRENT_EVENT:
        content_type = ContentType.NEWS
        recency = recency or Recency.WEEK

    return SearchFilters(recency=recency, content_type=content_type)


class SearchPlanner:
    def __init__(self, config: PlannerConfig | None = None):
        self.config = config or PlannerConfig()

    def plan(self, query: str, intent: Optional[QueryIntent] = None) -> SearchPlan:
        """Single query built from the question text, sent to the default providers."""
        text = validate_query(query)
        queries = [SearchQuery(text=text, filters=filters_for_intent(intent))]
        return SearchPlan(
            queries=queries[: max(1, self.config.max_queries)],
            providers=list(self.config.default_providers),
            max_sources=self.config.max_sources,
            timeout_secs=self.config.timeout_secs,
        )
