"""
Search execution stage.

Runs every query of a plan against one search capability, then deduplicates,
filters, ranks and truncates the accumulated results. Provider errors are not
caught here; cross-provider failover happens in the registry layer.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import List, Set

import structlog

from research_engine.core.config import (
    DEFAULT_EXECUTOR_MAX_SOURCES,
    DEFAULT_EXECUTOR_MIN_SCORE,
)
from research_engine.models.search import SearchPlan, SearchQuery
from research_engine.models.sources import (
    SearchMetadata,
    SearchResult,
    Source,
    SourceCollection,
)
from research_engine.services.errors import SearchTimeoutError
from research_engine.services.interfaces import SearchProvider

logger = structlog.get_logger(__name__)

FETCHED_CONTENT_TEMPLATE = "Content fetched from source. Query: {query}"


@dataclass
class ExecutorConfig:
    max_sources: int = DEFAULT_EXECUTOR_MAX_SOURCES
    min_score: float = DEFAULT_EXECUTOR_MIN_SCORE


class SearchExecutor:
    """Turns a SearchPlan into a ranked, deduplicated list of Sources."""

    def __init__(self, provider: SearchProvider, config: ExecutorConfig | None = None):
        self.provider = provider
        self.config = config or ExecutorConfig()

    async def execute(self, plan: SearchPlan) -> List[Source]:
        return (await self.execute_collection(plan)).sources

    async def execute_collection(self, plan: SearchPlan) -> SourceCollection:
        started = time.monotonic()
        sources: List[Source] = []
        seen_urls: Set[str] = set()
        total_results = 0

        for query in plan.queries:
            results = await self._search_once(query, plan.timeout_secs)
            total_results += len(results)

            for result in results:
                # First occurrence wins, even when it is later filtered out
                if result.url in seen_urls:
                    continue
                seen_urls.add(result.url)

                if result.score < self.config.min_score:
                    continue

                content = result.snippet or FETCHED_CONTENT_TEMPLATE.format(query=query.text)
                sources.append(result.into_source(content))

        # list.sort is stable, so equal scores keep discovery order
        sources.sort(key=lambda s: s.relevance_score, reverse=True)
        limit = min(self.config.max_sources, plan.max_sources)
        ranked = sources[: max(0, limit)]

        metadata = SearchMetadata(
            queries_executed=len(plan.queries),
            providers_used=[self.provider.provider_id],
            total_results=total_results,
            fetch_duration_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info(
            "search executed",
            provider=self.provider.provider_id,
            queries=len(plan.queries),
            total_results=total_results,
            kept=len(ranked),
        )
        return SourceCollection(sources=ranked, metadata=metadata)

    async def _search_once(
        self, query: SearchQuery, timeout_secs: int
    ) -> List[SearchResult]:
        try:
            return await asyncio.wait_for(
                self.provider.search(query), timeout=timeout_secs
            )
        except asyncio.TimeoutError as exc:
            raise SearchTimeoutError(timeout_secs) from exc
