"""
Search plan models: what to ask, which providers to ask, and the limits.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from research_engine.models.base import ContentType, Recency

DEFAULT_MAX_SOURCES = 10
DEFAULT_TIMEOUT_SECS = 30

# Provider identifiers are plain strings ("tavily", "exa", "searxng", ...)
ProviderId = str


class SearchFilters(BaseModel):
    """Optional filters. Providers ignore the ones they cannot honour."""

    recency: Optional[Recency] = None
    include_domains: Optional[List[str]] = None
    exclude_domains: Optional[List[str]] = None
    content_type: Optional[ContentType] = None

    def is_empty(self) -> bool:
        return (
            self.recency is None
            and not self.include_domains
            and not self.exclude_domains
            and self.content_type is None
        )


class SearchQuery(BaseModel):
    text: str
    filters: SearchFilters = Field(default_factory=SearchFilters)


class SearchPlan(BaseModel):
    queries: List[SearchQuery]
    providers: List[ProviderId] = Field(default_factory=list)
    max_sources: int = DEFAULT_MAX_SOURCES
    timeout_secs: int = DEFAULT_TIMEOUT_SECS
