"""
Capability interfaces consumed by the pipeline.

One abstract class per capability; each vendor gets one concrete subclass that
is registered at startup. The pipeline only ever talks to these contracts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from research_engine.models.answer import ResearchAnswer
from research_engine.models.research import ResearchJob
from research_engine.models.search import SearchQuery
from research_engine.models.sources import SearchResult, Source


class SearchProvider(ABC):
    """Web search capability.

    Filters a provider cannot honour must be ignored, never rejected. The
    capability flags are advisory only.
    """

    @abstractmethod
    async def search(self, query: SearchQuery) -> List[SearchResult]:
        """Run one query; raise a SearchError subclass on failure."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        ...

    def supports_recency_filter(self) -> bool:
        return False

    def supports_domain_filter(self) -> bool:
        return False


class LlmProvider(ABC):
    """Answer synthesis capability backed by one model."""

    @abstractmethod
    async def synthesize(self, query: str, sources: Sequence[Source]) -> ResearchAnswer:
        """Produce a cited answer; raise an LlmError subclass on failure."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        ...

    @property
    def provider_name(self) -> str:
        return "unknown"

    def max_context_tokens(self) -> int:
        return 128_000

    def supports_streaming(self) -> bool:
        return False


class Store(ABC):
    """Persistence contract for jobs and their sources.

    ``create_job`` raises StoreConflictError on a duplicate id; ``update_job``
    raises JobNotFoundError for unknown ids.
    """

    @abstractmethod
    async def create_job(self, job: ResearchJob) -> None:
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[ResearchJob]:
        ...

    @abstractmethod
    async def update_job(self, job: ResearchJob) -> None:
        ...

    @abstractmethod
    async def list_jobs(self, limit: int = 20, offset: int = 0) -> List[ResearchJob]:
        ...

    @abstractmethod
    async def store_sources(self, job_id: str, sources: Sequence[Source]) -> None:
        ...

    @abstractmethod
    async def get_sources(self, job_id: str) -> List[Source]:
        ...

    @abstractmethod
    async def find_similar(
        self, embedding: Sequence[float], threshold: float
    ) -> Optional[str]:
        """Return the id of a near-duplicate job, or None."""
