"""
Research Store Service
In-memory job and source storage shared by concurrently running pipelines
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

import structlog

from research_engine.models.research import ResearchJob
from research_engine.models.sources import Source
from research_engine.services.errors import JobNotFoundError, StoreConflictError
from research_engine.services.interfaces import Store

logger = structlog.get_logger(__name__)


class InMemoryResearchStore(Store):
    """Job + source storage keyed by job id.

    Writers serialize on an asyncio lock; readers take the current snapshot
    without locking. Records are copied on the way in and out so callers can
    never mutate persisted state behind the store's back.
    """

    def __init__(self):
        self._jobs: Dict[str, ResearchJob] = {}
        self._sources: Dict[str, List[Source]] = {}
        self._lock = asyncio.Lock()

    async def create_job(self, job: ResearchJob) -> None:
        async with self._lock:
            if job.id in self._jobs:
                raise StoreConflictError(f"job {job.id} already exists")
            self._jobs = {**self._jobs, job.id: job.model_copy(deep=True)}
        logger.debug("job created", job_id=job.id, status=job.status.value)

    async def get_job(self, job_id: str) -> Optional[ResearchJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def update_job(self, job: ResearchJob) -> None:
        async with self._lock:
            if job.id not in self._jobs:
                raise JobNotFoundError(job.id)
            self._jobs = {**self._jobs, job.id: job.model_copy(deep=True)}
        logger.debug("job updated", job_id=job.id, status=job.status.value)

    async def list_jobs(self, limit: int = 20, offset: int = 0) -> List[ResearchJob]:
        """Jobs ordered newest first."""
        ordered = sorted(
            self._jobs.values(), key=lambda j: j.created_at, reverse=True
        )
        window = ordered[max(0, offset): max(0, offset) + max(0, limit)]
        return [j.model_copy(deep=True) for j in window]

    async def store_sources(self, job_id: str, sources: Sequence[Source]) -> None:
        """Replace the job's source list wholesale."""
        async with self._lock:
            if job_id not in self._jobs:
                raise JobNotFoundError(job_id)
            # Source is frozen, so a shallow list copy is enough
            self._sources = {**self._sources, job_id: list(sources)}
        logger.debug("sources stored", job_id=job_id, source_count=len(sources))

    async def get_sources(self, job_id: str) -> List[Source]:
        if job_id not in self._jobs:
            raise JobNotFoundError(job_id)
        return list(self._sources.get(job_id, []))

    async def find_similar(
        self, embedding: Sequence[float], threshold: float
    ) -> Optional[str]:
        # Embedding-based duplicate detection is not implemented.
        return None

    def job_count(self) -> int:
        return len(self._jobs)

    def source_count(self) -> int:
        return sum(len(v) for v in self._sources.values())
