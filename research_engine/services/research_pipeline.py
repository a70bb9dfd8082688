"""
Research pipeline orchestrator.

Drives one job through Plan -> Search -> Synthesize. Every status transition is
persisted before the next stage starts, so the store always holds the last
stage the job actually reached. Stage failures mark the job failed (persisted)
and surface as PipelineError subclasses; store failures propagate as-is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

import structlog

from research_engine.core.config import PipelineSettings
from research_engine.logging_config import bind_job_context, clear_job_context
from research_engine.models.answer import ResearchAnswer
from research_engine.models.base import JobStatus
from research_engine.models.research import ResearchJob
from research_engine.models.search import SearchPlan
from research_engine.models.sources import Source
from research_engine.services.answer_synthesizer import AnswerSynthesizer, SynthesizerConfig
from research_engine.services.errors import (
    LlmError,
    NoSourcesError,
    PipelineStoreError,
    PlanningError,
    QueryError,
    SearchError,
    SearchStageError,
    StoreError,
    SynthesisStageError,
)
from research_engine.services.interfaces import LlmProvider, SearchProvider, Store
from research_engine.services.llm_registry import LlmRegistry
from research_engine.services.planner import PlannerConfig, SearchPlanner
from research_engine.services.search_executor import ExecutorConfig, SearchExecutor
from research_engine.services.search_registry import SearchProviderRegistry

logger = structlog.get_logger(__name__)

NO_SOURCES_MESSAGE = "No sources found for query"


@dataclass
class PipelineConfig:
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    synthesizer: SynthesizerConfig = field(default_factory=SynthesizerConfig)

    @classmethod
    def from_settings(cls, settings: PipelineSettings) -> "PipelineConfig":
        return cls(
            planner=PlannerConfig(
                max_queries=settings.max_queries,
                default_providers=list(settings.default_providers),
                max_sources=settings.max_sources,
            ),
            executor=ExecutorConfig(
                max_sources=settings.max_sources, min_score=settings.min_score
            ),
            synthesizer=SynthesizerConfig(
                max_context_sources=settings.max_context_sources
            ),
        )


@dataclass
class PipelineResult:
    job: ResearchJob
    sources: List[Source]
    answer: ResearchAnswer


class ResearchPipeline:
    """Sequential Plan -> Search -> Synthesize over shared providers and store.

    ``search`` is either one SearchProvider, used for every plan, or a
    SearchProviderRegistry, in which case each plan's provider list is
    resolved into an ordered failover chain.
    """

    def __init__(
        self,
        store: Store,
        search: Union[SearchProvider, SearchProviderRegistry],
        llm: LlmProvider,
        config: Optional[PipelineConfig] = None,
    ):
        self.store = store
        self.search = search
        self.llm = llm
        self.config = config or PipelineConfig()
        self.planner = SearchPlanner(self.config.planner)
        self.synthesizer = AnswerSynthesizer(llm, self.config.synthesizer)

    @classmethod
    def from_registries(
        cls,
        store: Store,
        search_registry: SearchProviderRegistry,
        llm_registry: LlmRegistry,
        config: Optional[PipelineConfig] = None,
        model_id: Optional[str] = None,
    ) -> "ResearchPipeline":
        return cls(store, search_registry, llm_registry.as_provider(model_id), config)

    async def submit(self, query: str) -> PipelineResult:
        """Create and persist a pending job for ``query``, then run it."""
        job = ResearchJob.new(query)
        await self._persist(self.store.create_job, job)
        return await self.run(job)

    async def run(self, job: ResearchJob) -> PipelineResult:
        """Run an already persisted, pending job to completion or failure."""
        bind_job_context(job_id=job.id)
        try:
            return await self._run(job)
        finally:
            clear_job_context()

    async def _run(self, job: ResearchJob) -> PipelineResult:
        logger.info("pipeline started", query=job.query)

        # Plan
        await self._advance(job, JobStatus.PLANNING)
        try:
            plan = self.planner.plan(job.query, job.intent)
        except QueryError as exc:
            await self._fail(job, str(exc))
            raise PlanningError(str(exc)) from exc
        except Exception as exc:
            await self._fail_unexpected(job, exc)
            raise PlanningError(str(exc)) from exc

        # Search
        await self._advance(job, JobStatus.SEARCHING)
        executor = SearchExecutor(self._search_provider_for(plan), self.config.executor)
        try:
            sources = await executor.execute(plan)
        except SearchError as exc:
            await self._fail(job, str(exc))
            raise SearchStageError(str(exc)) from exc
        except Exception as exc:
            await self._fail_unexpected(job, exc)
            raise SearchStageError(str(exc)) from exc

        if not sources:
            await self._fail(job, NO_SOURCES_MESSAGE)
            raise NoSourcesError()

        await self._persist(self.store.store_sources, job.id, sources)

        # Synthesize
        await self._advance(job, JobStatus.SYNTHESIZING)
        try:
            answer = await self.synthesizer.synthesize(job.query, sources)
        except LlmError as exc:
            await self._fail(job, str(exc))
            raise SynthesisStageError(str(exc)) from exc
        except Exception as exc:
            await self._fail_unexpected(job, exc)
            raise SynthesisStageError(str(exc)) from exc

        await self._advance(job, JobStatus.COMPLETED)
        logger.info(
            "pipeline completed",
            sources=len(sources),
            citations=len(answer.citations),
            confidence=answer.confidence.value,
        )
        return PipelineResult(job=job, sources=sources, answer=answer)

    def _search_provider_for(self, plan: SearchPlan) -> SearchProvider:
        if isinstance(self.search, SearchProviderRegistry):
            # Plan order first, then the registry's own default and fallback
            registry = self.search
            ids = [*plan.providers, registry.default_provider_id, registry.fallback_provider_id]
            return registry.chain([pid for pid in ids if pid])
        return self.search

    async def _advance(self, job: ResearchJob, status: JobStatus) -> None:
        job.transition_to(status)
        bind_job_context(stage=status.value)
        await self._persist(self.store.update_job, job)

    async def _fail(self, job: ResearchJob, message: str) -> None:
        job.fail(message)
        bind_job_context(stage=JobStatus.FAILED.value)
        logger.warning("pipeline failed", error=message)
        # A store error here means the failure itself could not be recorded
        await self._persist(self.store.update_job, job)

    async def _fail_unexpected(self, job: ResearchJob, exc: Exception) -> None:
        logger.exception("unexpected stage error", error_type=type(exc).__name__)
        await self._fail(job, str(exc) or type(exc).__name__)

    @staticmethod
    async def _persist(operation, *args) -> None:
        try:
            await operation(*args)
        except StoreError as exc:
            logger.error("store operation failed", operation=operation.__name__, error=str(exc))
            raise PipelineStoreError(exc) from exc
