"""
Answer synthesis stage.

Caps the context handed to the model and short-circuits when there is nothing
to synthesize from. Provider errors propagate to the pipeline untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import structlog

from research_engine.core.config import DEFAULT_MAX_CONTEXT_SOURCES
from research_engine.models.answer import ResearchAnswer
from research_engine.models.sources import Source
from research_engine.services.interfaces import LlmProvider

logger = structlog.get_logger(__name__)

NO_SOURCES_REASON = "No sources were provided for analysis."


@dataclass
class SynthesizerConfig:
    max_context_sources: int = DEFAULT_MAX_CONTEXT_SOURCES


class AnswerSynthesizer:
    def __init__(self, provider: LlmProvider, config: SynthesizerConfig | None = None):
        self.provider = provider
        self.config = config or SynthesizerConfig()

    async def synthesize(self, query: str, sources: Sequence[Source]) -> ResearchAnswer:
        if not sources:
            logger.info("synthesis skipped: no sources", model=self.provider.model_id)
            return ResearchAnswer.insufficient(self.provider.model_id, NO_SOURCES_REASON)

        # Sources arrive ranked, so the head of the list is the best context
        context = list(sources)[: max(1, self.config.max_context_sources)]
        logger.info(
            "synthesizing answer",
            model=self.provider.model_id,
            sources=len(context),
            dropped=len(sources) - len(context),
        )
        return await self.provider.synthesize(query, context)
