import pytest

from research_engine.models.base import Confidence
from research_engine.models.sources import Source
from research_engine.services.answer_synthesizer import (
    NO_SOURCES_REASON,
    AnswerSynthesizer,
    SynthesizerConfig,
)
from research_engine.services.errors import ContentFilteredError
from research_engine.testing import FaultInjectingLlmProvider, TemplateLlmProvider


class _RecordingProvider(TemplateLlmProvider):
    def __init__(self):
        super().__init__("recording-model")
        self.seen = []

    async def synthesize(self, query, sources):
        self.seen.append(list(sources))
        return await super().synthesize(query, sources)


class TestAnswerSynthesizer:
    @pytest.mark.asyncio
    async def test_no_sources_never_calls_provider(self, llm_provider):
        counted = FaultInjectingLlmProvider(llm_provider)
        answer = await AnswerSynthesizer(counted).synthesize("What is Rust?", [])
        assert counted.call_count == 0
        assert answer.confidence == Confidence.INSUFFICIENT
        assert answer.limitations == [NO_SOURCES_REASON]
        assert answer.metadata.model == "mock-model"

    @pytest.mark.asyncio
    async def test_context_capped_to_best_sources(self):
        provider = _RecordingProvider()
        sources = [
            Source.new(f"https://s{i}.com", f"S{i}", "text", 1.0 - i / 10) for i in range(8)
        ]
        await AnswerSynthesizer(provider).synthesize("q", sources)
        assert [s.url for s in provider.seen[0]] == [f"https://s{i}.com" for i in range(5)]

    @pytest.mark.asyncio
    async def test_custom_context_size(self, sources):
        provider = _RecordingProvider()
        await AnswerSynthesizer(provider, SynthesizerConfig(max_context_sources=2)).synthesize(
            "q", sources
        )
        assert len(provider.seen[0]) == 2

    @pytest.mark.asyncio
    async def test_answer_passthrough(self, llm_provider, sources):
        answer = await AnswerSynthesizer(llm_provider).synthesize("What is Rust?", sources)
        assert answer.summary == "Based on 3 sources, here is the answer to: What is Rust?"
        assert set(answer.cited_source_ids()) <= {s.id for s in sources}

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self, llm_provider, sources):
        flaky = FaultInjectingLlmProvider(llm_provider).fail_after(0, ContentFilteredError("x"))
        with pytest.raises(ContentFilteredError):
            await AnswerSynthesizer(flaky).synthesize("q", sources)
