import pytest

from research_engine.models.search import SearchQuery
from research_engine.services.errors import LlmTimeoutError, SearchNetworkError
from research_engine.testing import (
    FaultInjectingLlmProvider,
    FaultInjectingSearchProvider,
    FaultInjector,
    StaticSearchProvider,
    TemplateLlmProvider,
)


def test_injector_counts_and_fails_after_threshold():
    injector = FaultInjector()
    injector.arm(2, RuntimeError("boom"))
    injector.record_call()
    injector.record_call()
    with pytest.raises(RuntimeError):
        injector.record_call()
    assert injector.call_count == 3

    injector.disarm()
    injector.record_call()
    injector.reset()
    assert injector.call_count == 0


@pytest.mark.asyncio
async def test_search_wrapper_delegates_until_armed():
    provider = FaultInjectingSearchProvider(StaticSearchProvider("mock")).fail_after(
        1, SearchNetworkError("reset")
    )
    assert provider.provider_id == "mock"
    assert provider.supports_recency_filter()
    assert len(await provider.search(SearchQuery(text="q"))) == 3
    with pytest.raises(SearchNetworkError):
        await provider.search(SearchQuery(text="q"))
    assert provider.call_count == 2


@pytest.mark.asyncio
async def test_llm_wrapper(sources):
    provider = FaultInjectingLlmProvider(TemplateLlmProvider("m")).fail_after(0, LlmTimeoutError(1))
    assert provider.model_id == "m"
    assert provider.provider_name == "template"
    with pytest.raises(LlmTimeoutError):
        await provider.synthesize("q", sources)
    provider.injector.disarm()
    answer = await provider.synthesize("q", sources)
    assert len(answer.citations) == 3
    assert provider.call_count == 2
