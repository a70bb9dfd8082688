"""Search execution: dedup, score filtering, ranking and truncation."""

import asyncio

import pytest

from research_engine.models.search import SearchPlan, SearchQuery
from research_engine.models.sources import SearchResult
from research_engine.services.errors import SearchRateLimitedError, SearchTimeoutError
from research_engine.services.search_executor import (
    FETCHED_CONTENT_TEMPLATE,
    ExecutorConfig,
    SearchExecutor,
)
from research_engine.testing import FaultInjectingSearchProvider, StaticSearchProvider


def _plan(*texts, max_sources=10, timeout_secs=30):
    return SearchPlan(
        queries=[SearchQuery(text=t) for t in texts],
        providers=["mock"],
        max_sources=max_sources,
        timeout_secs=timeout_secs,
    )


class _SlowProvider(StaticSearchProvider):
    async def search(self, query):
        await asyncio.sleep(5)
        return []


class TestSearchExecutor:
    @pytest.mark.asyncio
    async def test_sources_ranked_by_score(self, search_provider):
        sources = await SearchExecutor(search_provider).execute(_plan("What is Rust?"))
        assert [s.url for s in sources] == [
            "https://rust-lang.org",
            "https://doc.rust-lang.org/book",
            "https://crates.io",
        ]
        assert sources[0].content == "Rust home"
        assert sources[0].metadata.domain == "rust-lang.org"

    @pytest.mark.asyncio
    async def test_duplicate_urls_across_queries_are_dropped(self, search_provider):
        sources = await SearchExecutor(search_provider).execute(_plan("rust", "rust lang"))
        urls = [s.url for s in sources]
        assert len(urls) == len(set(urls)) == 3
        assert len(search_provider.queries) == 2

    @pytest.mark.asyncio
    async def test_min_score_filter(self, search_provider):
        executor = SearchExecutor(search_provider, ExecutorConfig(min_score=0.7))
        sources = await executor.execute(_plan("rust"))
        assert all(s.relevance_score >= 0.7 for s in sources)
        assert len(sources) == 2

    @pytest.mark.asyncio
    async def test_dedup_happens_before_score_filter(self):
        # The low-scoring first sighting claims the URL; the later copy is dropped
        provider = StaticSearchProvider(
            "mock",
            [
                SearchResult(url="https://a.com", title="low", score=0.1),
                SearchResult(url="https://a.com", title="high", score=0.9),
                SearchResult(url="https://b.com", title="b", score=0.8),
            ],
        )
        executor = SearchExecutor(provider, ExecutorConfig(min_score=0.5))
        sources = await executor.execute(_plan("q"))
        assert [s.url for s in sources] == ["https://b.com"]

    @pytest.mark.asyncio
    async def test_truncates_to_smaller_limit(self, search_provider):
        executor = SearchExecutor(search_provider, ExecutorConfig(max_sources=2))
        assert len(await executor.execute(_plan("q"))) == 2

        executor = SearchExecutor(search_provider, ExecutorConfig(max_sources=10))
        assert len(await executor.execute(_plan("q", max_sources=1))) == 1

    @pytest.mark.asyncio
    async def test_equal_scores_keep_discovery_order(self):
        provider = StaticSearchProvider(
            "mock",
            [
                SearchResult(url=f"https://site{i}.com", title=str(i), score=0.5)
                for i in range(4)
            ],
        )
        sources = await SearchExecutor(provider).execute(_plan("q"))
        assert [s.title for s in sources] == ["0", "1", "2", "3"]

    @pytest.mark.asyncio
    async def test_empty_results(self):
        sources = await SearchExecutor(StaticSearchProvider("mock", [])).execute(_plan("q"))
        assert sources == []

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, search_provider):
        flaky = FaultInjectingSearchProvider(search_provider).fail_after(
            0, SearchRateLimitedError("mock")
        )
        with pytest.raises(SearchRateLimitedError):
            await SearchExecutor(flaky).execute(_plan("q"))

    @pytest.mark.asyncio
    async def test_timeout_becomes_search_timeout(self):
        executor = SearchExecutor(_SlowProvider("slow"))
        plan = _plan("q")
        plan.timeout_secs = 0.01
        with pytest.raises(SearchTimeoutError):
            await executor.execute(plan)

    @pytest.mark.asyncio
    async def test_collection_metadata(self, search_provider):
        collection = await SearchExecutor(search_provider).execute_collection(_plan("a", "b"))
        assert collection.metadata.queries_executed == 2
        assert collection.metadata.providers_used == ["mock"]
        assert collection.metadata.total_results == 6
        assert len(collection) == 3


@pytest.mark.asyncio
async def test_snippet_becomes_content_with_placeholder_when_empty():
    provider = StaticSearchProvider(
        "mock",
        [
            SearchResult(url="https://a.com", title="A", snippet="Evidence text", score=0.9),
            SearchResult(url="https://b.com", title="B", score=0.5),
        ],
    )
    sources = await SearchExecutor(provider).execute(_plan("rust"))
    assert [s.content for s in sources] == [
        "Evidence text",
        FETCHED_CONTENT_TEMPLATE.format(query="rust"),
    ]
