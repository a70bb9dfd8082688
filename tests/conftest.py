"""Shared fixtures for the research engine test suite."""

from __future__ import annotations

from typing import List

import pytest

from research_engine.models.sources import SearchResult, Source
from research_engine.services.research_store import InMemoryResearchStore
from research_engine.testing import StaticSearchProvider, TemplateLlmProvider


@pytest.fixture
def sources() -> List[Source]:
    return [
        Source.new("https://example.com/a", "Source A", "Content about topic A", 0.9),
        Source.new("https://example.com/b", "Source B", "Content about topic B", 0.8),
        Source.new("https://example.com/c", "Source C", "Content about topic C", 0.7),
    ]


@pytest.fixture
def scored_results() -> List[SearchResult]:
    return [
        SearchResult(url="https://rust-lang.org", title="Rust", snippet="Rust home", score=0.9),
        SearchResult(url="https://doc.rust-lang.org/book", title="The Book", snippet="Book", score=0.8),
        SearchResult(url="https://crates.io", title="Crates", snippet="Registry", score=0.6),
    ]


@pytest.fixture
def store() -> InMemoryResearchStore:
    return InMemoryResearchStore()


@pytest.fixture
def search_provider(scored_results) -> StaticSearchProvider:
    return StaticSearchProvider("mock", scored_results)


@pytest.fixture
def llm_provider() -> TemplateLlmProvider:
    return TemplateLlmProvider("mock-model")
