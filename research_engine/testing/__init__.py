"""Test doubles and fault injection for the research pipeline capabilities."""

from research_engine.testing.doubles import (
    StaticSearchProvider,
    TemplateLlmProvider,
    default_search_results,
)
from research_engine.testing.fault_injection import (
    FaultInjectingLlmProvider,
    FaultInjectingSearchProvider,
    FaultInjector,
)

__all__ = [
    "StaticSearchProvider",
    "TemplateLlmProvider",
    "default_search_results",
    "FaultInjectingLlmProvider",
    "FaultInjectingSearchProvider",
    "FaultInjector",
]
