"""
Search provider registry and ordered failover.

``SearchProviderRegistry`` maps provider ids to configured providers.
``FallbackSearchProvider`` walks an ordered list of providers until one
succeeds, stopping early on a non-retryable error.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from research_engine.core.config import SearchSettings
from research_engine.models.search import SearchQuery
from research_engine.models.sources import SearchResult
from research_engine.services.errors import ProviderUnavailableError, is_retryable
from research_engine.services.interfaces import SearchProvider
from research_engine.services.search_apis import (
    ExaSearchProvider,
    SearxngSearchProvider,
    TavilySearchProvider,
)

logger = structlog.get_logger(__name__)


class FallbackSearchProvider(SearchProvider):
    """Tries each provider in order; returns the first success.

    When every provider fails, the last error is raised. A non-retryable error
    stops the walk immediately.
    """

    provider_id = "fallback"

    def __init__(self, providers: Sequence[SearchProvider]):
        self.providers: List[SearchProvider] = list(providers)

    def supports_recency_filter(self) -> bool:
        return bool(self.providers) and self.providers[0].supports_recency_filter()

    def supports_domain_filter(self) -> bool:
        return bool(self.providers) and self.providers[0].supports_domain_filter()

    async def search(self, query: SearchQuery) -> List[SearchResult]:
        if not self.providers:
            raise ProviderUnavailableError("none")

        last_error: Optional[Exception] = None
        for index, provider in enumerate(self.providers):
            try:
                results = await provider.search(query)
            except Exception as exc:
                logger.warning(
                    "search provider failed",
                    provider=provider.provider_id,
                    attempt=index + 1,
                    error=str(exc),
                    retryable=is_retryable(exc),
                )
                if not is_retryable(exc):
                    raise
                last_error = exc
                continue

            if index:
                logger.info(
                    "search succeeded on fallback provider",
                    provider=provider.provider_id,
                    attempt=index + 1,
                )
            return results

        if last_error is not None:
            raise last_error
        raise ProviderUnavailableError("all")


class SearchProviderRegistry:
    """Provider id -> provider, with a default and an optional fallback.

    Writes are serialized and publish a new mapping; reads never lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._providers: Dict[str, SearchProvider] = {}
        self._default: Optional[str] = None
        self._fallback: Optional[str] = None

    def register(self, provider: SearchProvider, provider_id: Optional[str] = None) -> None:
        """Add or replace a provider. The first one registered becomes the default."""
        key = provider_id or provider.provider_id
        with self._lock:
            self._providers = {**self._providers, key: provider}
            if self._default is None:
                self._default = key
        logger.info("registered search provider", provider=key)

    def set_default(self, provider_id: str) -> None:
        with self._lock:
            self._default = provider_id

    def set_fallback(self, provider_id: Optional[str]) -> None:
        with self._lock:
            self._fallback = provider_id

    def get(self, provider_id: str) -> Optional[SearchProvider]:
        return self._providers.get(provider_id)

    def default(self) -> Optional[SearchProvider]:
        return self._providers.get(self._default) if self._default else None

    def fallback(self) -> Optional[SearchProvider]:
        return self._providers.get(self._fallback) if self._fallback else None

    @property
    def default_provider_id(self) -> Optional[str]:
        return self._default

    @property
    def fallback_provider_id(self) -> Optional[str]:
        return self._fallback

    def list(self) -> List[str]:
        return sorted(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def is_empty(self) -> bool:
        return not self._providers

    def providers_in_order(self, provider_ids: Iterable[str]) -> List[SearchProvider]:
        """Resolve ids in the given order, skipping unknown and repeated ids."""
        providers = self._providers
        seen = set()
        ordered: List[SearchProvider] = []
        for pid in provider_ids:
            if pid in seen or pid not in providers:
                continue
            seen.add(pid)
            ordered.append(providers[pid])
        return ordered

    def chain(self, provider_ids: Optional[Iterable[str]] = None) -> FallbackSearchProvider:
        """Failover chain for ``provider_ids``.

        Without ids the chain is the default provider followed by the fallback.
        """
        if provider_ids is None:
            provider_ids = [p for p in (self._default, self._fallback) if p]
        return FallbackSearchProvider(self.providers_in_order(provider_ids))

    @classmethod
    def from_settings(cls, settings: SearchSettings) -> "SearchProviderRegistry":
        """Register every provider with credentials, Tavily first."""
        registry = cls()
        common = {"timeout_secs": settings.timeout_secs, "max_results": settings.max_results}

        if settings.tavily_api_key:
            registry.register(TavilySearchProvider(settings.tavily_api_key, **common))
        if settings.exa_api_key:
            registry.register(ExaSearchProvider(settings.exa_api_key, **common))
        if settings.searxng_url:
            registry.register(SearxngSearchProvider(settings.searxng_url, **common))

        ids = registry.list()
        if len(ids) > 1:
            # Second registered provider backs up the first
            order = [p for p in ("tavily", "exa", "searxng") if p in ids]
            registry.set_fallback(order[1])
        return registry
