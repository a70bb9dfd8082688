"""
Search API implementations for the research engine.

Each provider wraps one vendor's HTTP API behind the SearchProvider capability:
it maps the filters it can honour, ignores the rest, normalizes scores into
[0, 1], and translates HTTP/transport failures into the SearchError taxonomy.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from research_engine.core.config import DEFAULT_SEARCH_MAX_RESULTS, DEFAULT_SEARCH_TIMEOUT_SECS
from research_engine.models.base import ContentType, Recency
from research_engine.models.search import SearchQuery
from research_engine.models.sources import SearchResult, clamp_score
from research_engine.services.errors import (
    InvalidQueryError,
    ProviderUnavailableError,
    SearchError,
    SearchNetworkError,
    SearchProviderError,
    SearchRateLimitedError,
    SearchTimeoutError,
)
from research_engine.services.interfaces import SearchProvider
from research_engine.utils.date_utils import get_current_utc, safe_parse_date
from research_engine.utils.url_utils import strip_trailing_slash

logger = structlog.get_logger(__name__)

USER_AGENT = "research-engine/0.1"


def map_http_error(status: int, provider: str) -> SearchError:
    """Translate a non-2xx status into a SearchError."""
    if status == 401:
        return ProviderUnavailableError(provider)
    if status == 429:
        return SearchRateLimitedError(provider)
    if status == 400:
        return InvalidQueryError("bad request")
    return SearchProviderError(f"HTTP {status}")


# --------------------------------------------------------------------------- #
#                              BaseSearchProvider                             #
# --------------------------------------------------------------------------- #

class BaseSearchProvider(SearchProvider):
    """Shared aiohttp session handling and error translation."""

    provider_id = "base"

    def __init__(
        self,
        api_key: str = "",
        timeout_secs: int = DEFAULT_SEARCH_TIMEOUT_SECS,
        max_results: int = DEFAULT_SEARCH_MAX_RESULTS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key
        self.timeout_secs = timeout_secs
        self.max_results = max_results
        self.session = session

    def __repr__(self) -> str:
        # Never leak the API key
        return f"{self.__class__.__name__}(provider_id={self.provider_id!r})"

    async def __aenter__(self):
        self._sess()
        return self

    async def __aexit__(self, *_exc):
        await self.close()

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()

    def _sess(self) -> aiohttp.ClientSession:
        if not self.session or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_secs),
                headers={"User-Agent": USER_AGENT},
            )
        return self.session

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        timeout = aiohttp.ClientTimeout(total=self.timeout_secs)
        try:
            async with self._sess().request(method, url, timeout=timeout, **kwargs) as r:
                if r.status != 200:
                    logger.warning(
                        "search provider returned error status",
                        provider=self.provider_id,
                        status=r.status,
                    )
                    raise map_http_error(r.status, self.provider_id)
                try:
                    data = await r.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError) as exc:
                    logger.warning(
                        "failed to parse search response",
                        provider=self.provider_id,
                        error=str(exc),
                    )
                    raise SearchProviderError(f"failed to parse response: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise SearchTimeoutError(self.timeout_secs) from exc
        except aiohttp.ClientConnectionError as exc:
            raise self._connection_error(exc) from exc
        except aiohttp.ClientError as exc:
            raise SearchNetworkError(str(exc)) from exc

        if not isinstance(data, dict):
            raise SearchProviderError("failed to parse response: expected object")
        return data

    def _connection_error(self, exc: Exception) -> SearchError:
        return SearchNetworkError(f"connection failed: {exc}")


# --------------------------------------------------------------------------- #
#                              TavilySearchProvider                           #
# --------------------------------------------------------------------------- #

class TavilySearchProvider(BaseSearchProvider):
    """Tavily search API (https://docs.tavily.com)."""

    provider_id = "tavily"
    BASE_URL = "https://api.tavily.com/search"
    SEARCH_DEPTHS = ("basic", "advanced", "fast")

    _TIME_RANGES = {
        Recency.DAY: "day",
        Recency.WEEK: "week",
        Recency.MONTH: "month",
        Recency.YEAR: "year",
    }

    def __init__(self, api_key: str, search_depth: str = "basic", **kwargs: Any):
        super().__init__(api_key, **kwargs)
        if search_depth not in self.SEARCH_DEPTHS:
            raise ValueError(f"unsupported search depth: {search_depth}")
        self.search_depth = search_depth

    def supports_recency_filter(self) -> bool:
        return True

    def supports_domain_filter(self) -> bool:
        return True

    def build_request(self, query: SearchQuery) -> Dict[str, Any]:
        filters = query.filters
        payload: Dict[str, Any] = {
            "query": query.text,
            "search_depth": self.search_depth,
            "max_results": self.max_results,
        }
        if filters.content_type is not None:
            payload["topic"] = "news" if filters.content_type == ContentType.NEWS else "general"
        if filters.recency is not None and filters.recency in self._TIME_RANGES:
            payload["time_range"] = self._TIME_RANGES[filters.recency]
        if filters.include_domains:
            payload["include_domains"] = list(filters.include_domains)
        if filters.exclude_domains:
            payload["exclude_domains"] = list(filters.exclude_domains)
        return payload

    async def search(self, query: SearchQuery) -> List[SearchResult]:
        payload = self.build_request(query)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.debug("executing tavily search", query=query.text, depth=self.search_depth)
        data = await self._request_json("POST", self.BASE_URL, headers=headers, json=payload)

        results = [
            SearchResult(
                url=it.get("url") or "",
                title=it.get("title") or "",
                snippet=it.get("content") or "",
                score=clamp_score(it.get("score") or 0.0),
                published_at=safe_parse_date(it.get("published_date")),
            )
            for it in data.get("results") or []
            if isinstance(it, dict) and it.get("url")
        ]
        logger.debug("tavily search completed", result_count=len(results))
        return results


# --------------------------------------------------------------------------- #
#                              ExaSearchProvider                              #
# --------------------------------------------------------------------------- #

class ExaSearchProvider(BaseSearchProvider):
    """Exa.ai neural search provider."""

    provider_id = "exa"
    BASE_URL = "https://api.exa.ai/search"
    SEARCH_TYPES = ("auto", "neural", "keyword", "deep")

    _RECENCY_DAYS = {
        Recency.DAY: 1,
        Recency.WEEK: 7,
        Recency.MONTH: 30,
        Recency.YEAR: 365,
    }

    def __init__(self, api_key: str, search_type: str = "auto", **kwargs: Any):
        super().__init__(api_key, **kwargs)
        if search_type not in self.SEARCH_TYPES:
            raise ValueError(f"unsupported search type: {search_type}")
        self.search_type = search_type

    def supports_recency_filter(self) -> bool:
        return True

    def supports_domain_filter(self) -> bool:
        return True

    @staticmethod
    def normalize_score(score: Optional[float]) -> float:
        # Good Exa matches typically score 0.1-0.4
        if score is None or score <= 0:
            return 0.0
        return clamp_score(score * 2.5)

    def build_request(self, query: SearchQuery) -> Dict[str, Any]:
        filters = query.filters
        payload: Dict[str, Any] = {
            "query": query.text,
            "type": self.search_type,
            "numResults": self.max_results,
            "contents": {"text": True},
        }
        days = self._RECENCY_DAYS.get(filters.recency) if filters.recency else None
        if days is not None:
            start = get_current_utc() - timedelta(days=days)
            payload["startPublishedDate"] = start.strftime("%Y-%m-%dT%H:%M:%S.000Z")
        if filters.include_domains:
            payload["includeDomains"] = list(filters.include_domains)
        if filters.exclude_domains:
            payload["excludeDomains"] = list(filters.exclude_domains)
        return payload

    async def search(self, query: SearchQuery) -> List[SearchResult]:
        payload = self.build_request(query)
        headers = {
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        data = await self._request_json("POST", self.BASE_URL, headers=headers, json=payload)

        results: List[SearchResult] = []
        for it in data.get("results") or []:
            if not isinstance(it, dict) or not it.get("url"):
                continue
            results.append(
                SearchResult(
                    url=it["url"],
                    title=it.get("title") or "",
                    snippet=it.get("text") or "",
                    score=self.normalize_score(it.get("score")),
                    published_at=safe_parse_date(it.get("publishedDate")),
                    author=it.get("author") or None,
                )
            )
        logger.debug(
            "exa search completed",
            result_count=len(results),
            request_id=data.get("requestId", "unknown"),
        )
        return results


# --------------------------------------------------------------------------- #
#                              SearxngSearchProvider                          #
# --------------------------------------------------------------------------- #

class SearxngSearchProvider(BaseSearchProvider):
    """
    SearXNG metasearch instance (JSON output must be enabled on the instance).
    No API key; domain filters are expressed with ``site:`` query operators.
    """

    provider_id = "searxng"

    _TIME_RANGES = {
        Recency.DAY: "day",
        Recency.WEEK: "week",
        Recency.MONTH: "month",
        Recency.YEAR: "year",
    }
    _CATEGORIES = {
        ContentType.NEWS: "news",
        ContentType.ACADEMIC: "science",
    }

    def __init__(self, instance_url: str, **kwargs: Any):
        super().__init__("", **kwargs)
        self.instance_url = strip_trailing_slash(instance_url.strip())

    def __repr__(self) -> str:
        return f"SearxngSearchProvider(instance_url={self.instance_url!r})"

    def supports_recency_filter(self) -> bool:
        return True

    def supports_domain_filter(self) -> bool:
        return True

    @staticmethod
    def normalize_score(score: Optional[float]) -> float:
        if score is None or score <= 0:
            return 0.5
        return clamp_score(score / 5.0)

    @staticmethod
    def build_query_text(query: SearchQuery) -> str:
        text = query.text
        include = query.filters.include_domains or []
        exclude = query.filters.exclude_domains or []
        if len(include) == 1:
            text = f"{text} site:{include[0]}"
        elif include:
            text = f"{text} ({' OR '.join(f'site:{d}' for d in include)})"
        for domain in exclude:
            text = f"{text} -site:{domain}"
        return text

    def build_params(self, query: SearchQuery) -> Dict[str, str]:
        filters = query.filters
        params = {"q": self.build_query_text(query), "format": "json"}
        if filters.recency is not None and filters.recency in self._TIME_RANGES:
            params["time_range"] = self._TIME_RANGES[filters.recency]
        if filters.content_type is not None:
            params["categories"] = self._CATEGORIES.get(filters.content_type, "general")
        return params

    def _connection_error(self, exc: Exception) -> SearchError:
        # A self-hosted instance that refuses connections is simply down
        return ProviderUnavailableError(self.provider_id)

    async def search(self, query: SearchQuery) -> List[SearchResult]:
        params = self.build_params(query)
        logger.debug("executing searxng search", instance=self.instance_url)
        data = await self._request_json(
            "GET", f"{self.instance_url}/search", params=params
        )

        results = [
            SearchResult(
                url=it.get("url") or "",
                title=it.get("title") or "",
                snippet=it.get("content") or "",
                score=self.normalize_score(it.get("score")),
                published_at=safe_parse_date(it.get("publishedDate")),
            )
            for it in (data.get("results") or [])[: self.max_results]
            if isinstance(it, dict) and it.get("url")
        ]
        logger.debug("searxng search completed", result_count=len(results))
        return results
