"""
Core configuration for the research engine.

Centralizes the tunable knobs for search providers, LLM providers and the
pipeline stages so defaults live in one place. Every value can be overridden
via environment variables (``.env`` files are honoured through python-dotenv).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from research_engine.services.errors import ConfigError

# ────────────────────────────────────────────────────────────
#  Defaults
# ────────────────────────────────────────────────────────────
DEFAULT_SEARCH_TIMEOUT_SECS = 30
DEFAULT_SEARCH_MAX_RESULTS = 10

DEFAULT_LLM_MODEL = "claude-sonnet-4-20250514"
DEFAULT_LLM_TIMEOUT_SECS = 30
DEFAULT_LLM_MAX_RETRIES = 2

DEFAULT_PLANNER_PROVIDERS = ["tavily"]
DEFAULT_PLANNER_MAX_QUERIES = 3
DEFAULT_EXECUTOR_MAX_SOURCES = 10
DEFAULT_EXECUTOR_MIN_SCORE = 0.0
DEFAULT_MAX_CONTEXT_SOURCES = 5


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)) or default)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)) or default)
    except Exception:
        return default


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    items = [part.strip() for part in raw.split(",") if part.strip()]
    return items or list(default)


def _redact(secret: Optional[str]) -> str:
    return "[REDACTED]" if secret else "None"


# ────────────────────────────────────────────────────────────
#  Search providers
# ────────────────────────────────────────────────────────────
@dataclass
class SearchSettings:
    """Search provider credentials and limits.

    At least one of Tavily, Exa or SearXNG must be configured.
    """

    tavily_api_key: Optional[str] = field(default=None, repr=False)
    exa_api_key: Optional[str] = field(default=None, repr=False)
    searxng_url: Optional[str] = None
    timeout_secs: int = DEFAULT_SEARCH_TIMEOUT_SECS
    max_results: int = DEFAULT_SEARCH_MAX_RESULTS

    @classmethod
    def from_env(cls) -> "SearchSettings":
        load_dotenv()
        settings = cls(
            tavily_api_key=_env_str("TAVILY_API_KEY"),
            exa_api_key=_env_str("EXA_API_KEY"),
            searxng_url=_env_str("SEARXNG_URL"),
            timeout_secs=_env_int("SEARCH_TIMEOUT_SECS", DEFAULT_SEARCH_TIMEOUT_SECS),
            max_results=_env_int("SEARCH_MAX_RESULTS", DEFAULT_SEARCH_MAX_RESULTS),
        )
        if not settings.has_any_provider():
            raise ConfigError("no search providers configured")
        return settings

    def has_tavily(self) -> bool:
        return bool(self.tavily_api_key)

    def has_exa(self) -> bool:
        return bool(self.exa_api_key)

    def has_searxng(self) -> bool:
        return bool(self.searxng_url)

    def has_any_provider(self) -> bool:
        return self.has_tavily() or self.has_exa() or self.has_searxng()

    def __repr__(self) -> str:
        return (
            "SearchSettings("
            f"tavily_api_key={_redact(self.tavily_api_key)}, "
            f"exa_api_key={_redact(self.exa_api_key)}, "
            f"searxng_url={self.searxng_url!r}, "
            f"timeout_secs={self.timeout_secs}, "
            f"max_results={self.max_results})"
        )


# ────────────────────────────────────────────────────────────
#  LLM providers
# ────────────────────────────────────────────────────────────
@dataclass
class LlmSettings:
    """Model selection, timeouts and vendor credentials."""

    default_model: str = DEFAULT_LLM_MODEL
    fallback_model: Optional[str] = None
    timeout_secs: int = DEFAULT_LLM_TIMEOUT_SECS
    max_retries: int = DEFAULT_LLM_MAX_RETRIES
    anthropic_api_key: Optional[str] = field(default=None, repr=False)
    anthropic_base_url: Optional[str] = None
    openai_api_key: Optional[str] = field(default=None, repr=False)
    openai_base_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "LlmSettings":
        load_dotenv()
        return cls(
            default_model=_env_str("LLM_DEFAULT_MODEL") or DEFAULT_LLM_MODEL,
            fallback_model=_env_str("LLM_FALLBACK_MODEL"),
            timeout_secs=_env_int("LLM_TIMEOUT_SECS", DEFAULT_LLM_TIMEOUT_SECS),
            max_retries=_env_int("LLM_MAX_RETRIES", DEFAULT_LLM_MAX_RETRIES),
            anthropic_api_key=_env_str("ANTHROPIC_API_KEY"),
            anthropic_base_url=_env_str("ANTHROPIC_BASE_URL"),
            openai_api_key=_env_str("OPENAI_API_KEY"),
            openai_base_url=_env_str("OPENAI_BASE_URL"),
        )

    def has_anthropic(self) -> bool:
        return bool(self.anthropic_api_key)

    def has_openai(self) -> bool:
        return bool(self.openai_api_key)

    def has_any_provider(self) -> bool:
        return self.has_anthropic() or self.has_openai()

    def __repr__(self) -> str:
        return (
            "LlmSettings("
            f"default_model={self.default_model!r}, "
            f"fallback_model={self.fallback_model!r}, "
            f"timeout_secs={self.timeout_secs}, "
            f"max_retries={self.max_retries}, "
            f"anthropic_api_key={_redact(self.anthropic_api_key)}, "
            f"anthropic_base_url={self.anthropic_base_url!r}, "
            f"openai_api_key={_redact(self.openai_api_key)}, "
            f"openai_base_url={self.openai_base_url!r})"
        )


# ────────────────────────────────────────────────────────────
#  Pipeline stages
# ────────────────────────────────────────────────────────────
@dataclass
class PipelineSettings:
    default_providers: List[str] = field(
        default_factory=lambda: list(DEFAULT_PLANNER_PROVIDERS)
    )
    max_queries: int = DEFAULT_PLANNER_MAX_QUERIES
    max_sources: int = DEFAULT_EXECUTOR_MAX_SOURCES
    min_score: float = DEFAULT_EXECUTOR_MIN_SCORE
    max_context_sources: int = DEFAULT_MAX_CONTEXT_SOURCES

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        load_dotenv()
        return cls(
            default_providers=_env_list(
                "PIPELINE_DEFAULT_PROVIDERS", DEFAULT_PLANNER_PROVIDERS
            ),
            max_queries=_env_int("PIPELINE_MAX_QUERIES", DEFAULT_PLANNER_MAX_QUERIES),
            max_sources=_env_int("PIPELINE_MAX_SOURCES", DEFAULT_EXECUTOR_MAX_SOURCES),
            min_score=_env_float("PIPELINE_MIN_SCORE", DEFAULT_EXECUTOR_MIN_SCORE),
            max_context_sources=_env_int(
                "PIPELINE_MAX_CONTEXT_SOURCES", DEFAULT_MAX_CONTEXT_SOURCES
            ),
        )
