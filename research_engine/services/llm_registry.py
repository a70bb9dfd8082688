"""
LLM provider registry with one-shot fallback.

Models are registered by id at startup. The first registration becomes the
default unless overridden. ``synthesize_with_fallback`` tries the requested (or
default) model and, on a retryable error, tries the configured fallback model
exactly once.

Registration takes a lock and publishes a fresh snapshot; lookups read the
current snapshot without locking, so concurrent jobs never block each other.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from research_engine.core.config import LlmSettings
from research_engine.models.answer import ResearchAnswer
from research_engine.models.sources import Source
from research_engine.services.errors import ModelUnavailableError, is_retryable
from research_engine.services.interfaces import LlmProvider
from research_engine.services.llm_providers import (
    ANTHROPIC_MODELS,
    OPENAI_MODELS,
    AnthropicProvider,
    OpenAIProvider,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    providers: Dict[str, LlmProvider] = field(default_factory=dict)
    default_model: Optional[str] = None
    fallback_model: Optional[str] = None


class LlmRegistry:
    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = _Snapshot()

    # ── registration ────────────────────────────────────────
    def register(self, model_id: str, provider: LlmProvider) -> None:
        with self._lock:
            snap = self._snapshot
            self._snapshot = _Snapshot(
                providers={**snap.providers, model_id: provider},
                default_model=snap.default_model or model_id,
                fallback_model=snap.fallback_model,
            )
        logger.info(
            "registered LLM provider",
            model=model_id,
            provider=provider.provider_name,
        )

    def set_default(self, model_id: str) -> None:
        with self._lock:
            snap = self._snapshot
            self._snapshot = _Snapshot(snap.providers, model_id, snap.fallback_model)

    def set_fallback(self, model_id: Optional[str]) -> None:
        with self._lock:
            snap = self._snapshot
            self._snapshot = _Snapshot(snap.providers, snap.default_model, model_id)

    # ── lookup ──────────────────────────────────────────────
    def get(self, model_id: str) -> Optional[LlmProvider]:
        return self._snapshot.providers.get(model_id)

    def default(self) -> Optional[LlmProvider]:
        snap = self._snapshot
        return snap.providers.get(snap.default_model) if snap.default_model else None

    def fallback(self) -> Optional[LlmProvider]:
        snap = self._snapshot
        return snap.providers.get(snap.fallback_model) if snap.fallback_model else None

    @property
    def default_model_id(self) -> Optional[str]:
        return self._snapshot.default_model

    @property
    def fallback_model_id(self) -> Optional[str]:
        return self._snapshot.fallback_model

    def available_models(self) -> List[str]:
        return sorted(self._snapshot.providers)

    def __len__(self) -> int:
        return len(self._snapshot.providers)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._snapshot.providers

    def is_empty(self) -> bool:
        return not self._snapshot.providers

    # ── execution ───────────────────────────────────────────
    def _resolve(self, snap: _Snapshot, model_id: Optional[str]) -> Tuple[str, LlmProvider]:
        target = model_id or snap.default_model
        if target is None:
            raise ModelUnavailableError("no default model configured")
        provider = snap.providers.get(target)
        if provider is None:
            raise ModelUnavailableError(target)
        return target, provider

    async def synthesize_with_fallback(
        self,
        query: str,
        sources: Sequence[Source],
        model_id: Optional[str] = None,
    ) -> ResearchAnswer:
        """Synthesize with the requested model, failing over once on retryable errors.

        Args:
            query: the user's question
            sources: ranked sources to cite
            model_id: explicit model; the default model when omitted

        Raises:
            ModelUnavailableError: the model is unknown or no default exists
            LlmError: the primary's error (non-retryable or no usable fallback)
                or the fallback's own error
        """
        snap = self._snapshot
        primary_id, primary = self._resolve(snap, model_id)

        try:
            return await primary.synthesize(query, sources)
        except Exception as exc:
            if not is_retryable(exc):
                raise
            fallback_id = snap.fallback_model
            fallback = snap.providers.get(fallback_id) if fallback_id else None
            if fallback is None or fallback_id == primary_id:
                raise
            logger.warning(
                "primary model failed, trying fallback",
                primary=primary_id,
                fallback=fallback_id,
                error=str(exc),
            )

        return await fallback.synthesize(query, sources)

    def as_provider(self, model_id: Optional[str] = None) -> "RegistryLlmProvider":
        """Expose the registry (with fallback) as a single LlmProvider."""
        return RegistryLlmProvider(self, model_id)

    # ── construction ────────────────────────────────────────
    @classmethod
    def builder(cls) -> "LlmRegistryBuilder":
        return LlmRegistryBuilder()

    @classmethod
    def from_settings(cls, settings: LlmSettings) -> "LlmRegistry":
        """Register every model the configured vendor credentials unlock."""
        builder = cls.builder()

        if settings.has_anthropic():
            for model in ANTHROPIC_MODELS:
                builder.register(
                    model,
                    AnthropicProvider(
                        api_key=settings.anthropic_api_key or "",
                        model=model,
                        base_url=settings.anthropic_base_url,
                        timeout_secs=settings.timeout_secs,
                        max_retries=settings.max_retries,
                    ),
                )

        if settings.has_openai():
            for model in OPENAI_MODELS:
                builder.register(
                    model,
                    OpenAIProvider(
                        api_key=settings.openai_api_key,
                        model=model,
                        base_url=settings.openai_base_url,
                        timeout_secs=settings.timeout_secs,
                        max_retries=settings.max_retries,
                    ),
                )

        builder.default_model(settings.default_model)
        if settings.fallback_model:
            builder.fallback_model(settings.fallback_model)
        return builder.build()


class LlmRegistryBuilder:
    """Fluent construction for startup code."""

    def __init__(self):
        self._entries: List[Tuple[str, LlmProvider]] = []
        self._default: Optional[str] = None
        self._fallback: Optional[str] = None

    def register(self, model_id: str, provider: LlmProvider) -> "LlmRegistryBuilder":
        self._entries.append((model_id, provider))
        return self

    def default_model(self, model_id: str) -> "LlmRegistryBuilder":
        self._default = model_id
        return self

    def fallback_model(self, model_id: str) -> "LlmRegistryBuilder":
        self._fallback = model_id
        return self

    def build(self) -> LlmRegistry:
        registry = LlmRegistry()
        for model_id, provider in self._entries:
            registry.register(model_id, provider)
        if self._default:
            registry.set_default(self._default)
        if self._fallback:
            registry.set_fallback(self._fallback)
        return registry


class RegistryLlmProvider(LlmProvider):
    """LlmProvider view over a registry; every call goes through the fallback path."""

    provider_name = "registry"

    def __init__(self, registry: LlmRegistry, model_id: Optional[str] = None):
        self.registry = registry
        self._model_id = model_id

    @property
    def model_id(self) -> str:
        return self._model_id or self.registry.default_model_id or "unknown"

    def max_context_tokens(self) -> int:
        provider = (
            self.registry.get(self._model_id) if self._model_id else self.registry.default()
        )
        return provider.max_context_tokens() if provider else super().max_context_tokens()

    async def synthesize(self, query: str, sources: Sequence[Source]) -> ResearchAnswer:
        return await self.registry.synthesize_with_fallback(query, sources, self._model_id)
