"""
Error taxonomy for the research pipeline.

Each subsystem (search, synthesis, storage) owns a closed set of exception
classes. Every class carries a fixed ``retryable`` verdict; the registries
consult :func:`is_retryable` and nothing else when deciding whether to fail
over to a secondary provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


# ────────────────────────────────────────────────────────────
#  Shared helpers
# ────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ErrorContext:
    """Operation + details attached to an error for diagnostics."""

    operation: str
    details: str

    def __str__(self) -> str:
        return f"during {self.operation}: {self.details}"


class ResearchEngineError(Exception):
    """Root of every error raised by this package."""

    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.context: Optional[ErrorContext] = None

    def with_context(self, operation: str, details: str) -> "ResearchEngineError":
        self.context = ErrorContext(operation, details)
        return self

    def is_retryable(self) -> bool:
        return self.retryable

    def __str__(self) -> str:
        return self.message


def is_retryable(exc: BaseException) -> bool:
    """Single classification entry point for fallback decisions.

    Unknown exception types are never retryable.
    """
    return isinstance(exc, ResearchEngineError) and exc.retryable


# ────────────────────────────────────────────────────────────
#  Domain validation
# ────────────────────────────────────────────────────────────
class QueryError(ResearchEngineError, ValueError):
    pass


class EmptyQueryError(QueryError):
    def __init__(self):
        super().__init__("query cannot be empty")


class QueryTooLongError(QueryError):
    def __init__(self, max_length: int, got: int):
        super().__init__(
            f"query exceeds maximum length of {max_length} characters (got {got})"
        )
        self.max_length = max_length
        self.got = got


class IdParseError(ResearchEngineError, ValueError):
    @classmethod
    def invalid_prefix(cls, expected: str, got: str) -> "IdParseError":
        return cls(f"invalid ID prefix: expected '{expected}', got '{got}'")

    @classmethod
    def invalid_length(cls, expected: int, got: int) -> "IdParseError":
        return cls(f"invalid ID length: expected {expected}, got {got}")


class InvalidTransitionError(ResearchEngineError):
    def __init__(self, current: str, target: str):
        super().__init__(f"invalid job transition: {current} -> {target}")
        self.current = current
        self.target = target


class ConfigError(ResearchEngineError):
    pass


# ────────────────────────────────────────────────────────────
#  Search
# ────────────────────────────────────────────────────────────
class SearchError(ResearchEngineError):
    pass


class ProviderUnavailableError(SearchError):
    retryable = True

    def __init__(self, provider: str):
        super().__init__(f"provider not available: {provider}")
        self.provider = provider


class SearchRateLimitedError(SearchError):
    retryable = True

    def __init__(self, provider: str):
        super().__init__(f"rate limited by provider: {provider}")
        self.provider = provider


class SearchTimeoutError(SearchError):
    retryable = True

    def __init__(self, timeout_secs: int):
        super().__init__(f"search timeout after {timeout_secs}s")
        self.timeout_secs = timeout_secs


class InvalidQueryError(SearchError):
    def __init__(self, reason: str):
        super().__init__(f"invalid query: {reason}")
        self.reason = reason


class SearchNetworkError(SearchError):
    retryable = True

    def __init__(self, detail: str):
        super().__init__(f"network error: {detail}")
        self.detail = detail


class SearchProviderError(SearchError):
    def __init__(self, detail: str):
        super().__init__(f"provider error: {detail}")
        self.detail = detail


# ────────────────────────────────────────────────────────────
#  LLM / synthesis
# ────────────────────────────────────────────────────────────
class LlmError(ResearchEngineError):
    pass


class ModelUnavailableError(LlmError):
    retryable = True

    def __init__(self, model: str):
        super().__init__(f"model not available: {model}")
        self.model = model


class LlmRateLimitedError(LlmError):
    retryable = True

    def __init__(self):
        super().__init__("rate limited by provider")


class ContextLengthExceededError(LlmError):
    def __init__(self, max_tokens: int, got_tokens: int):
        super().__init__(
            f"context length exceeded: {max_tokens} tokens max, got {got_tokens}"
        )
        self.max_tokens = max_tokens
        self.got_tokens = got_tokens


class ContentFilteredError(LlmError):
    def __init__(self, reason: str):
        super().__init__(f"content filtered: {reason}")
        self.reason = reason


class LlmTimeoutError(LlmError):
    retryable = True

    def __init__(self, timeout_secs: int):
        super().__init__(f"synthesis timeout after {timeout_secs}s")
        self.timeout_secs = timeout_secs


class LlmNetworkError(LlmError):
    retryable = True

    def __init__(self, detail: str):
        super().__init__(f"network error: {detail}")
        self.detail = detail


class LlmProviderError(LlmError):
    def __init__(self, detail: str):
        super().__init__(f"provider error: {detail}")
        self.detail = detail


# Raised by the response parser; vendor clients wrap these in LlmProviderError.
class ResponseParseError(ResearchEngineError):
    pass


class NoJsonFoundError(ResponseParseError):
    def __init__(self):
        super().__init__("no JSON object found in response")


class InvalidJsonError(ResponseParseError):
    def __init__(self, detail: str):
        super().__init__(f"invalid JSON: {detail}")
        self.detail = detail


# ────────────────────────────────────────────────────────────
#  Storage
# ────────────────────────────────────────────────────────────
class StoreError(ResearchEngineError):
    pass


class JobNotFoundError(StoreError):
    def __init__(self, job_id: str):
        super().__init__(f"job not found: {job_id}")
        self.job_id = job_id


class StoreConnectionError(StoreError):
    retryable = True

    def __init__(self, detail: str):
        super().__init__(f"connection failed: {detail}")
        self.detail = detail


class StoreQueryError(StoreError):
    def __init__(self, detail: str):
        super().__init__(f"query failed: {detail}")
        self.detail = detail


class StoreSerializationError(StoreError):
    def __init__(self, detail: str):
        super().__init__(f"serialization failed: {detail}")
        self.detail = detail


class StoreConflictError(StoreError):
    def __init__(self, detail: str):
        super().__init__(f"conflict: {detail}")
        self.detail = detail


# ────────────────────────────────────────────────────────────
#  Pipeline
# ────────────────────────────────────────────────────────────
class PipelineError(ResearchEngineError):
    pass


class PlanningError(PipelineError):
    def __init__(self, detail: str):
        super().__init__(f"planning failed: {detail}")
        self.detail = detail


class SearchStageError(PipelineError):
    def __init__(self, detail: str):
        super().__init__(f"search failed: {detail}")
        self.detail = detail


class SynthesisStageError(PipelineError):
    def __init__(self, detail: str):
        super().__init__(f"synthesis failed: {detail}")
        self.detail = detail


class PipelineStoreError(PipelineError):
    def __init__(self, error: StoreError):
        super().__init__(f"store error: {error}")
        self.error = error


class NoSourcesError(PipelineError):
    def __init__(self):
        super().__init__("no sources found for query")


__all__ = [
    "ErrorContext",
    "ResearchEngineError",
    "is_retryable",
    "QueryError",
    "EmptyQueryError",
    "QueryTooLongError",
    "IdParseError",
    "InvalidTransitionError",
    "ConfigError",
    "SearchError",
    "ProviderUnavailableError",
    "SearchRateLimitedError",
    "SearchTimeoutError",
    "InvalidQueryError",
    "SearchNetworkError",
    "SearchProviderError",
    "LlmError",
    "ModelUnavailableError",
    "LlmRateLimitedError",
    "ContextLengthExceededError",
    "ContentFilteredError",
    "LlmTimeoutError",
    "LlmNetworkError",
    "LlmProviderError",
    "ResponseParseError",
    "NoJsonFoundError",
    "InvalidJsonError",
    "StoreError",
    "JobNotFoundError",
    "StoreConnectionError",
    "StoreQueryError",
    "StoreSerializationError",
    "StoreConflictError",
    "PipelineError",
    "PlanningError",
    "SearchStageError",
    "SynthesisStageError",
    "PipelineStoreError",
    "NoSourcesError",
]
