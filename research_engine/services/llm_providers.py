"""
LLM Providers
---------------------------------------------
Vendor-specific implementations of the LlmProvider capability.

* ``AnthropicProvider`` talks to the Messages API over aiohttp.
* ``OpenAIProvider`` uses the official ``AsyncOpenAI`` client with JSON mode.

Both share the prompt builder and the lenient response parser, and translate
vendor failures into the LlmError taxonomy so the registry can decide whether
to fail over.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
import openai
import structlog
from openai import AsyncOpenAI

from research_engine.core.config import DEFAULT_LLM_MAX_RETRIES, DEFAULT_LLM_TIMEOUT_SECS
from research_engine.models.answer import ResearchAnswer
from research_engine.models.sources import Source
from research_engine.services.errors import (
    ContentFilteredError,
    ContextLengthExceededError,
    LlmError,
    LlmNetworkError,
    LlmProviderError,
    LlmRateLimitedError,
    LlmTimeoutError,
    ModelUnavailableError,
    ResponseParseError,
)
from research_engine.services.interfaces import LlmProvider
from research_engine.services.prompt import (
    build_synthesis_messages,
    estimate_messages_tokens,
)
from research_engine.services.response_parser import parse_synthesis_response
from research_engine.utils.retry import transport_retrying

# ────────────────────────────────────────────────────────────
#  Logging
# ────────────────────────────────────────────────────────────
logger = structlog.get_logger(__name__)

# ────────────────────────────────────────────────────────────
#  Model catalogue
# ────────────────────────────────────────────────────────────
MODEL_CLAUDE_SONNET_4 = "claude-sonnet-4-20250514"
MODEL_CLAUDE_HAIKU_35 = "claude-3-5-haiku-20241022"
MODEL_GPT_4O = "gpt-4o"
MODEL_GPT_4O_MINI = "gpt-4o-mini"

ANTHROPIC_CONTEXT_TOKENS = 200_000
OPENAI_CONTEXT_TOKENS = 128_000
DEFAULT_MAX_TOKENS = 4096

ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"

ANTHROPIC_MODELS = (MODEL_CLAUDE_SONNET_4, MODEL_CLAUDE_HAIKU_35)
OPENAI_MODELS = (MODEL_GPT_4O, MODEL_GPT_4O_MINI)

NO_SOURCES_DETAIL = "No sources were provided for analysis."


# ────────────────────────────────────────────────────────────
#  Helper Functions
# ────────────────────────────────────────────────────────────
def _wrap_parse_error(exc: ResponseParseError) -> LlmProviderError:
    return LlmProviderError(f"failed to parse synthesis response: {exc}")


def _loads(body: str) -> Dict[str, Any]:
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def _reported_tokens(message: Optional[str]) -> int:
    """Largest token count quoted in a vendor context-length message, or 0."""
    counts = [int(n) for n in re.findall(r"\d+", message or "")]
    return max(counts, default=0)


def map_anthropic_error(status: int, body: str) -> LlmError:
    """Translate an Anthropic HTTP error response into an LlmError."""
    error = _loads(body).get("error") or {}
    error_type = error.get("type") if isinstance(error, dict) else None
    message = error.get("message") if isinstance(error, dict) else None

    if status == 401:
        return LlmProviderError("invalid API key")
    if status == 429:
        return LlmRateLimitedError()
    if status == 400:
        if error_type == "invalid_request_error" and message and "token" in message:
            return ContextLengthExceededError(ANTHROPIC_CONTEXT_TOKENS, _reported_tokens(message))
        return LlmProviderError(message or body)
    if status == 404:
        return ModelUnavailableError(message or "unknown")
    if error_type == "overloaded_error" or status == 529:
        return LlmRateLimitedError()
    if status in (500, 502, 503, 504):
        return LlmProviderError(f"service unavailable: {status}")
    return LlmProviderError(message or f"HTTP {status}")


def map_openai_error(exc: openai.APIError, model: str) -> LlmError:
    """Translate an ``openai`` SDK exception into an LlmError."""
    # APITimeoutError subclasses APIConnectionError, so check it first
    if isinstance(exc, openai.APITimeoutError):
        return LlmTimeoutError(DEFAULT_LLM_TIMEOUT_SECS)
    if isinstance(exc, openai.APIConnectionError):
        return LlmNetworkError(str(exc))
    if isinstance(exc, openai.AuthenticationError):
        return LlmProviderError("invalid API key")
    if isinstance(exc, openai.RateLimitError):
        return LlmRateLimitedError()
    if isinstance(exc, openai.BadRequestError):
        if getattr(exc, "code", None) == "context_length_exceeded":
            return ContextLengthExceededError(OPENAI_CONTEXT_TOKENS, _reported_tokens(exc.message))
        return LlmProviderError(exc.message)
    if isinstance(exc, openai.NotFoundError):
        return ModelUnavailableError(model)
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code in (502, 503, 504):
            return LlmProviderError(f"service unavailable: {exc.status_code}")
        return LlmProviderError(exc.message)
    return LlmProviderError(str(exc))


def is_anthropic_model(model_id: str) -> bool:
    return model_id.startswith("claude")


def is_openai_model(model_id: str) -> bool:
    return model_id.startswith(("gpt", "o1", "o3", "o4"))


# ────────────────────────────────────────────────────────────
#  Anthropic
# ────────────────────────────────────────────────────────────
class AnthropicProvider(LlmProvider):
    """Claude models through the Anthropic Messages API."""

    provider_name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = MODEL_CLAUDE_SONNET_4,
        base_url: Optional[str] = None,
        timeout_secs: int = DEFAULT_LLM_TIMEOUT_SECS,
        max_retries: int = DEFAULT_LLM_MAX_RETRIES,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key
        self._model = model
        self.base_url = (base_url or ANTHROPIC_BASE_URL).rstrip("/")
        self.timeout_secs = timeout_secs
        self.max_retries = max_retries
        self.max_tokens = max_tokens
        self.session = session

    def __repr__(self) -> str:
        return f"AnthropicProvider(model={self._model!r}, base_url={self.base_url!r})"

    @property
    def model_id(self) -> str:
        return self._model

    def max_context_tokens(self) -> int:
        return ANTHROPIC_CONTEXT_TOKENS

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
                timeout=aiohttp.ClientTimeout(total=self.timeout_secs)
            )
        return self.session

    def build_request(self, query: str, sources: Sequence[Source]) -> Dict[str, Any]:
        messages = build_synthesis_messages(query, sources)
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        return {
            "model": self._model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": [m for m in messages if m["role"] != "system"],
        }

    async def synthesize(self, query: str, sources: Sequence[Source]) -> ResearchAnswer:
        if not sources:
            return ResearchAnswer.insufficient(self._model, NO_SOURCES_DETAIL)

        estimated = estimate_messages_tokens(build_synthesis_messages(query, sources))
        if estimated + self.max_tokens > self.max_context_tokens():
            raise ContextLengthExceededError(self.max_context_tokens(), estimated)

        payload = self.build_request(query, sources)
        started = time.monotonic()
        data = await self._post_messages(payload)
        duration_ms = int((time.monotonic() - started) * 1000)

        if data.get("stop_reason") == "refusal":
            raise ContentFilteredError("model refused to answer")

        text = "".join(
            block.get("text", "")
            for block in data.get("content") or []
            if isinstance(block, dict) and block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        tokens_used = int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)

        logger.debug(
            "anthropic synthesis completed",
            model=self._model,
            tokens_used=tokens_used,
            duration_ms=duration_ms,
        )
        try:
            return parse_synthesis_response(
                text, sources, self._model, tokens_used, duration_ms
            )
        except ResponseParseError as exc:
            logger.warning("anthropic response unparseable", model=self._model, error=str(exc))
            raise _wrap_parse_error(exc) from exc

    async def _post_messages(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }
        url = f"{self.base_url}/v1/messages"
        timeout = aiohttp.ClientTimeout(total=self.timeout_secs)

        try:
            async for attempt in transport_retrying(self.max_retries):
                with attempt:
                    async with self._sess().post(
                        url, headers=headers, json=payload, timeout=timeout
                    ) as r:
                        body = await r.text()
                        if r.status != 200:
                            raise map_anthropic_error(r.status, body)
        except asyncio.TimeoutError as exc:
            raise LlmTimeoutError(self.timeout_secs) from exc
        except aiohttp.ClientError as exc:
            raise LlmNetworkError(str(exc)) from exc

        data = _loads(body)
        if not data:
            raise LlmProviderError("failed to decode response body")
        return data


# ────────────────────────────────────────────────────────────
#  OpenAI
# ────────────────────────────────────────────────────────────
class OpenAIProvider(LlmProvider):
    """GPT models through chat completions in JSON mode."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = MODEL_GPT_4O,
        base_url: Optional[str] = None,
        timeout_secs: int = DEFAULT_LLM_TIMEOUT_SECS,
        max_retries: int = DEFAULT_LLM_MAX_RETRIES,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._model = model
        self.timeout_secs = timeout_secs
        self.max_tokens = max_tokens
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_secs,
            max_retries=max_retries,
        )

    def __repr__(self) -> str:
        return f"OpenAIProvider(model={self._model!r})"

    @property
    def model_id(self) -> str:
        return self._model

    def max_context_tokens(self) -> int:
        return OPENAI_CONTEXT_TOKENS

    async def synthesize(self, query: str, sources: Sequence[Source]) -> ResearchAnswer:
        if not sources:
            return ResearchAnswer.insufficient(self._model, NO_SOURCES_DETAIL)

        messages: List[Dict[str, str]] = build_synthesis_messages(query, sources)
        estimated = estimate_messages_tokens(messages)
        if estimated + self.max_tokens > self.max_context_tokens():
            raise ContextLengthExceededError(self.max_context_tokens(), estimated)

        started = time.monotonic()
        try:
            response = await self.client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError as exc:
            raise LlmTimeoutError(self.timeout_secs) from exc
        except openai.APIError as exc:
            raise map_openai_error(exc, self._model) from exc
        duration_ms = int((time.monotonic() - started) * 1000)

        if not response.choices:
            raise LlmProviderError("empty response from model")
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise ContentFilteredError("content_filter")

        text = choice.message.content or ""
        tokens_used = response.usage.total_tokens if response.usage else 0

        logger.debug(
            "openai synthesis completed",
            model=self._model,
            tokens_used=tokens_used,
            duration_ms=duration_ms,
        )
        try:
            return parse_synthesis_response(
                text, sources, self._model, tokens_used, duration_ms
            )
        except ResponseParseError as exc:
            logger.warning("openai response unparseable", model=self._model, error=str(exc))
            raise _wrap_parse_error(exc) from exc
