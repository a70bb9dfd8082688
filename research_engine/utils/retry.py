"""
Transport-level retry for vendor HTTP clients.

Only connection failures that happen before a response arrives are retried
here, bounded by ``LLM_MAX_RETRIES``. Everything else (HTTP status errors,
timeouts) surfaces immediately so the registries can decide on failover.
"""

import asyncio
import logging
import os

import aiohttp
import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)


class RetryConfig:
    """Backoff bounds loaded from environment."""

    TRANSPORT_BACKOFF_MIN_SEC = float(os.getenv("TRANSPORT_BACKOFF_MIN_SEC", "0.5"))
    TRANSPORT_BACKOFF_MAX_SEC = float(os.getenv("TRANSPORT_BACKOFF_MAX_SEC", "4"))


def is_transient_transport_error(exc: BaseException) -> bool:
    """Connection-level aiohttp failures, excluding timeouts."""
    return isinstance(exc, aiohttp.ClientConnectionError) and not isinstance(
        exc, asyncio.TimeoutError
    )


def transport_retrying(max_retries: int) -> AsyncRetrying:
    """
    Build an ``AsyncRetrying`` controller for one outbound request.

    Args:
        max_retries: extra attempts after the first one (0 disables retry)
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(0, max_retries) + 1),
        wait=wait_exponential(
            multiplier=1,
            min=RetryConfig.TRANSPORT_BACKOFF_MIN_SEC,
            max=RetryConfig.TRANSPORT_BACKOFF_MAX_SEC,
        ),
        retry=retry_if_exception(is_transient_transport_error),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    )
