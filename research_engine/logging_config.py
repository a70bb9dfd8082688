"""Structured logging setup for the research engine.

Configures *structlog* once with a stdlib bridge so library log records and
structlog events share one renderer. Modules obtain loggers with
``structlog.get_logger(__name__)``; the pipeline binds the active job id via
:func:`bind_job_context` so every event emitted during a run can be correlated.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional

import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

__all__ = [
    "configure_logging",
    "bind_job_context",
    "clear_job_context",
    "get_logger",
]

_JOB_CONTEXT_KEYS = ("job_id", "stage")


def configure_logging(force: bool = False) -> None:
    """Setup structlog + stdlib bridging exactly once.

    Args:
        force: When True, reconfigure even if previously configured. Use only
               inside isolated scripts/tests that need a different renderer.
    """

    configured = getattr(structlog, "_research_engine_configured", False)
    if configured and not force:
        return

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    # JSON by default, console renderer when LOG_PRETTY=1
    dev_mode = os.getenv("LOG_PRETTY", "0").lower() in {"1", "true", "yes"}
    if dev_mode:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # structlog events arrive pre-processed; stdlib records get the foreign chain
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    # Remove existing handlers (avoid duplicates in tests / scripts)
    root_logger = logging.getLogger()
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    setattr(structlog, "_research_engine_configured", True)


def bind_job_context(
    job_id: Optional[str] = None,
    stage: Optional[str] = None,
) -> None:
    """Bind the active job id (and optionally its stage) into contextvars.

    Only provided keys are updated, so the pipeline can rebind ``stage`` on
    every transition without repeating the job id.
    """
    payload: Dict[str, str] = {}
    if job_id:
        payload["job_id"] = job_id
    if stage:
        payload["stage"] = stage
    if payload:
        bind_contextvars(**payload)


def clear_job_context() -> None:
    """Drop job-scoped keys bound by :func:`bind_job_context`."""
    unbind_contextvars(*_JOB_CONTEXT_KEYS)


def get_logger(name: Optional[str] = None):
    """Return a structlog logger; ensures configuration first."""
    configure_logging()
    return structlog.get_logger(name) if name else structlog.get_logger()
