"""
Base models and common types for the research engine
"""

import secrets
import string
from enum import Enum
from typing import Tuple

from research_engine.services.errors import IdParseError

# ────────────────────────────────────────────────────────────
#  Identifiers
# ────────────────────────────────────────────────────────────
ID_SUFFIX_LENGTH = 12
JOB_ID_PREFIX = "job_"
SOURCE_ID_PREFIX = "src_"

_ID_ALPHABET = string.ascii_letters + string.digits + "_-"


def _generate_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(ID_SUFFIX_LENGTH))
    return f"{prefix}{suffix}"


def _parse_id(value: str, prefix: str) -> str:
    if not value.startswith(prefix):
        raise IdParseError.invalid_prefix(prefix, value[: len(prefix)])
    suffix = value[len(prefix):]
    if len(suffix) != ID_SUFFIX_LENGTH:
        raise IdParseError.invalid_length(ID_SUFFIX_LENGTH, len(suffix))
    return value


def new_job_id() -> str:
    return _generate_id(JOB_ID_PREFIX)


def new_source_id() -> str:
    return _generate_id(SOURCE_ID_PREFIX)


def parse_job_id(value: str) -> str:
    """Validate a job id string and return it unchanged."""
    return _parse_id(value, JOB_ID_PREFIX)


def parse_source_id(value: str) -> str:
    """Validate a source id string and return it unchanged."""
    return _parse_id(value, SOURCE_ID_PREFIX)


# ────────────────────────────────────────────────────────────
#  Enumerations
# ────────────────────────────────────────────────────────────
class JobStatus(str, Enum):
    PENDING = "pending"
    PLANNING = "planning"
    SEARCHING = "searching"
    # Reserved for a dedicated content-fetch stage; the pipeline skips it.
    FETCHING = "fetching"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    def is_active(self) -> bool:
        return not self.is_terminal()

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER: Tuple[JobStatus, ...] = (
    JobStatus.PENDING,
    JobStatus.PLANNING,
    JobStatus.SEARCHING,
    JobStatus.FETCHING,
    JobStatus.SYNTHESIZING,
    JobStatus.COMPLETED,
    JobStatus.FAILED,
)
_TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INSUFFICIENT = "insufficient"

    @classmethod
    def parse(cls, value: object) -> "Confidence":
        """Case-insensitive lookup; unknown text maps to MEDIUM."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.MEDIUM


class Recency(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ANY = "any"


class ContentType(str, Enum):
    NEWS = "news"
    ACADEMIC = "academic"
    GENERAL = "general"
    BLOG = "blog"
    FORUM = "forum"


class QuestionType(str, Enum):
    FACTUAL = "factual"
    COMPARISON = "comparison"
    EXPLANATION = "explanation"
    CURRENT_EVENT = "current_event"
    HOW_TO = "how_to"
    OPINION = "opinion"


class TimeConstraintKind(str, Enum):
    RECENT = "recent"
    HISTORICAL = "historical"
    SPECIFIC_DATE = "specific_date"
    DATE_RANGE = "date_range"
