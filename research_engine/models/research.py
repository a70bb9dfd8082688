"""
Research job models: the query, its parsed intent and the job state machine.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from research_engine.models.base import (
    JobStatus,
    QuestionType,
    TimeConstraintKind,
    new_job_id,
)
from research_engine.services.errors import (
    EmptyQueryError,
    InvalidTransitionError,
    QueryTooLongError,
)
from research_engine.utils.date_utils import get_current_utc

MAX_QUERY_LENGTH = 2000


def validate_query(query: str) -> str:
    """Return the trimmed query or raise a QueryError."""
    trimmed = (query or "").strip()
    if not trimmed:
        raise EmptyQueryError()
    if len(trimmed) > MAX_QUERY_LENGTH:
        raise QueryTooLongError(MAX_QUERY_LENGTH, len(trimmed))
    return trimmed


class TimeConstraint(BaseModel):
    kind: TimeConstraintKind
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class QueryIntent(BaseModel):
    """Parsed shape of a question, used by the planner to choose filters."""

    question_type: QuestionType = QuestionType.FACTUAL
    entities: List[str] = Field(default_factory=list)
    time_constraint: Optional[TimeConstraint] = None
    language: str = "en"


class ResearchJob(BaseModel):
    """One research request moving through the pipeline.

    Status only ever moves forward; ``completed`` and ``failed`` are terminal.
    ``error_message`` is populated exactly when the job has failed.
    """

    id: str = Field(default_factory=new_job_id)
    query: str
    intent: Optional[QueryIntent] = None
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=get_current_utc)
    updated_at: datetime = Field(default_factory=get_current_utc)
    error_message: Optional[str] = None

    @model_validator(mode="after")
    def _check_error_message(self) -> "ResearchJob":
        failed = self.status == JobStatus.FAILED
        if failed != (self.error_message is not None):
            raise ValueError("error_message must be set if and only if status is failed")
        return self

    @classmethod
    def new(cls, query: str) -> "ResearchJob":
        now = get_current_utc()
        return cls(query=validate_query(query), created_at=now, updated_at=now)

    def with_intent(self, intent: QueryIntent) -> "ResearchJob":
        self.intent = intent
        return self

    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    def is_active(self) -> bool:
        return self.status.is_active()

    def can_transition_to(self, status: JobStatus) -> bool:
        if self.is_terminal() or status == JobStatus.FAILED:
            return False
        return status.rank > self.status.rank

    def transition_to(self, status: JobStatus) -> None:
        """Advance to a later non-failure status. Use :meth:`fail` for failures."""
        if not self.can_transition_to(status):
            raise InvalidTransitionError(self.status.value, status.value)
        self.status = status
        self._touch()

    def fail(self, message: str) -> None:
        if self.is_terminal():
            raise InvalidTransitionError(self.status.value, JobStatus.FAILED.value)
        self.status = JobStatus.FAILED
        self.error_message = message
        self._touch()

    def _touch(self) -> None:
        now = get_current_utc()
        # Clock skew must not move updated_at backwards
        self.updated_at = now if now > self.updated_at else self.updated_at
