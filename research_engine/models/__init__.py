"""Domain models for research jobs, sources, plans and answers."""

from research_engine.models.answer import Citation, ResearchAnswer, SynthesisMetadata
from research_engine.models.base import (
    Confidence,
    ContentType,
    JobStatus,
    QuestionType,
    Recency,
    TimeConstraintKind,
    new_job_id,
    new_source_id,
    parse_job_id,
    parse_source_id,
)
from research_engine.models.research import (
    MAX_QUERY_LENGTH,
    QueryIntent,
    ResearchJob,
    TimeConstraint,
    validate_query,
)
from research_engine.models.search import SearchFilters, SearchPlan, SearchQuery
from research_engine.models.sources import (
    SearchMetadata,
    SearchResult,
    Source,
    SourceCollection,
    SourceMetadata,
)

__all__ = [
    "Citation",
    "ResearchAnswer",
    "SynthesisMetadata",
    "Confidence",
    "ContentType",
    "JobStatus",
    "QuestionType",
    "Recency",
    "TimeConstraintKind",
    "new_job_id",
    "new_source_id",
    "parse_job_id",
    "parse_source_id",
    "MAX_QUERY_LENGTH",
    "QueryIntent",
    "ResearchJob",
    "TimeConstraint",
    "validate_query",
    "SearchFilters",
    "SearchPlan",
    "SearchQuery",
    "SearchMetadata",
    "SearchResult",
    "Source",
    "SourceCollection",
    "SourceMetadata",
]
