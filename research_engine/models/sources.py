"""
Source models: raw search hits and the ranked sources derived from them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from research_engine.models.base import new_source_id
from research_engine.utils.url_utils import extract_domain


def clamp_score(value: float) -> float:
    """Clamp a relevance score into [0.0, 1.0]; NaN becomes 0.0."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score):
        return 0.0
    return max(0.0, min(1.0, score))


class SourceMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: Optional[str] = None
    published_at: Optional[datetime] = None
    author: Optional[str] = None
    word_count: Optional[int] = None


class Source(BaseModel):
    """A ranked, immutable piece of evidence handed to synthesis."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_source_id)
    url: str
    title: str
    content: str
    metadata: SourceMetadata = Field(default_factory=SourceMetadata)
    relevance_score: float = 0.0

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_score(value)

    @classmethod
    def new(
        cls,
        url: str,
        title: str,
        content: str,
        relevance_score: float = 0.0,
        published_at: Optional[datetime] = None,
        author: Optional[str] = None,
    ) -> "Source":
        metadata = SourceMetadata(
            domain=extract_domain(url),
            published_at=published_at,
            author=author,
            word_count=len(content.split()),
        )
        return cls(
            url=url,
            title=title,
            content=content,
            metadata=metadata,
            relevance_score=relevance_score,
        )


@dataclass
class SearchResult:
    """Single hit returned by a search provider."""

    url: str
    title: str
    snippet: str = ""
    score: float = 0.0
    published_at: Optional[datetime] = None
    author: Optional[str] = None

    def __post_init__(self):
        self.score = clamp_score(self.score)

    def into_source(self, content: str) -> Source:
        return Source.new(
            url=self.url,
            title=self.title,
            content=content,
            relevance_score=self.score,
            published_at=self.published_at,
            author=self.author,
        )


class SearchMetadata(BaseModel):
    queries_executed: int = 0
    providers_used: List[str] = Field(default_factory=list)
    total_results: int = 0
    fetch_duration_ms: int = 0


class SourceCollection(BaseModel):
    """Sources for one job plus bookkeeping about how they were found."""

    sources: List[Source] = Field(default_factory=list)
    metadata: SearchMetadata = Field(default_factory=SearchMetadata)

    def __len__(self) -> int:
        return len(self.sources)

    def __iter__(self) -> Iterator[Source]:  # type: ignore[override]
        return iter(self.sources)

    def is_empty(self) -> bool:
        return not self.sources

    def source_ids(self) -> List[str]:
        return [s.id for s in self.sources]
