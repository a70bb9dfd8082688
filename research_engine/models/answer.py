"""
Answer models produced by the synthesis stage.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from research_engine.models.base import Confidence


class Citation(BaseModel):
    """Binds one claim in the answer to the source that supports it."""

    claim: str
    source_id: str
    quote: Optional[str] = None


class SynthesisMetadata(BaseModel):
    model: str
    tokens_used: int = 0
    duration_ms: int = 0


class ResearchAnswer(BaseModel):
    summary: str
    detail: str
    citations: List[Citation] = Field(default_factory=list)
    confidence: Confidence = Confidence.MEDIUM
    limitations: List[str] = Field(default_factory=list)
    metadata: SynthesisMetadata

    @classmethod
    def insufficient(cls, model: str, reason: str) -> "ResearchAnswer":
        """Answer used when there is nothing to synthesize from."""
        return cls(
            summary="Unable to provide an answer without sources.",
            detail=reason,
            confidence=Confidence.INSUFFICIENT,
            limitations=[reason],
            metadata=SynthesisMetadata(model=model),
        )

    def is_answerable(self) -> bool:
        return self.confidence != Confidence.INSUFFICIENT

    def cited_source_ids(self) -> List[str]:
        seen: List[str] = []
        for citation in self.citations:
            if citation.source_id not in seen:
                seen.append(citation.source_id)
        return seen
