"""
Lenient parser for model synthesis output.

Models do not always return bare JSON: some wrap it in a fenced block, some add
prose around it. :func:`extract_json_object` tries, in order:

1. the whole trimmed text, when it is itself a ``{...}`` object;
2. the body of a fenced ```json block;
3. the body of any fenced block whose content starts with ``{``;
4. the span from the first ``{`` to the last ``}``.

The first candidate that decodes to a JSON object wins. No candidate at all is
a :class:`NoJsonFoundError`; a candidate that will not decode, or decodes to
the wrong shape, is an :class:`InvalidJsonError`.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterator, List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field, ValidationError

from research_engine.models.answer import Citation, ResearchAnswer, SynthesisMetadata
from research_engine.models.base import Confidence
from research_engine.models.sources import Source
from research_engine.services.errors import InvalidJsonError, NoJsonFoundError

logger = structlog.get_logger(__name__)

_JSON_FENCE = re.compile(r"```json\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[A-Za-z0-9_-]*\s*(.*?)```", re.DOTALL)


class _RawCitation(BaseModel):
    claim: str
    source_id: str
    quote: Optional[str] = None


class _RawSynthesis(BaseModel):
    summary: str
    detail: str
    citations: List[_RawCitation]
    confidence: str
    limitations: List[str] = Field(default_factory=list)


def _candidates(text: str) -> Iterator[str]:
    trimmed = text.strip()

    if trimmed.startswith("{") and trimmed.endswith("}"):
        yield trimmed

    for match in _JSON_FENCE.finditer(trimmed):
        yield match.group(1).strip()

    for match in _ANY_FENCE.finditer(trimmed):
        inner = match.group(1).strip()
        if inner.startswith("{"):
            yield inner

    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start != -1 and start < end:
        yield trimmed[start:end + 1]


def extract_json_object(text: str) -> Dict[str, Any]:
    """Return the first decodable JSON object embedded in ``text``."""
    first_error: Optional[str] = None
    found_candidate = False

    for candidate in _candidates(text or ""):
        found_candidate = True
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError as exc:
            first_error = first_error or str(exc)
            continue
        if isinstance(value, dict):
            return value
        first_error = first_error or f"expected object, got {type(value).__name__}"

    if not found_candidate:
        raise NoJsonFoundError()
    raise InvalidJsonError(first_error or "unparseable response")


def parse_confidence(value: object) -> Confidence:
    """Case-insensitive mapping; anything unrecognised becomes MEDIUM."""
    return Confidence.parse(value)


def resolve_citations(
    raw: Sequence[_RawCitation], sources: Sequence[Source]
) -> List[Citation]:
    """Keep citations whose source_id is one of ``sources``; drop the rest."""
    known_ids = {s.id for s in sources}
    citations: List[Citation] = []
    dropped = 0
    for item in raw:
        if item.source_id not in known_ids:
            dropped += 1
            continue
        citations.append(
            Citation(claim=item.claim, source_id=item.source_id, quote=item.quote)
        )
    if dropped:
        logger.debug("dropped unresolved citations", dropped=dropped, kept=len(citations))
    return citations


def parse_synthesis_response(
    text: str,
    sources: Sequence[Source],
    model: str,
    tokens_used: int = 0,
    duration_ms: int = 0,
) -> ResearchAnswer:
    """Build a ResearchAnswer from raw model output.

    Raises:
        NoJsonFoundError: no JSON object could be located in ``text``
        InvalidJsonError: JSON was located but is malformed or missing fields
    """
    payload = extract_json_object(text)
    try:
        raw = _RawSynthesis.model_validate(payload)
    except ValidationError as exc:
        raise InvalidJsonError(_describe_validation_error(exc)) from exc

    return ResearchAnswer(
        summary=raw.summary,
        detail=raw.detail,
        citations=resolve_citations(raw.citations, sources),
        confidence=parse_confidence(raw.confidence),
        limitations=raw.limitations,
        metadata=SynthesisMetadata(
            model=model, tokens_used=tokens_used, duration_ms=duration_ms
        ),
    )


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)
