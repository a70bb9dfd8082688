"""
Prompt construction for answer synthesis.

Messages use the OpenAI chat shape (``{"role": ..., "content": ...}``); the
Anthropic client lifts the system message out before sending.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

from research_engine.models.sources import Source

Message = Dict[str, str]

SYNTHESIS_SYSTEM_PROMPT = """You are a research assistant that answers questions by synthesizing information from several sources, accurately and with citations.

Read the sources provided and write a well-researched answer.

Rules:
1. Use ONLY information found in the provided sources. Never invent facts.
2. Cite a source for EVERY claim using the [source_id] tag of that source.
3. When sources disagree, say so and present each position.
4. When the sources do not support an answer, state clearly that they are insufficient.
5. Be concise but complete; accuracy comes before brevity.

Reply with a single JSON object in exactly this shape:
{
  "summary": "A direct answer to the question in one or two sentences",
  "detail": "A fuller explanation with inline citations such as [src_xxx]",
  "citations": [
    {"claim": "A specific claim from the answer", "source_id": "src_xxx", "quote": "Optional verbatim quote from the source"}
  ],
  "confidence": "high|medium|low|insufficient",
  "limitations": ["Caveats or gaps in the answer"]
}"""

USER_PROMPT_TEMPLATE = (
    "Question: {query}\n\n"
    "Sources:\n{sources}\n\n"
    "Provide your analysis in the specified JSON format."
)

SOURCE_SEPARATOR = "\n---\n"
PER_MESSAGE_OVERHEAD_TOKENS = 4


def format_source(source: Source) -> str:
    return (
        f"[{source.id}] {source.title}\n"
        f"URL: {source.url}\n"
        f"Content:\n{source.content}\n"
    )


def format_sources(sources: Sequence[Source]) -> str:
    return SOURCE_SEPARATOR.join(format_source(s) for s in sources)


def build_user_message(query: str, sources: Sequence[Source]) -> str:
    return USER_PROMPT_TEMPLATE.format(query=query, sources=format_sources(sources))


def build_synthesis_messages(query: str, sources: Sequence[Source]) -> List[Message]:
    """System instruction followed by the question and its sources."""
    return [
        {"role": "system", "content": SYNTHESIS_SYSTEM_PROMPT},
        {"role": "user", "content": build_user_message(query, sources)},
    ]


def estimate_tokens(text: str) -> int:
    """Rough token estimate: four characters per token."""
    return len(text) // 4


def estimate_messages_tokens(messages: Sequence[Message]) -> int:
    return (
        sum(estimate_tokens(m.get("content", "")) for m in messages)
        + len(messages) * PER_MESSAGE_OVERHEAD_TOKENS
    )
