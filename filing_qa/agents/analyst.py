# =============================================================================
# Analyst Agent - Answer Generation with Citations
# =============================================================================
#
# Takes a question and a document's extracted text, asks the configured LLM
# for a structured JSON reply, and turns that reply into an answer plus a
# list of citations that point at real spans of the source text.
#
# REPLY CONTRACT (requested in the system prompt):
#   {
#     "answer": "Total revenue was $391.0 billion [1].",
#     "citations": [
#       {"quote": "Total net sales 391,035", "page": 23, "note": "income statement"}
#     ]
#   }
#
# PARSING RULES:
# - Markdown code fences around the JSON are tolerated.
# - Not JSON, not an object, or no non-blank "answer" → ParseError.
# - "citations" missing or not a list → [] (an answer is still an answer).
# - Each quote is located in the source text: exact match first, then a
#   case-insensitive match that ignores whitespace differences. Quotes that
#   cannot be located are dropped and logged, so every persisted citation
#   refers to a span that exists in the document.
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from filing_qa.errors import ParseError
from filing_qa.services.llm import LLMProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class AnalysisResult:
    """Result from the analyst agent."""

    answer: str
    citations: list[dict] = field(default_factory=list)
    model: str = "unknown"
    input_tokens: int = 0
    output_tokens: int = 0


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are a financial analyst answering questions about an SEC filing. "
    "Answer using ONLY the provided filing text.\n\n"
    "Rules:\n"
    "- Base your answer exclusively on the provided text\n"
    "- Be precise with financial figures - never round or estimate\n"
    "- Support each claim with a citation: copy a short quote VERBATIM "
    "from the text (one sentence or table row, under 300 characters)\n"
    "- Include the page number when a [Page N] marker precedes the quote\n"
    "- If the answer is not in the text, say: "
    "'The filing does not contain this information.' and return no citations\n\n"
    "Reply with a single JSON object and nothing else:\n"
    '{"answer": "<answer, citing sources as [1], [2], ...>", '
    '"citations": [{"quote": "<verbatim quote>", "page": <int or null>, '
    '"note": "<what the quote supports>"}]}'
)

_TRUNCATION_NOTE = "\n\n[... remainder of filing omitted ...]"


def build_excerpt(text: str, max_chars: int) -> str:
    """
    Bound the document text embedded in the prompt.

    Keeps the leading part of the filing and cuts at the last paragraph
    break inside the limit, so a sentence is never split mid-way when a
    paragraph boundary is available.
    """
    if len(text) <= max_chars:
        return text

    cut = text.rfind("\n\n", 0, max_chars)
    if cut < max_chars // 2:
        cut = max_chars
    return text[:cut].rstrip() + _TRUNCATION_NOTE


def build_user_message(
    question: str,
    excerpt: str,
    document_label: str | None = None,
) -> str:
    header = f"Filing: {document_label}\n\n" if document_label else ""
    return (
        f"{header}"
        f"Question: {question}\n\n"
        f"Filing text:\n\n{excerpt}"
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def analyse(
    question: str,
    document_text: str,
    llm: LLMProvider,
    max_context_chars: int,
    document_label: str | None = None,
) -> AnalysisResult:
    """
    Answer a question about one document.

    Args:
        question: The user's question.
        document_text: Full extracted text of the document.
        llm: LLM provider to use for generation.
        max_context_chars: Upper bound on the excerpt sent to the LLM.
        document_label: Optional "ACME 10-K (2024-02-01)" style header.

    Returns:
        AnalysisResult with the answer, located citations and usage metrics.

    Raises:
        ParseError: The reply had no usable answer.
        Exception: Whatever the provider SDK raises; callers map it.
    """
    excerpt = build_excerpt(document_text, max_context_chars)
    user_message = build_user_message(question, excerpt, document_label)

    logger.info(
        "Analyst generating answer: excerpt=%d chars (document=%d chars)",
        len(excerpt), len(document_text),
    )

    response = await llm.complete(
        messages=[{"role": "user", "content": user_message}],
        system=SYSTEM_PROMPT,
    )

    logger.info(
        "Analyst complete: model=%s, tokens=%d+%d",
        response.model, response.input_tokens, response.output_tokens,
    )

    answer, raw_citations = parse_reply(response.content)
    citations = resolve_citations(raw_citations, document_text)

    return AnalysisResult(
        answer=answer,
        citations=citations,
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
    )


# ---------------------------------------------------------------------------
# Reply Parsing
# ---------------------------------------------------------------------------

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_reply(content: str) -> tuple[str, list]:
    """
    Split an LLM reply into (answer, raw citation list).

    Raises:
        ParseError: reply is not a JSON object with a non-blank "answer".
    """
    body = (content or "").strip()
    fenced = _CODE_FENCE.match(body)
    if fenced:
        body = fenced.group(1)

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        # Some models wrap the object in prose; take the outermost braces.
        start, end = body.find("{"), body.rfind("}")
        if start == -1 or end <= start:
            raise ParseError("LLM reply is not valid JSON.")
        try:
            payload = json.loads(body[start:end + 1])
        except json.JSONDecodeError as exc:
            raise ParseError(f"LLM reply is not valid JSON: {exc.msg}") from exc

    if not isinstance(payload, dict):
        raise ParseError("LLM reply is not a JSON object.")

    answer = payload.get("answer")
    if not isinstance(answer, str) or not answer.strip():
        raise ParseError("LLM reply is missing the 'answer' field.")

    citations = payload.get("citations")
    if not isinstance(citations, list):
        citations = []

    return answer.strip(), citations


def resolve_citations(raw_citations: list, source_text: str) -> list[dict]:
    """
    Locate each cited quote in the source text.

    Returns citation dicts in the LLM's order:
        {"quote", "start", "end", "page", "note"}
    Entries that are malformed or whose quote cannot be found are dropped.
    """
    resolved: list[dict] = []
    for entry in raw_citations:
        if isinstance(entry, str):
            entry = {"quote": entry}
        if not isinstance(entry, dict):
            continue

        quote = entry.get("quote")
        if not isinstance(quote, str) or not quote.strip():
            continue

        span = locate_quote(source_text, quote)
        if span is None:
            logger.warning("Dropping citation not found in source: %.80r", quote)
            continue

        start, end = span
        page = page_at(source_text, start)
        if page is None and isinstance(entry.get("page"), int):
            page = entry["page"]

        note = entry.get("note")
        resolved.append({
            "quote": source_text[start:end],
            "start": start,
            "end": end,
            "page": page,
            "note": note if isinstance(note, str) and note.strip() else None,
        })
    return resolved


def locate_quote(source: str, quote: str) -> tuple[int, int] | None:
    """
    Find `quote` in `source`; return (start, end) offsets or None.

    Exact match first, then a case-insensitive match that treats any run of
    whitespace as equivalent (PDF extraction often re-flows lines).
    """
    needle = quote.strip().strip('"').strip()
    if not needle:
        return None

    idx = source.find(needle)
    if idx != -1:
        return idx, idx + len(needle)

    words = needle.split()
    pattern = r"\s+".join(re.escape(w) for w in words)
    match = re.search(pattern, source, re.IGNORECASE)
    if match:
        return match.start(), match.end()
    return None


_PAGE_MARKER = re.compile(r"\[Page (\d+)\]")


def page_at(source: str, offset: int) -> int | None:
    """Page number of the last [Page N] marker at or before `offset`."""
    page = None
    for match in _PAGE_MARKER.finditer(source, 0, offset + 1):
        page = int(match.group(1))
    return page
