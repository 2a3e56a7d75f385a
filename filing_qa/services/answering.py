# =============================================================================
# Answering Service - Question → Answer with Citations
# =============================================================================
#
# Backs both POST /api/questions and POST /api/analyze.
#
# FLOW:
#   1. Validate the question and the document (exists, READY)
#   2. Load the extracted text (deferred column)
#   3. Run the analyst agent under llm_timeout_seconds
#   4. Persist a Question row - only after a well-formed answer
#
# Anything that fails in step 3 leaves the database untouched: an LLM
# timeout or SDK error becomes a retryable UpstreamServiceError, a reply
# without an answer becomes a retryable ParseError.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
import uuid

import anthropic
import openai
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from filing_qa.agents.analyst import analyse
from filing_qa.config import settings
from filing_qa.db.models import Document, DocumentStatus, Question
from filing_qa.errors import AppError, NotFoundError, UpstreamServiceError, ValidationError
from filing_qa.services.llm import LLMProvider

logger = logging.getLogger(__name__)


def _document_label(doc: Document) -> str:
    parts = [p for p in (doc.company_ticker, doc.document_type) if p]
    label = " ".join(parts) or doc.title
    if doc.filing_date:
        label = f"{label} (filed {doc.filing_date.isoformat()})"
    return label


async def answer_question(
    session: AsyncSession,
    document_id: uuid.UUID,
    question: str,
    llm: LLMProvider,
) -> Question:
    """
    Answer a question about a READY document and persist the result.

    Raises:
        ValidationError: blank question, or document not READY.
        NotFoundError: no such document.
        UpstreamServiceError: the LLM call failed or timed out.
        ParseError: the LLM reply had no usable answer.
    """
    question = (question or "").strip()
    if not question:
        raise ValidationError("Question must not be blank.")

    result = await session.execute(
        select(Document)
        .where(Document.id == document_id)
        .options(undefer(Document.extracted_text))
    )
    doc = result.scalar_one_or_none()
    if doc is None:
        raise NotFoundError(f"Document {document_id} not found.")
    if doc.status is not DocumentStatus.READY or not doc.extracted_text:
        raise ValidationError(
            f"Document {document_id} is {doc.status.value}; "
            "questions can only be asked about ready documents.",
            code="document_not_ready",
        )

    logger.info(
        "Answering question for document_id=%s: '%s'",
        document_id, question[:80],
    )

    start_time = time.monotonic()
    try:
        analysis = await asyncio.wait_for(
            analyse(
                question=question,
                document_text=doc.extracted_text,
                llm=llm,
                max_context_chars=settings.max_context_chars,
                document_label=_document_label(doc),
            ),
            timeout=settings.llm_timeout_seconds,
        )
    except (TimeoutError, anthropic.APITimeoutError, openai.APITimeoutError) as e:
        logger.warning(
            "LLM call timed out after %.1fs for document_id=%s",
            settings.llm_timeout_seconds, document_id,
        )
        raise UpstreamServiceError(
            f"LLM did not respond within {settings.llm_timeout_seconds:g} seconds.",
            service="llm",
            timeout=True,
        ) from e
    except AppError:
        raise
    except Exception as e:
        # SDK errors: auth, rate limit, connection, 5xx
        logger.exception("LLM call failed for document_id=%s", document_id)
        raise UpstreamServiceError(f"LLM service error: {e}", service="llm") from e

    processing_time = round(time.monotonic() - start_time, 3)

    row = Question(
        document_id=doc.id,
        question=question,
        answer=analysis.answer,
        citations=analysis.citations,
        processing_time=processing_time,
        model=analysis.model,
    )
    session.add(row)
    await session.flush()

    logger.info(
        "Answered question_id=%s in %.2fs (%d citations, model=%s)",
        row.id, processing_time, len(row.citations), row.model,
    )
    return row
