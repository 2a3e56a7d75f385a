# =============================================================================
# Questions API - Ask and Browse
# =============================================================================
#
# ENDPOINTS:
#   GET  /questions          - newest first, optional ?document_id= filter
#   GET  /questions/{id}     - one question
#   POST /questions          - ask a question about a ready document
#
# POST /analyze (analyze.py) is an alternate entry point to the same
# answering service.
# =============================================================================

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from filing_qa.api.deps import get_llm
from filing_qa.db.engine import get_async_session
from filing_qa.models.requests import QuestionCreate
from filing_qa.models.responses import QuestionListResponse, QuestionResponse
from filing_qa.services import listing
from filing_qa.services.answering import answer_question
from filing_qa.services.llm import LLMProvider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Questions"])


@router.get(
    "/questions",
    response_model=QuestionListResponse,
    summary="List questions",
    description="All questions, newest first. Filter by document.",
)
async def list_questions_endpoint(
    document_id: uuid.UUID | None = Query(default=None),
    limit: int = Query(default=listing.DEFAULT_LIMIT, ge=1, le=listing.MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_async_session),
) -> QuestionListResponse:
    rows = await listing.list_questions(
        session, document_id=document_id, limit=limit, offset=offset,
    )
    return QuestionListResponse(
        count=len(rows),
        questions=[QuestionResponse.model_validate(q) for q in rows],
    )


@router.get(
    "/questions/{question_id}",
    response_model=QuestionResponse,
    summary="Get one question",
)
async def get_question_endpoint(
    question_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
) -> QuestionResponse:
    row = await listing.get_question(session, question_id)
    return QuestionResponse.model_validate(row)


@router.post(
    "/questions",
    response_model=QuestionResponse,
    status_code=201,
    summary="Ask a question about a document",
    description=(
        "Ask a question about a document whose status is 'ready'. The answer "
        "is generated by the configured LLM from the document's text and "
        "returned with citations. Nothing is stored if the LLM fails."
    ),
)
async def create_question_endpoint(
    request: QuestionCreate,
    session: AsyncSession = Depends(get_async_session),
    llm: LLMProvider = Depends(get_llm),
) -> QuestionResponse:
    row = await answer_question(session, request.document_id, request.question, llm)
    return QuestionResponse.model_validate(row)
