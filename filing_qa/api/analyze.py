# =============================================================================
# Analyze API - Direct Entry Point to the Answering Service
# =============================================================================
#
# POST /analyze takes the same body as POST /questions and returns the same
# persisted Question. Kept as its own route for clients that call the
# analysis step directly after an upload.
# =============================================================================

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from filing_qa.api.deps import get_llm
from filing_qa.db.engine import get_async_session
from filing_qa.models.requests import QuestionCreate
from filing_qa.models.responses import QuestionResponse
from filing_qa.services.answering import answer_question
from filing_qa.services.llm import LLMProvider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Question Answering"])


@router.post(
    "/analyze",
    response_model=QuestionResponse,
    summary="Analyze a document",
    description=(
        "Answer a question about a ready document and persist the result. "
        "LLM failures and timeouts are reported as retryable errors."
    ),
)
async def analyze_endpoint(
    request: QuestionCreate,
    session: AsyncSession = Depends(get_async_session),
    llm: LLMProvider = Depends(get_llm),
) -> QuestionResponse:
    logger.info("Analyze request: document_id=%s", request.document_id)
    row = await answer_question(session, request.document_id, request.question, llm)
    return QuestionResponse.model_validate(row)
