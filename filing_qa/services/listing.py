# =============================================================================
# Listing Service - Read-Only Queries
# =============================================================================
#
# Newest first. `id` breaks ties between rows created in the same instant,
# so paging through a listing never repeats or skips a row.
# =============================================================================

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from filing_qa.db.models import Document, DocumentStatus, Question
from filing_qa.errors import NotFoundError

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


async def list_documents(
    session: AsyncSession,
    status: DocumentStatus | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> list[Document]:
    stmt = select(Document)
    if status is not None:
        stmt = stmt.where(Document.status == status)
    stmt = (
        stmt.order_by(Document.created_at.desc(), Document.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_questions(
    session: AsyncSession,
    document_id: uuid.UUID | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> list[Question]:
    stmt = select(Question)
    if document_id is not None:
        stmt = stmt.where(Question.document_id == document_id)
    stmt = (
        stmt.order_by(Question.created_at.desc(), Question.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_document(session: AsyncSession, document_id: uuid.UUID) -> Document:
    doc = await session.get(Document, document_id)
    if doc is None:
        raise NotFoundError(f"Document {document_id} not found.")
    return doc


async def get_question(session: AsyncSession, question_id: uuid.UUID) -> Question:
    row = await session.get(Question, question_id)
    if row is None:
        raise NotFoundError(f"Question {question_id} not found.")
    return row
