# =============================================================================
# API Response Models - Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API and are kept
# separate from the ORM models: the full extracted text of a filing and the
# internal storage key never go over the wire.
# =============================================================================

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from filing_qa.db.models import DocumentStatus


class HealthResponse(BaseModel):
    """Response for GET /health - confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class ErrorBody(BaseModel):
    code: str
    message: str
    retryable: bool = False


class ErrorResponse(BaseModel):
    """Shape of every error response."""

    error: ErrorBody


class DocumentResponse(BaseModel):
    """Document metadata as returned by listings, upload and registration."""

    id: uuid.UUID
    title: str
    company_ticker: str | None = None
    document_type: str | None = None
    filing_date: date | None = None
    content_preview: str | None = None
    file_url: str
    file_name: str
    file_size: int
    content_type: str | None = None
    page_count: int | None = None
    status: DocumentStatus
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentListResponse(BaseModel):
    count: int
    documents: list[DocumentResponse]


class DeleteResponse(BaseModel):
    id: uuid.UUID
    deleted: bool = True


class Citation(BaseModel):
    """
    A reference into a document's extracted text supporting the answer.

    `start`/`end` are character offsets of `quote` in the extracted text.
    """

    quote: str
    start: int | None = None
    end: int | None = None
    page: int | None = Field(default=None, description="Page number, when known")
    note: str | None = None


class QuestionResponse(BaseModel):
    """A persisted question with its answer and citations."""

    id: uuid.UUID
    document_id: uuid.UUID
    question: str
    answer: str
    citations: list[Citation] = Field(default_factory=list)
    processing_time: float | None = Field(
        default=None, description="Seconds spent producing the answer",
    )
    model: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class QuestionListResponse(BaseModel):
    count: int
    questions: list[QuestionResponse]
