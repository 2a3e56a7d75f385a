# =============================================================================
# API Request Models - Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API. FastAPI uses
# them for body validation (automatic 422 errors for malformed payloads) and
# for the OpenAPI docs at /docs.
#
# Semantic checks that need the database (does the document exist? is it
# ready?) happen in the services, not here.
# =============================================================================

import re
import uuid
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

_TICKER = re.compile(r"^[A-Z0-9][A-Z0-9.\-]{0,9}$")


class DocumentMetadata(BaseModel):
    """
    Optional descriptive metadata supplied with an upload.

    `title` defaults to the file name (without extension) when omitted.
    """

    title: str | None = Field(default=None, max_length=500)
    company_ticker: str | None = Field(
        default=None,
        description="Exchange ticker, e.g. 'AAPL'. Normalised to upper case.",
        examples=["AAPL"],
    )
    document_type: str | None = Field(
        default=None,
        max_length=50,
        description="Filing form type, e.g. '10-K', '10-Q', '8-K'.",
        examples=["10-K"],
    )
    filing_date: date | None = Field(default=None, examples=["2024-11-01"])

    @field_validator("title", "document_type", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("company_ticker", mode="before")
    @classmethod
    def _normalise_ticker(cls, value):
        if value is None:
            return None
        value = str(value).strip().upper()
        if not value:
            return None
        if not _TICKER.match(value):
            raise ValueError("company_ticker must be 1-10 letters, digits, '.' or '-'")
        return value


class DocumentCreate(DocumentMetadata):
    """
    Request body for POST /api/documents - register an already-stored file.

    `file_url` must point into the configured bucket (an `s3://bucket/key`
    URL or the public URL returned by POST /api/upload).
    """

    title: str = Field(..., min_length=1, max_length=500)
    file_url: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1, max_length=500)
    file_size: int = Field(..., ge=1)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "title": "Apple Inc. 2024 Annual Report",
                    "company_ticker": "AAPL",
                    "document_type": "10-K",
                    "filing_date": "2024-11-01",
                    "file_url": "s3://filing-qa-documents/documents/9b1c/aapl-10k.pdf",
                    "file_name": "aapl-10k.pdf",
                    "file_size": 1048576,
                }
            ]
        }
    )


class QuestionCreate(BaseModel):
    """
    Request body for POST /api/questions and POST /api/analyze.

    Example:
        {
            "document_id": "0f8e4a53-7a0b-4d8c-9a43-1f3f0c2a9b11",
            "question": "What was total revenue?"
        }
    """

    document_id: uuid.UUID = Field(
        ...,
        description="Document to ask about. Must have status 'ready'.",
    )
    question: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="The question to ask about the filing",
        examples=["What was total revenue?"],
    )

    @field_validator("question")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question must not be blank")
        return value
