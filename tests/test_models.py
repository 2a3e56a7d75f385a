# =============================================================================
# Unit Tests - Schema and API Models
# =============================================================================
#
# DDL is compiled against the PostgreSQL dialect; no database needed.
# =============================================================================

from __future__ import annotations

import uuid

import pytest
from pydantic import ValidationError
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

from filing_qa.db.models import Document, DocumentStatus, Question
from filing_qa.models.requests import DocumentCreate, DocumentMetadata, QuestionCreate
from filing_qa.models.responses import DocumentResponse, QuestionResponse
from tests.conftest import make_document, make_question


def _ddl(model) -> str:
    return str(CreateTable(model.__table__).compile(dialect=postgresql.dialect()))


class TestSchema:
    def test_question_fk_cascades(self):
        """Questions are removed with their document."""
        [fk] = Question.__table__.c.document_id.foreign_keys
        assert fk.ondelete == "CASCADE"
        assert "ON DELETE CASCADE" in _ddl(Question)

    def test_status_check_constraint(self):
        """Only the three known states can be stored."""
        ddl = _ddl(Document)
        assert "CHECK (status IN ('processing', 'ready', 'error'))" in ddl

    def test_citations_not_null_jsonb(self):
        """Citations are always a JSON value, never NULL."""
        ddl = _ddl(Question)
        assert "citations JSONB NOT NULL" in ddl

    def test_timestamps_have_server_defaults(self):
        """The database fills in both timestamps."""
        ddl = _ddl(Document)
        assert "created_at TIMESTAMP WITH TIME ZONE DEFAULT now() NOT NULL" in ddl
        assert "updated_at TIMESTAMP WITH TIME ZONE DEFAULT now() NOT NULL" in ddl

    def test_extracted_text_is_deferred(self):
        """Listings do not load the full text."""
        assert Document.extracted_text.property.deferred is True

    def test_terminal_states(self):
        """READY and ERROR are final."""
        assert DocumentStatus.PROCESSING.is_terminal is False
        assert DocumentStatus.READY.is_terminal is True
        assert DocumentStatus.ERROR.is_terminal is True


class TestRequestModels:
    def test_ticker_normalised(self):
        """Tickers are trimmed and upper-cased."""
        assert DocumentMetadata(company_ticker=" brk.b ").company_ticker == "BRK.B"

    def test_blank_ticker_is_none(self):
        assert DocumentMetadata(company_ticker="  ").company_ticker is None

    def test_invalid_ticker(self):
        """Tickers cannot contain spaces."""
        with pytest.raises(ValidationError):
            DocumentMetadata(company_ticker="NOT A TICKER")

    def test_blank_title_is_none(self):
        assert DocumentMetadata(title="   ").title is None

    def test_document_create_requires_title(self):
        """A blank title is rejected."""
        with pytest.raises(ValidationError):
            DocumentCreate(title=" ", file_url="s3://b/k", file_name="a.pdf", file_size=1)

    def test_document_create_rejects_zero_size(self):
        with pytest.raises(ValidationError):
            DocumentCreate(title="t", file_url="s3://b/k", file_name="a.pdf", file_size=0)

    def test_question_stripped(self):
        q = QuestionCreate(document_id=uuid.uuid4(), question="  Revenue?  ")
        assert q.question == "Revenue?"

    def test_blank_question_rejected(self):
        """Whitespace-only questions are rejected."""
        with pytest.raises(ValidationError):
            QuestionCreate(document_id=uuid.uuid4(), question="   ")

    def test_question_requires_uuid(self):
        with pytest.raises(ValidationError):
            QuestionCreate(document_id="not-a-uuid", question="Revenue?")


class TestResponseModels:
    def test_document_response_from_orm(self):
        """Internal columns are not part of the response."""
        doc = make_document()
        resp = DocumentResponse.model_validate(doc)
        assert resp.id == doc.id
        assert resp.status is DocumentStatus.READY
        dumped = resp.model_dump(mode="json")
        assert dumped["status"] == "ready"
        assert "extracted_text" not in dumped
        assert "storage_key" not in dumped

    def test_question_response_from_orm(self):
        """Stored citation dicts become Citation models."""
        row = make_question(uuid.uuid4())
        resp = QuestionResponse.model_validate(row)
        assert resp.citations[0].quote == "Total net sales were $391.0 billion"
        assert resp.citations[0].page is None
