# =============================================================================
# Upload API - Multipart File Upload
# =============================================================================
#
# POST /upload stores the file, records it and extracts its text within the
# request. Extraction of a large 10-K takes seconds, not minutes, so there is
# no background worker: the response always carries the final status
# ('ready' or 'error').
#
# Validation (type, emptiness, size) happens before anything is stored.
# =============================================================================

import logging
from datetime import date

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from filing_qa.api.deps import get_store
from filing_qa.config import settings
from filing_qa.db.engine import get_async_session
from filing_qa.errors import ValidationError
from filing_qa.models.requests import DocumentMetadata
from filing_qa.models.responses import DocumentResponse
from filing_qa.services.ingestion import ingest_upload
from filing_qa.services.storage import ObjectStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Upload"])


@router.post(
    "/upload",
    response_model=DocumentResponse,
    status_code=201,
    summary="Upload an SEC filing",
    description=(
        "Upload a PDF or plain-text filing with optional metadata. The file "
        "is stored, a document is created and its text is extracted. The "
        f"maximum size is {settings.max_upload_mb} MB."
    ),
)
async def upload_endpoint(
    file: UploadFile = File(..., description="PDF or plain-text filing (10-K, 10-Q, 8-K, ...)"),
    title: str | None = Form(default=None),
    company_ticker: str | None = Form(default=None),
    document_type: str | None = Form(default=None),
    filing_date: date | None = Form(default=None),
    session: AsyncSession = Depends(get_async_session),
    store: ObjectStore = Depends(get_store),
) -> DocumentResponse:
    try:
        metadata = DocumentMetadata(
            title=title,
            company_ticker=company_ticker,
            document_type=document_type,
            filing_date=filing_date,
        )
    except PydanticValidationError as e:
        raise ValidationError(e.errors()[0]["msg"]) from e

    # Read one byte past the limit so oversized files are caught without
    # loading arbitrarily large bodies.
    data = await file.read(settings.max_upload_bytes + 1)
    file_name = file.filename or "document"

    logger.info("Upload received: %s (%d bytes)", file_name, len(data))

    doc = await ingest_upload(
        session,
        store,
        data=data,
        file_name=file_name,
        declared_type=file.content_type,
        metadata=metadata,
    )
    return DocumentResponse.model_validate(doc)
