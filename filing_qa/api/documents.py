# =============================================================================
# Documents API - List, Register, Fetch, Delete
# =============================================================================
#
# ENDPOINTS:
#   GET    /documents            - newest first, optional ?status= filter
#   POST   /documents            - register a file already in the bucket
#   GET    /documents/{id}       - one document
#   DELETE /documents/{id}       - document, its questions, its stored file
#
# File uploads go through POST /upload (upload.py).
# =============================================================================

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from filing_qa.api.deps import get_store
from filing_qa.db.engine import get_async_session
from filing_qa.db.models import DocumentStatus
from filing_qa.models.requests import DocumentCreate
from filing_qa.models.responses import DeleteResponse, DocumentListResponse, DocumentResponse
from filing_qa.services import ingestion, listing
from filing_qa.services.storage import ObjectStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Documents"])


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List documents",
    description="All documents, newest first. Filter by extraction status.",
)
async def list_documents_endpoint(
    status: DocumentStatus | None = Query(default=None, description="processing, ready or error"),
    limit: int = Query(default=listing.DEFAULT_LIMIT, ge=1, le=listing.MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_async_session),
) -> DocumentListResponse:
    docs = await listing.list_documents(session, status=status, limit=limit, offset=offset)
    return DocumentListResponse(
        count=len(docs),
        documents=[DocumentResponse.model_validate(d) for d in docs],
    )


@router.post(
    "/documents",
    response_model=DocumentResponse,
    status_code=201,
    summary="Register an already-stored document",
    description=(
        "Create a document record for a file that is already in the "
        "configured bucket, then extract its text. The returned document "
        "is 'ready' or 'error', never 'processing'."
    ),
)
async def create_document_endpoint(
    payload: DocumentCreate,
    session: AsyncSession = Depends(get_async_session),
    store: ObjectStore = Depends(get_store),
) -> DocumentResponse:
    doc = await ingestion.register_document(session, store, payload)
    return DocumentResponse.model_validate(doc)


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    summary="Get one document",
)
async def get_document_endpoint(
    document_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
) -> DocumentResponse:
    doc = await listing.get_document(session, document_id)
    return DocumentResponse.model_validate(doc)


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteResponse,
    summary="Delete a document",
    description="Deletes the document, all of its questions, and its stored file.",
)
async def delete_document_endpoint(
    document_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
    store: ObjectStore = Depends(get_store),
) -> DeleteResponse:
    await ingestion.delete_document(session, store, document_id)
    return DeleteResponse(id=document_id)
