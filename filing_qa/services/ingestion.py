# =============================================================================
# Ingestion Service - Store, Record, Extract
# =============================================================================
#
# Turns an uploaded (or already-stored) file into a Document row with
# extracted text.
#
# FLOW (ingest_upload):
#   1. Validate type, emptiness and size   - nothing stored yet on failure
#   2. Put the bytes in object storage      - failure: no row is created
#   3. Insert the row as PROCESSING, commit - visible to listings;
#      a failed commit deletes the stored object again
#   4. Extract text (worker thread)
#   5. Transition PROCESSING → READY (text, preview, page count)
#                 PROCESSING → ERROR (error_message)
#
# READY and ERROR are terminal; `_transition` refuses to leave them. Every
# code path after step 3 ends in exactly one transition, so a row is never
# left PROCESSING once the handler returns.
#
# Deletion removes the row (questions go with it through the FK cascade)
# and then the stored object. The object delete is best effort: a failure is
# logged and the orphaned object is left for manual cleanup.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from pathlib import PurePath

from sqlalchemy.ext.asyncio import AsyncSession

from filing_qa.config import settings
from filing_qa.db.models import Document, DocumentStatus
from filing_qa.errors import NotFoundError, UpstreamServiceError, ValidationError
from filing_qa.models.requests import DocumentCreate, DocumentMetadata
from filing_qa.services.parser import ExtractedText, ExtractionError, detect_content_type, extract_text
from filing_qa.services.storage import ObjectStore

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_MAX_ERROR_CHARS = 1000


class InvalidTransition(RuntimeError):
    """Attempted to move a document out of a terminal state."""


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------


def _transition(
    doc: Document,
    status: DocumentStatus,
    *,
    extracted: ExtractedText | None = None,
    error_message: str | None = None,
) -> None:
    if doc.status.is_terminal:
        raise InvalidTransition(
            f"Document {doc.id} is already {doc.status.value}; "
            f"cannot move to {status.value}"
        )

    doc.status = status
    if status is DocumentStatus.READY and extracted is not None:
        doc.extracted_text = extracted.text
        doc.content_preview = extracted.preview
        doc.page_count = extracted.page_count
        doc.error_message = None
    elif status is DocumentStatus.ERROR:
        doc.error_message = (error_message or "Extraction failed")[:_MAX_ERROR_CHARS]


# ---------------------------------------------------------------------------
# Validation Helpers
# ---------------------------------------------------------------------------


def sanitise_filename(file_name: str) -> str:
    """Base name with anything outside [A-Za-z0-9._-] replaced by '_'."""
    name = PurePath(file_name.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "document"


def validate_file(
    file_name: str,
    size: int,
    declared_type: str | None,
    head: bytes | None = None,
) -> str:
    """
    Check an upload before any side effect.

    Returns the effective content type.

    Raises:
        ValidationError: unsupported type, empty file, or file too large.
    """
    content_type = detect_content_type(file_name, declared_type, head)
    if content_type is None:
        raise ValidationError(
            f"Unsupported file type for '{file_name}'. Upload a PDF or plain-text file.",
            code="unsupported_file_type",
        )
    if size <= 0:
        raise ValidationError("Uploaded file is empty.", code="empty_file")
    if size > settings.max_upload_bytes:
        raise ValidationError(
            f"File is {size} bytes; the limit is {settings.max_upload_mb} MB.",
            code="file_too_large",
        )
    return content_type


def storage_key_for(document_id: uuid.UUID, file_name: str) -> str:
    return f"documents/{document_id}/{sanitise_filename(file_name)}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def ingest_upload(
    session: AsyncSession,
    store: ObjectStore,
    *,
    data: bytes,
    file_name: str,
    declared_type: str | None = None,
    metadata: DocumentMetadata | None = None,
) -> Document:
    """
    Store an uploaded file, record it, and extract its text.

    Returns the Document in a terminal state (READY or ERROR).

    Raises:
        ValidationError: the file was rejected; nothing was stored.
        UpstreamServiceError: object storage failed; no row was created.
    """
    metadata = metadata or DocumentMetadata()
    content_type = validate_file(file_name, len(data), declared_type, data[:1024])

    document_id = uuid.uuid4()
    key = storage_key_for(document_id, file_name)
    await store.put(key, data, content_type)

    doc = Document(
        id=document_id,
        title=metadata.title or PurePath(file_name).stem or file_name,
        company_ticker=metadata.company_ticker,
        document_type=metadata.document_type,
        filing_date=metadata.filing_date,
        file_url=store.url_for(key),
        file_name=file_name,
        file_size=len(data),
        content_type=content_type,
        storage_key=key,
        status=DocumentStatus.PROCESSING,
    )
    session.add(doc)
    try:
        await session.commit()
    except Exception:
        await _discard_object(store, key, document_id)
        raise

    logger.info(
        "Stored upload: document_id=%s, file=%s (%d bytes)",
        doc.id, file_name, len(data),
    )

    await _run_extraction(session, doc, data)
    return doc


async def register_document(
    session: AsyncSession,
    store: ObjectStore,
    payload: DocumentCreate,
) -> Document:
    """
    Record a file that is already in the bucket and extract its text.

    Raises:
        ValidationError: file_url is outside the bucket, or the file name
            / size are not acceptable.
    """
    key = store.key_from_url(payload.file_url)
    if key is None:
        raise ValidationError(
            "file_url must point to an object in the configured bucket.",
            code="invalid_file_url",
        )
    content_type = validate_file(payload.file_name, payload.file_size, None)

    doc = Document(
        title=payload.title,
        company_ticker=payload.company_ticker,
        document_type=payload.document_type,
        filing_date=payload.filing_date,
        file_url=payload.file_url,
        file_name=payload.file_name,
        file_size=payload.file_size,
        content_type=content_type,
        storage_key=key,
        status=DocumentStatus.PROCESSING,
    )
    session.add(doc)
    await session.commit()

    logger.info("Registered document_id=%s for key %s", doc.id, key)

    try:
        data = await store.get(key)
    except (NotFoundError, UpstreamServiceError) as e:
        logger.warning("Could not read %s for document_id=%s: %s", key, doc.id, e)
        _transition(doc, DocumentStatus.ERROR, error_message=f"Could not read stored file: {e.message}")
        await session.commit()
        return doc

    if len(data) != payload.file_size:
        logger.warning(
            "Declared size %d differs from stored size %d for document_id=%s",
            payload.file_size, len(data), doc.id,
        )
        doc.file_size = len(data)

    if len(data) > settings.max_upload_bytes:
        _transition(
            doc, DocumentStatus.ERROR,
            error_message=(
                f"Stored file is {len(data)} bytes; "
                f"the limit is {settings.max_upload_mb} MB."
            ),
        )
        await session.commit()
        return doc

    await _run_extraction(session, doc, data)
    return doc


async def delete_document(
    session: AsyncSession,
    store: ObjectStore,
    document_id: uuid.UUID,
) -> None:
    """
    Delete a document, its questions, and (best effort) its stored file.

    Raises:
        NotFoundError: no such document.
    """
    doc = await session.get(Document, document_id)
    if doc is None:
        raise NotFoundError(f"Document {document_id} not found.")

    key = doc.storage_key
    await session.delete(doc)
    await session.commit()
    logger.info("Deleted document_id=%s", document_id)

    if key:
        await _discard_object(store, key, document_id)


async def _discard_object(store: ObjectStore, key: str, document_id: uuid.UUID) -> None:
    try:
        await store.delete(key)
    except UpstreamServiceError as e:
        logger.warning("Orphaned stored object %s for document_id=%s: %s", key, document_id, e)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


async def _run_extraction(session: AsyncSession, doc: Document, data: bytes) -> None:
    try:
        # Docling is CPU-bound; keep it off the event loop
        extracted = await asyncio.to_thread(
            extract_text, data, doc.content_type, doc.file_name,
        )
    except ExtractionError as e:
        logger.warning("Extraction failed for document_id=%s: %s", doc.id, e)
        _transition(doc, DocumentStatus.ERROR, error_message=str(e))
    except Exception as e:
        logger.exception("Unexpected extraction failure for document_id=%s", doc.id)
        _transition(doc, DocumentStatus.ERROR, error_message=f"Unexpected extraction failure: {e}")
    else:
        _transition(doc, DocumentStatus.READY, extracted=extracted)
        logger.info(
            "Document ready: document_id=%s, %d pages, %d chars",
            doc.id, extracted.page_count, len(extracted.text),
        )

    await session.commit()
