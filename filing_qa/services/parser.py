# =============================================================================
# Text Extraction - PDF (Docling) and Plain Text
# =============================================================================
#
# Turns the raw bytes of an uploaded filing into plain text suitable for
# prompting, plus a short preview string for listings.
#
# A pure function of its input: no storage, no database, no network. The
# caller decides what a failure means (the ingestion pipeline marks the
# document `error`).
#
# PDF:
#   Docling converts an in-memory stream; items are iterated in reading
#   order. Each time the page changes a `[Page N]` marker is emitted so the
#   LLM (and citation lookup) can refer to page numbers. Tables are exported
#   as markdown, which LLMs read more reliably than raw cell text.
#
# Plain text:
#   UTF-8 (with or without BOM), falling back to latin-1. EDGAR full-text
#   submissions separate pages with form feeds; those become page markers.
# =============================================================================

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import PurePath

from filing_qa.config import settings

logger = logging.getLogger(__name__)

PDF = "application/pdf"
PLAIN_TEXT = "text/plain"

# Declared content types we accept, and the file extensions that imply them
SUPPORTED_TYPES = {PDF, PLAIN_TEXT}
_EXTENSION_TYPES = {".pdf": PDF, ".txt": PLAIN_TEXT, ".text": PLAIN_TEXT}

_WHITESPACE = re.compile(r"\s+")
_PAGE_MARKER = "[Page {n}]"


class ExtractionError(Exception):
    """The file could not be read as the declared type."""


@dataclass
class ExtractedText:
    """Result of extracting a document."""

    text: str          # Full plain text, page markers included
    preview: str       # First N characters, whitespace-collapsed
    page_count: int


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_content_type(
    file_name: str,
    declared: str | None = None,
    head: bytes | None = None,
) -> str | None:
    """
    Resolve the effective content type of an upload.

    The declared multipart type wins when it is one we support; browsers
    often send `application/octet-stream`, so the extension is the fallback.
    When the declared type and the extension disagree and the leading bytes
    are given, the `%PDF` header decides. Returns None for unsupported files.
    """
    by_extension = _EXTENSION_TYPES.get(PurePath(file_name or "").suffix.lower())
    by_declared = None
    if declared:
        base = declared.split(";", 1)[0].strip().lower()
        if base in SUPPORTED_TYPES:
            by_declared = base

    if by_declared and by_extension and by_declared != by_extension and head is not None:
        return PDF if looks_like_pdf(head) else PLAIN_TEXT
    return by_declared or by_extension


def looks_like_pdf(data: bytes) -> bool:
    # The header may be preceded by junk bytes; readers scan the first 1 KB.
    return b"%PDF" in data[:1024]


def extract_text(
    data: bytes,
    content_type: str,
    file_name: str = "document",
    preview_chars: int | None = None,
) -> ExtractedText:
    """
    Extract plain text and a preview from file bytes.

    Args:
        data: Raw file bytes.
        content_type: "application/pdf" or "text/plain".
        file_name: Used for Docling's stream name and log messages.
        preview_chars: Preview length (default: settings.preview_chars).

    Raises:
        ExtractionError: unsupported type, corrupt file, or no text found.
    """
    if content_type == PDF:
        text, body, page_count = _extract_pdf(data, file_name)
    elif content_type == PLAIN_TEXT:
        text, body, page_count = _extract_plain_text(data)
    else:
        raise ExtractionError(f"Unsupported content type: {content_type}")

    if not text.strip():
        raise ExtractionError(f"No text could be extracted from '{file_name}'")

    # Page markers are for the model, not for listings
    preview = make_preview(body, preview_chars or settings.preview_chars)

    logger.info(
        "Extracted '%s': %d chars, %d pages", file_name, len(text), page_count,
    )
    return ExtractedText(text=text, preview=preview, page_count=page_count)


def make_preview(text: str, limit: int) -> str:
    """Collapse whitespace and cut to `limit` characters."""
    return _WHITESPACE.sub(" ", text).strip()[:limit]


# ---------------------------------------------------------------------------
# Plain Text
# ---------------------------------------------------------------------------


def _extract_plain_text(data: bytes) -> tuple[str, str, int]:
    try:
        raw = data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raw = data.decode("latin-1")

    if "\x00" in raw:
        raise ExtractionError("File contains binary data and is not plain text")

    raw = raw.replace("\r\n", "\n").replace("\r", "\n")
    pages = [p.strip("\n") for p in raw.split("\f")]
    pages = [p for p in pages if p.strip()]

    body = " ".join(pages)
    if len(pages) <= 1:
        return body, body, len(pages)

    sections = [
        f"{_PAGE_MARKER.format(n=i)}\n{page}" for i, page in enumerate(pages, 1)
    ]
    return "\n\n".join(sections), body, len(pages)


# ---------------------------------------------------------------------------
# PDF - Docling Converter (lazy singleton)
# ---------------------------------------------------------------------------
# Initialisation loads layout models into memory (a few seconds on first
# use), so one converter is reused for the life of the process. Docling is
# imported lazily: plain-text uploads never pay for it.
# ---------------------------------------------------------------------------

_converter = None


def _get_converter():
    """Lazily initialize and cache the Docling DocumentConverter."""
    global _converter
    if _converter is None:
        from docling.datamodel.base_models import InputFormat
        from docling.datamodel.pipeline_options import PdfPipelineOptions
        from docling.document_converter import DocumentConverter, PdfFormatOption

        logger.info(
            "Initializing Docling DocumentConverter "
            "(first use, may take a few seconds)..."
        )

        # Financial statements are table-heavy; OCR is left off because
        # EDGAR filings are born-digital.
        pipeline_options = PdfPipelineOptions()
        pipeline_options.do_table_structure = True
        pipeline_options.do_ocr = False

        _converter = DocumentConverter(
            format_options={
                InputFormat.PDF: PdfFormatOption(pipeline_options=pipeline_options),
            }
        )
        logger.info("Docling DocumentConverter initialized")
    return _converter


def _extract_pdf(data: bytes, file_name: str) -> tuple[str, str, int]:
    if not looks_like_pdf(data):
        raise ExtractionError(f"'{file_name}' is not a valid PDF file")

    from docling.datamodel.base_models import DocumentStream
    from docling_core.types.doc.labels import DocItemLabel

    converter = _get_converter()
    stream = DocumentStream(name=file_name, stream=BytesIO(data))

    try:
        result = converter.convert(stream)
    except Exception as exc:
        raise ExtractionError(f"Failed to parse PDF '{file_name}': {exc}") from exc

    parts: list[str] = []
    texts: list[str] = []
    current_page = 0
    pages_seen: set[int] = set()

    for item, _level in result.document.iterate_items():
        label = getattr(item, "label", None)

        if label == DocItemLabel.TABLE:
            text = _table_to_markdown(item, result.document)
        elif label in (
            DocItemLabel.SECTION_HEADER,
            DocItemLabel.TITLE,
            DocItemLabel.TEXT,
            DocItemLabel.LIST_ITEM,
            DocItemLabel.CAPTION,
            DocItemLabel.FOOTNOTE,
        ):
            text = (getattr(item, "text", "") or "").strip()
        else:
            continue

        if not text:
            continue

        page_no = item.prov[0].page_no if getattr(item, "prov", None) else 0
        if page_no and page_no != current_page:
            current_page = page_no
            pages_seen.add(page_no)
            parts.append(_PAGE_MARKER.format(n=page_no))
        parts.append(text)
        texts.append(text)

    pages = getattr(result.document, "pages", None) or {}
    page_count = len(pages) or max(pages_seen, default=0)
    return "\n\n".join(parts), " ".join(texts), page_count


def _table_to_markdown(table_item: object, document: object) -> str:
    """
    Convert a Docling TableItem to a markdown-formatted string.

    Falls back to the item's plain text if the DataFrame export fails.
    """
    try:
        if hasattr(table_item, "export_to_dataframe"):
            df = table_item.export_to_dataframe(doc=document)
            return df.to_markdown(index=False)
    except Exception as exc:
        logger.warning("Table export to DataFrame failed: %s", exc)

    text = getattr(table_item, "text", "")
    return text.strip() if text else ""
