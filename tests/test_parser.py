# =============================================================================
# Unit Tests - Text Extraction
# =============================================================================
#
# Plain-text extraction runs for real. PDF tests stop before Docling is
# imported (invalid header) or replace the converter with a mock.
# =============================================================================

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from filing_qa.services import parser
from filing_qa.services.parser import (
    PDF,
    PLAIN_TEXT,
    ExtractedText,
    ExtractionError,
    _table_to_markdown,
    detect_content_type,
    extract_text,
    make_preview,
)


class TestDetectContentType:
    def test_declared_pdf(self):
        """Declared type is used when supported."""
        assert detect_content_type("report", "application/pdf") == PDF

    def test_declared_type_with_parameters(self):
        """Parameters after ";" are ignored."""
        assert detect_content_type("a.txt", "text/plain; charset=utf-8") == PLAIN_TEXT

    def test_octet_stream_falls_back_to_extension(self):
        """Generic browser type defers to the extension."""
        assert detect_content_type("10k.PDF", "application/octet-stream") == PDF

    def test_txt_extension(self):
        assert detect_content_type("filing.txt") == PLAIN_TEXT

    def test_unsupported(self):
        """Neither type nor extension supported."""
        assert detect_content_type("sheet.xlsx", "application/vnd.ms-excel") is None

    def test_no_extension_no_type(self):
        assert detect_content_type("README") is None

    def test_pdf_header_settles_conflict(self):
        """A .pdf declared as text/plain is read as PDF when it has a header."""
        assert detect_content_type("10k.pdf", "text/plain", b"%PDF-1.7\n") == PDF

    def test_missing_pdf_header_settles_conflict(self):
        assert detect_content_type("notes.txt", "application/pdf", b"Net sales") == PLAIN_TEXT

    def test_conflict_without_bytes_keeps_declared(self):
        assert detect_content_type("10k.pdf", "text/plain") == PLAIN_TEXT

    def test_pdf_header_after_junk(self):
        assert detect_content_type("10k.pdf", "text/plain", b"\r\n%PDF-1.4") == PDF


class TestPlainText:
    def test_preview_is_first_200_chars(self):
        """Preview is the leading characters of the text."""
        text = "A" * 150 + " " + "B" * 150
        result = extract_text(text.encode(), PLAIN_TEXT, "a.txt", preview_chars=200)
        assert isinstance(result, ExtractedText)
        assert result.text == text
        assert result.preview == text[:200]
        assert result.page_count == 1

    def test_preview_collapses_whitespace(self):
        """Runs of whitespace become single spaces."""
        result = extract_text(b"Item 1.\n\n   Business\tOverview", PLAIN_TEXT, preview_chars=200)
        assert result.preview == "Item 1. Business Overview"

    def test_short_text_preview_is_whole_text(self):
        result = extract_text(b"Revenue grew 8%.", PLAIN_TEXT)
        assert result.preview == "Revenue grew 8%."

    def test_utf8_bom_stripped(self):
        """A UTF-8 BOM is not part of the text."""
        result = extract_text("\ufeffNet income".encode("utf-8"), PLAIN_TEXT)
        assert result.text == "Net income"

    def test_latin1_fallback(self):
        """Invalid UTF-8 is decoded as latin-1."""
        result = extract_text("Soci\xe9t\xe9 G\xe9n\xe9rale".encode("latin-1"), PLAIN_TEXT)
        assert result.text == "Société Générale"

    def test_crlf_normalised(self):
        result = extract_text(b"line one\r\nline two", PLAIN_TEXT)
        assert result.text == "line one\nline two"

    def test_form_feeds_become_page_markers(self):
        """EDGAR form feeds split pages."""
        data = b"Cover page\fIncome statement\fBalance sheet"
        result = extract_text(data, PLAIN_TEXT)
        assert result.page_count == 3
        assert result.text.startswith("[Page 1]\nCover page")
        assert "[Page 2]\nIncome statement" in result.text
        assert "[Page 3]\nBalance sheet" in result.text

    def test_multi_page_preview_has_no_markers(self):
        """Preview of a paged file starts with the file's own words."""
        data = b"ACME CORP FORM 10-K\nTotal net sales\fPage two text."
        result = extract_text(data, PLAIN_TEXT, preview_chars=200)
        assert result.text.startswith("[Page 1]")
        assert result.preview == "ACME CORP FORM 10-K Total net sales Page two text."

    def test_multi_page_preview_truncated(self):
        result = extract_text(b"abcdef\fghijkl", PLAIN_TEXT, preview_chars=8)
        assert result.preview == "abcdef g"

    def test_blank_pages_skipped(self):
        """Empty pages are not counted."""
        result = extract_text(b"Page one\f\n\n\fPage two", PLAIN_TEXT)
        assert result.page_count == 2

    def test_empty_file_raises(self):
        with pytest.raises(ExtractionError):
            extract_text(b"", PLAIN_TEXT, "empty.txt")

    def test_whitespace_only_raises(self):
        """Whitespace-only files have no text."""
        with pytest.raises(ExtractionError, match="No text"):
            extract_text(b"  \n\t  \n", PLAIN_TEXT, "blank.txt")

    def test_binary_data_raises(self):
        """NUL bytes mean the file is not text."""
        with pytest.raises(ExtractionError, match="binary"):
            extract_text(b"\x89PNG\r\n\x1a\n\x00\x00", PLAIN_TEXT, "image.txt")


class TestUnsupported:
    def test_unknown_content_type_raises(self):
        with pytest.raises(ExtractionError, match="Unsupported"):
            extract_text(b"data", "image/png")


class TestPdf:
    def test_missing_pdf_header_raises_without_loading_docling(self):
        """Non-PDF bytes fail before Docling loads."""
        with patch.object(parser, "_get_converter") as get_converter:
            with pytest.raises(ExtractionError, match="not a valid PDF"):
                extract_text(b"this is not a pdf", PDF, "fake.pdf")
            get_converter.assert_not_called()

    def test_converter_failure_becomes_extraction_error(self):
        """Docling errors are wrapped."""
        pytest.importorskip("docling")
        converter = MagicMock()
        converter.convert.side_effect = RuntimeError("corrupt xref table")

        with patch.object(parser, "_get_converter", return_value=converter):
            with pytest.raises(ExtractionError, match="corrupt xref table"):
                extract_text(b"%PDF-1.7\n...", PDF, "broken.pdf")

    def test_pages_become_markers_but_not_preview(self):
        """Docling items get page markers; the preview skips them."""
        pytest.importorskip("docling")
        from docling_core.types.doc.labels import DocItemLabel

        def _item(text, page):
            return SimpleNamespace(
                label=DocItemLabel.TEXT, text=text, prov=[SimpleNamespace(page_no=page)],
            )

        document = MagicMock()
        document.iterate_items.return_value = [
            (_item("Item 7. MD&A", 1), 0),
            (_item("Net sales rose.", 1), 0),
            (_item("Item 8. Statements", 2), 0),
        ]
        document.pages = {1: object(), 2: object(), 3: object()}
        converter = MagicMock()
        converter.convert.return_value = SimpleNamespace(document=document)

        with patch.object(parser, "_get_converter", return_value=converter):
            result = extract_text(b"%PDF-1.7\n...", PDF, "10k.pdf", preview_chars=200)

        assert result.text == (
            "[Page 1]\n\nItem 7. MD&A\n\nNet sales rose.\n\n"
            "[Page 2]\n\nItem 8. Statements"
        )
        assert result.preview == "Item 7. MD&A Net sales rose. Item 8. Statements"
        assert result.page_count == 3


class TestTableToMarkdown:
    def test_dataframe_export(self):
        df = MagicMock()
        df.to_markdown.return_value = "| a | b |"
        table = MagicMock()
        table.export_to_dataframe.return_value = df

        assert _table_to_markdown(table, document=object()) == "| a | b |"
        df.to_markdown.assert_called_once_with(index=False)

    def test_export_failure_falls_back_to_text(self):
        """A failed DataFrame export uses the item text."""
        table = MagicMock()
        table.export_to_dataframe.side_effect = ValueError("ragged table")
        table.text = "  Revenue 391,035  "

        assert _table_to_markdown(table, document=object()) == "Revenue 391,035"

    def test_item_without_export(self):
        table = SimpleNamespace(text="")
        assert _table_to_markdown(table, document=object()) == ""


class TestMakePreview:
    def test_limit(self):
        assert make_preview("abcdef", 3) == "abc"

    def test_strips(self):
        assert make_preview("\n\n  hello  \n", 10) == "hello"
