"""Unit tests for DocumentLoader class."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import MagicMock, patch
from ragchunk.services.document_loader import DocumentLoader


def _fake_pdf(page_texts):
    pdf = MagicMock()
    pdf.__len__.return_value = len(page_texts)
    pages = []
    for text in page_texts:
        page = MagicMock()
        page.get_text.return_value = text
        pages.append(page)
    pdf.__getitem__.side_effect = lambda i: pages[i]
    return pdf


class TestDocumentLoader:
    """Test suite for DocumentLoader."""

    def test_load_text_file(self, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("# Notes\n\nSome text.", encoding="utf-8")

        document = DocumentLoader().load(str(path))

        assert document.filename == "notes.md"
        assert document.total_pages == 1
        assert document.text == "# Notes\n\nSome text."

    def test_form_feeds_become_pages(self, tmp_path):
        path = tmp_path / "paged.txt"
        path.write_text("one\ftwo words", encoding="utf-8")

        document = DocumentLoader().load(str(path))

        assert [p.page_number for p in document.pages] == [1, 2]
        assert document.pages[1].word_count == 2
        assert document.text == "one\ftwo words"

    @patch('ragchunk.services.document_loader.fitz')
    def test_load_pdf(self, mock_fitz, tmp_path):
        pdf = _fake_pdf(["Page one text", "Page two"])
        mock_fitz.open.return_value = pdf

        document = DocumentLoader().load(str(tmp_path / "guide.pdf"))

        assert document.filename == "guide.pdf"
        assert [p.page_number for p in document.pages] == [1, 2]
        assert document.text == "Page one text\fPage two"
        pdf.close.assert_called_once()

    @patch('ragchunk.services.document_loader.fitz')
    def test_pdf_is_closed_on_error(self, mock_fitz, tmp_path):
        pdf = _fake_pdf(["x"])
        pdf.__getitem__.side_effect = RuntimeError("corrupt page")
        mock_fitz.open.return_value = pdf

        with pytest.raises(RuntimeError, match="corrupt page"):
            DocumentLoader().load(str(tmp_path / "broken.pdf"))
        pdf.close.assert_called_once()

    def test_unsupported_extension(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported file type"):
            DocumentLoader().load(str(tmp_path / "image.png"))

    def test_load_directory_sorted_and_skips_failures(self, tmp_path):
        (tmp_path / "b.txt").write_text("bee", encoding="utf-8")
        (tmp_path / "a.md").write_text("ay", encoding="utf-8")
        (tmp_path / "c.txt").write_bytes(b"\xff\xfe invalid utf-8 \xff")
        (tmp_path / "ignored.csv").write_text("x,y", encoding="utf-8")

        documents = DocumentLoader(str(tmp_path)).load_directory()

        assert [d.filename for d in documents] == ["a.md", "b.txt"]

    def test_missing_directory(self, tmp_path):
        assert DocumentLoader(str(tmp_path / "nope")).load_directory() == []
