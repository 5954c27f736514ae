"""Document loading for PDF, plain text and Markdown files."""
import logging
import os
from typing import List, Optional

import fitz  # PyMuPDF

from ragchunk.models.document import Document, Page

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".md", ".markdown")
SUPPORTED_EXTENSIONS = (".pdf",) + TEXT_EXTENSIONS


class DocumentLoader:
    """Loads source files into Documents whose pages map to page numbers."""

    def __init__(self, docs_directory: Optional[str] = None):
        """
        Initialize DocumentLoader.

        Args:
            docs_directory: Directory scanned by load_directory
        """
        self.docs_directory = docs_directory

    def load(self, path: str) -> Document:
        """
        Load a single file.

        PDFs keep one Page per PDF page; text files are one page, or one per
        form-feed-separated block.

        Raises:
            ValueError: If the extension is not supported
            OSError: If the file cannot be read
        """
        filename = os.path.basename(path)
        extension = os.path.splitext(filename)[1].lower()

        if extension == ".pdf":
            return self._load_pdf(path, filename)
        if extension in TEXT_EXTENSIONS:
            return self._load_text(path, filename)

        raise ValueError(f"Unsupported file type: {filename}")

    def load_directory(self, directory: Optional[str] = None) -> List[Document]:
        """
        Load every supported file in a directory, in filename order.

        Files that fail to load are logged and skipped.
        """
        directory = directory or self.docs_directory
        documents: List[Document] = []

        if not directory or not os.path.isdir(directory):
            logger.error(f"Documents directory not found: {directory}")
            return documents

        filenames = sorted(
            f for f in os.listdir(directory)
            if f.lower().endswith(SUPPORTED_EXTENSIONS)
        )
        logger.info(f"Found {len(filenames)} documents in {directory}")

        for filename in filenames:
            try:
                document = self.load(os.path.join(directory, filename))
            except Exception as e:
                logger.error(f"Error loading {filename}: {str(e)}", exc_info=True)
                continue
            documents.append(document)
            logger.info(f"Loaded {filename}: {document.total_pages} pages")

        logger.info(f"Successfully loaded {len(documents)} documents")
        return documents

    def _load_text(self, path: str, filename: str) -> Document:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()

        pages = [
            Page(page_number=number, text=block, word_count=len(block.split()))
            for number, block in enumerate(text.split("\f"), start=1)
        ]
        return Document(filename=filename, pages=pages)

    def _load_pdf(self, path: str, filename: str) -> Document:
        pdf_document = fitz.open(path)
        try:
            pages = []
            for page_num in range(len(pdf_document)):
                text = pdf_document[page_num].get_text()
                pages.append(Page(
                    page_number=page_num + 1,  # 1-indexed
                    text=text,
                    word_count=len(text.split())
                ))
        finally:
            pdf_document.close()

        return Document(filename=filename, pages=pages)
