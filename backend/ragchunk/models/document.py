"""Document data models."""
from dataclasses import dataclass, field
from typing import List, Optional

PAGE_BREAK = "\f"


@dataclass(frozen=True)
class TextSpan:
    """Half-open character range [start, end) into a source text."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def slice(self, text: str) -> str:
        return text[self.start:self.end]


@dataclass
class DocumentSection:
    """A heading-delimited region of a document."""
    title: Optional[str]  # None for the implicit (untitled) section
    level: int  # 1 = H1, 2 = H2, ...; 0 for the implicit section
    start_char: int
    end_char: int  # start of the next section, or end of the document
    page_number: Optional[int] = None
    heading_end: Optional[int] = None  # end of the heading line(s), if titled


@dataclass
class Page:
    """Represents a single page from a document."""
    page_number: int
    text: str
    word_count: int


@dataclass
class Document:
    """Represents a loaded source document."""
    filename: str
    pages: List[Page] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    @property
    def text(self) -> str:
        """Full text with pages separated by form feeds."""
        return PAGE_BREAK.join(page.text for page in self.pages)
