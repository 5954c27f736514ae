"""Paragraph, sentence, section and page boundary detection."""
import re
from dataclasses import dataclass
from typing import List, Optional

from ragchunk.models.document import DocumentSection, TextSpan, PAGE_BREAK

# Blank line (optionally holding horizontal whitespace) or a page break
_PARAGRAPH_BREAK = re.compile(r"(?:\n[ \t\r\v\f]*\n|\f)\s*")

# Terminal punctuation, optional closing quotes/brackets, then whitespace or end
_SENTENCE_END = re.compile(r"[.!?]+[\"'”’)\]]*(?=\s|$)")

_ATX_HEADING = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*#*[ \t]*$")
_SETEXT_H1 = re.compile(r"^[ \t]*={2,}[ \t]*$")
_SETEXT_H2 = re.compile(r"^[ \t]*-{2,}[ \t]*$")
_FENCE = re.compile(r"^[ \t]*(```|~~~)")

MAX_CAPS_HEADING_LENGTH = 60


@dataclass
class _Heading:
    title: str
    level: int
    start: int
    end: int


def _append_trimmed(spans: List[TextSpan], text: str, start: int, end: int) -> None:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if end > start:
        spans.append(TextSpan(start, end))


def split_paragraphs(text: str, start: int = 0, end: Optional[int] = None) -> List[TextSpan]:
    """
    Split a region of text into paragraphs.

    Args:
        text: Source text
        start: Region start offset
        end: Region end offset (defaults to end of text)

    Returns:
        Ordered, non-overlapping paragraph spans trimmed of surrounding
        whitespace; the gaps between them hold only whitespace
    """
    end = len(text) if end is None else end
    spans: List[TextSpan] = []
    position = start
    for match in _PARAGRAPH_BREAK.finditer(text, start, end):
        _append_trimmed(spans, text, position, match.start())
        position = match.end()
    _append_trimmed(spans, text, position, end)
    return spans


def split_sentences(text: str, start: int = 0, end: Optional[int] = None) -> List[TextSpan]:
    """
    Split a region of text into sentences.

    A sentence ends at a run of '.', '!' or '?' (plus any closing quotes or
    brackets) followed by whitespace or the end of the region.

    Args:
        text: Source text
        start: Region start offset
        end: Region end offset (defaults to end of text)

    Returns:
        Ordered, non-overlapping sentence spans trimmed of surrounding whitespace
    """
    end = len(text) if end is None else end
    spans: List[TextSpan] = []
    position = start
    for match in _SENTENCE_END.finditer(text, start, end):
        _append_trimmed(spans, text, position, match.end())
        position = match.end()
    _append_trimmed(spans, text, position, end)
    return spans


def page_number_at(text: str, position: int) -> Optional[int]:
    """
    Find the 1-indexed page holding a character position.

    Pages are separated by form feeds; text without any page break has no
    page numbers.
    """
    if PAGE_BREAK not in text:
        return None
    return text.count(PAGE_BREAK, 0, position) + 1


def _is_blank(line: Optional[str]) -> bool:
    return line is None or not line.strip()


def _is_caps_heading(line: str, previous: Optional[str], following: Optional[str]) -> bool:
    """Short standalone upper-case line such as 'INTRODUCTION'."""
    stripped = line.strip()
    if not 3 <= len(stripped) <= MAX_CAPS_HEADING_LENGTH:
        return False
    if not stripped[0].isalnum() or stripped[-1] in ".,;:!?":
        return False
    letters = [c for c in stripped if c.isalpha()]
    if len(letters) < 2 or stripped != stripped.upper():
        return False
    return _is_blank(previous) and _is_blank(following)


def _find_headings(text: str) -> List[_Heading]:
    lines = text.splitlines(keepends=True)
    offsets = []
    offset = 0
    for line in lines:
        offsets.append(offset)
        offset += len(line)

    bare = [line.rstrip("\r\n") for line in lines]
    headings: List[_Heading] = []
    in_fence = False
    i = 0

    while i < len(bare):
        line = bare[i]
        previous = bare[i - 1] if i > 0 else None
        following = bare[i + 1] if i + 1 < len(bare) else None

        if _FENCE.match(line):
            in_fence = not in_fence
            i += 1
            continue
        if in_fence or _is_blank(line):
            i += 1
            continue

        atx = _ATX_HEADING.match(line)
        if atx and atx.group(2).strip("# \t"):
            headings.append(_Heading(
                title=atx.group(2).strip(),
                level=len(atx.group(1)),
                start=offsets[i],
                end=offsets[i] + len(line),
            ))
            i += 1
            continue

        if following is not None and _is_blank(previous):
            level = 1 if _SETEXT_H1.match(following) else 2 if _SETEXT_H2.match(following) else 0
            if level:
                headings.append(_Heading(
                    title=line.strip(),
                    level=level,
                    start=offsets[i],
                    end=offsets[i + 1] + len(following),
                ))
                i += 2
                continue

        if _is_caps_heading(line, previous, following):
            headings.append(_Heading(
                title=line.strip(),
                level=1,
                start=offsets[i],
                end=offsets[i] + len(line),
            ))

        i += 1

    return headings


def detect_sections(text: str) -> List[DocumentSection]:
    """
    Detect heading-delimited sections.

    Recognizes Markdown ATX headings ('# Title'), setext headings (a line
    underlined with '===' or '---') and short standalone upper-case lines.
    Headings inside fenced code blocks are ignored.

    Sections are contiguous and cover the whole text: content before the first
    heading forms an implicit untitled section, and a document without any
    heading is a single implicit section.

    Args:
        text: Source text

    Returns:
        Ordered sections (at least one)
    """
    headings = _find_headings(text)
    sections: List[DocumentSection] = []

    if not headings or text[:headings[0].start].strip():
        first_end = headings[0].start if headings else len(text)
        sections.append(DocumentSection(
            title=None,
            level=0,
            start_char=0,
            end_char=first_end,
            page_number=page_number_at(text, 0),
        ))

    for index, heading in enumerate(headings):
        start = heading.start if sections else 0
        end = headings[index + 1].start if index + 1 < len(headings) else len(text)
        sections.append(DocumentSection(
            title=heading.title,
            level=heading.level,
            start_char=start,
            end_char=end,
            page_number=page_number_at(text, heading.start),
            heading_end=heading.end,
        ))

    return sections


def find_section(sections: List[DocumentSection], position: int) -> Optional[DocumentSection]:
    """Return the last section starting at or before a position."""
    found = None
    for section in sections:
        if section.start_char > position:
            break
        found = section
    return found
