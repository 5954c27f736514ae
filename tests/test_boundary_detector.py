"""Unit tests for paragraph, sentence, section and page detection."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from ragchunk.services.boundary_detector import (
    detect_sections,
    find_section,
    page_number_at,
    split_paragraphs,
    split_sentences,
)


class TestSplitParagraphs:
    """Test suite for split_paragraphs."""

    def test_blank_lines_separate_paragraphs(self):
        text = "First paragraph.\n\nSecond paragraph.\n   \nThird."
        spans = split_paragraphs(text)
        assert [s.slice(text) for s in spans] == ["First paragraph.", "Second paragraph.", "Third."]

    def test_single_newline_does_not_split(self):
        text = "Line one\nline two"
        assert [s.slice(text) for s in split_paragraphs(text)] == ["Line one\nline two"]

    def test_form_feed_splits(self):
        text = "Page one.\fPage two."
        assert [s.slice(text) for s in split_paragraphs(text)] == ["Page one.", "Page two."]

    def test_region_bounds(self):
        text = "Skip me.\n\nKeep this.\n\nAnd this."
        start = text.index("Keep")
        spans = split_paragraphs(text, start)
        assert [s.slice(text) for s in spans] == ["Keep this.", "And this."]

    def test_whitespace_only(self):
        assert split_paragraphs(" \n\n \n") == []


class TestSplitSentences:
    """Test suite for split_sentences."""

    def test_terminal_punctuation(self):
        text = "Is it? Yes! It works. Done"
        assert [s.slice(text) for s in split_sentences(text)] == ["Is it?", "Yes!", "It works.", "Done"]

    def test_decimal_numbers_do_not_split(self):
        text = "Pi is 3.14 roughly. Next."
        assert [s.slice(text) for s in split_sentences(text)] == ["Pi is 3.14 roughly.", "Next."]

    def test_closing_quote_stays_with_sentence(self):
        text = 'He said "stop." Then left.'
        assert [s.slice(text) for s in split_sentences(text)] == ['He said "stop."', "Then left."]


class TestPageNumbers:
    """Test suite for page_number_at."""

    def test_no_page_breaks(self):
        assert page_number_at("plain text", 3) is None

    def test_counts_form_feeds_before_position(self):
        text = "one\ftwo\fthree"
        assert page_number_at(text, 0) == 1
        assert page_number_at(text, text.index("two")) == 2
        assert page_number_at(text, text.index("three")) == 3


class TestDetectSections:
    """Test suite for detect_sections."""

    def test_no_headings_is_one_untitled_section(self):
        text = "Just some text.\n\nMore text."
        sections = detect_sections(text)
        assert len(sections) == 1
        assert sections[0].title is None
        assert sections[0].start_char == 0
        assert sections[0].end_char == len(text)

    def test_markdown_headings(self):
        text = "# Intro\n\nHello.\n\n## Details\n\nMore."
        sections = detect_sections(text)
        assert [(s.title, s.level) for s in sections] == [("Intro", 1), ("Details", 2)]
        assert sections[0].start_char == 0
        assert sections[0].end_char == sections[1].start_char
        assert sections[1].end_char == len(text)
        assert sections[0].heading_end == len("# Intro")

    def test_preamble_becomes_untitled_section(self):
        text = "Preamble text.\n\n# Heading\n\nBody."
        sections = detect_sections(text)
        assert [s.title for s in sections] == [None, "Heading"]
        assert sections[0].end_char == text.index("# Heading")

    def test_setext_and_caps_headings(self):
        text = "Overview\n========\n\nText here.\n\nMETHODS\n\nMore text."
        sections = detect_sections(text)
        assert [s.title for s in sections] == ["Overview", "METHODS"]

    def test_headings_in_code_fences_are_ignored(self):
        text = "# Real\n\n```\n# not a heading\n```\n\nAfter."
        sections = detect_sections(text)
        assert [s.title for s in sections] == ["Real"]

    def test_section_page_numbers(self):
        text = "# A\n\nalpha text.\f# B\n\nbeta text."
        sections = detect_sections(text)
        assert [(s.title, s.page_number) for s in sections] == [("A", 1), ("B", 2)]

    def test_find_section(self):
        text = "# One\n\nfirst\n\n# Two\n\nsecond"
        sections = detect_sections(text)
        assert find_section(sections, text.index("second")).title == "Two"
        assert find_section(sections, 0).title == "One"
