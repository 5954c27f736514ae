"""Unit tests for the chunk assembler."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from ragchunk.models.chunk import ChunkingStrategy
from ragchunk.services.chunk_assembler import (
    ChunkDraft,
    assemble_chunks,
    count_words,
    reconstruct_text,
    total_tokens,
)
from ragchunk.services.token_estimator import HeuristicTokenEstimator


TEXT = "Alpha beta gamma. Delta epsilon zeta. Eta theta iota."


class TestAssembleChunks:
    """Test suite for assemble_chunks."""

    def test_indices_content_and_offsets(self):
        drafts = [ChunkDraft(18, 37), ChunkDraft(0, 17)]
        chunks = assemble_chunks(TEXT, drafts, "doc-1", ChunkingStrategy.SEMANTIC, HeuristicTokenEstimator())

        assert [c.chunk_index for c in chunks] == [0, 1]
        assert chunks[0].content == "Alpha beta gamma."
        assert chunks[1].content == "Delta epsilon zeta."
        assert chunks[0].metadata.start_char == 0
        assert chunks[0].metadata.end_char == 17
        assert chunks[0].metadata.word_count == 3
        assert all(c.object_id == "doc-1" for c in chunks)
        assert all(c.chunking_strategy == ChunkingStrategy.SEMANTIC for c in chunks)

    def test_token_counts_use_estimator(self):
        estimator = HeuristicTokenEstimator()
        chunks = assemble_chunks(TEXT, [ChunkDraft(0, len(TEXT))], "doc", ChunkingStrategy.FIXED, estimator)
        assert chunks[0].token_count == estimator.estimate(TEXT)
        assert total_tokens(chunks) == chunks[0].token_count

    def test_overlap_flags_follow_character_ranges(self):
        drafts = [ChunkDraft(0, 24), ChunkDraft(18, 37), ChunkDraft(38, len(TEXT))]
        chunks = assemble_chunks(TEXT, drafts, "doc", ChunkingStrategy.FIXED, HeuristicTokenEstimator())

        assert chunks[0].metadata.has_overlap_before is False
        assert chunks[0].metadata.has_overlap_after is True
        assert chunks[1].metadata.has_overlap_before is True
        assert chunks[1].metadata.has_overlap_after is False
        assert chunks[2].metadata.has_overlap_before is False

    def test_page_number_from_first_visible_character(self):
        text = "page one\f\n  page two"
        drafts = [ChunkDraft(0, 8), ChunkDraft(8, len(text))]
        chunks = assemble_chunks(text, drafts, "doc", ChunkingStrategy.FIXED, HeuristicTokenEstimator())
        assert [c.page_number for c in chunks] == [1, 2]

    def test_draft_page_and_extra_are_kept(self):
        drafts = [ChunkDraft(0, 17, section_title="Intro", page_number=3, extra={"unitCount": 1})]
        chunks = assemble_chunks(TEXT, drafts, "doc", ChunkingStrategy.HYBRID, HeuristicTokenEstimator())
        assert chunks[0].page_number == 3
        assert chunks[0].section_title == "Intro"
        assert chunks[0].metadata.extra == {"unitCount": 1}


class TestReconstructText:
    """Test suite for reconstruct_text."""

    def test_drops_overlapping_prefixes(self):
        drafts = [ChunkDraft(0, 24), ChunkDraft(18, len(TEXT))]
        chunks = assemble_chunks(TEXT, drafts, "doc", ChunkingStrategy.FIXED, HeuristicTokenEstimator())
        assert reconstruct_text(chunks) == TEXT

    def test_empty(self):
        assert reconstruct_text([]) == ""


def test_count_words():
    assert count_words("  one two\nthree ") == 3
