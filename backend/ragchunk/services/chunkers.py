"""Chunking strategies: fixed token windows, semantic and hybrid splitting."""
import logging
import time
from bisect import bisect_left
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from ragchunk.config import (
    CHUNK_MAX_TOKENS,
    CHUNK_MIN_TOKENS,
    CHUNK_OVERLAP_TOKENS,
    CHUNK_STRATEGY,
    MIN_DOCUMENT_TOKENS,
)
from ragchunk.models.chunk import (
    ChunkingErrorCode,
    ChunkingOptions,
    ChunkingResult,
    ChunkingStrategy,
)
from ragchunk.models.document import DocumentSection
from ragchunk.services.boundary_detector import (
    detect_sections,
    find_section,
    split_paragraphs,
    split_sentences,
)
from ragchunk.services.chunk_assembler import ChunkDraft, assemble_chunks, total_tokens
from ragchunk.services.token_estimator import (
    TokenEstimator,
    TokenizationError,
    TokenSpan,
    default_token_estimator,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNKING_OPTIONS = ChunkingOptions(
    strategy=ChunkingStrategy(CHUNK_STRATEGY),
    max_tokens=CHUNK_MAX_TOKENS,
    overlap_tokens=CHUNK_OVERLAP_TOKENS,
    min_tokens=CHUNK_MIN_TOKENS,
)

OptionsInput = Union[ChunkingOptions, Mapping[str, Any], None]


@dataclass
class _Unit:
    """Paragraph or sentence with its token count."""
    start: int
    end: int
    tokens: int


class _TokenIndex:
    """Maps character ranges to token counts using document-wide token spans."""

    def __init__(self, spans: List[TokenSpan]):
        self.spans = spans
        self.starts = [start for start, _ in spans]

    def __len__(self) -> int:
        return len(self.spans)

    def first_at_or_after(self, position: int) -> int:
        return bisect_left(self.starts, position)

    def count(self, start: int, end: int) -> int:
        return self.first_at_or_after(end) - self.first_at_or_after(start)


def _group_tokens(group: List[_Unit]) -> int:
    return sum(unit.tokens for unit in group)


def pack_units(units: List[_Unit], max_tokens: int) -> List[List[_Unit]]:
    """
    Greedily group units so each group ends at the last boundary whose running
    total does not exceed max_tokens.

    When several boundaries share that total (zero-token units), the earliest
    one wins and the trailing zero-token units open the next group. A unit
    larger than max_tokens always forms a group of its own.
    """
    groups: List[List[_Unit]] = []
    current: List[_Unit] = []
    current_tokens = 0

    for unit in units:
        if current and current_tokens + unit.tokens > max_tokens:
            carried: List[_Unit] = []
            while len(current) > 1 and current[-1].tokens == 0:
                carried.insert(0, current.pop())
            groups.append(current)
            current = carried
            current_tokens = 0
        current.append(unit)
        current_tokens += unit.tokens

    if current:
        groups.append(current)
    return groups


def merge_small_groups(
    groups: List[List[_Unit]],
    min_tokens: int,
    cap: Optional[int] = None
) -> List[List[_Unit]]:
    """
    Merge groups below min_tokens forward into their successors until they
    reach min_tokens; a trailing undersized group joins the previous one.

    Args:
        groups: Packed unit groups in document order
        min_tokens: Merge threshold
        cap: If set, merges that would exceed this many tokens are skipped

    Returns:
        Merged groups in document order
    """
    def fits(tokens: int) -> bool:
        return cap is None or tokens <= cap

    merged: List[List[_Unit]] = []
    pending: Optional[List[_Unit]] = None

    for group in groups:
        if pending is not None:
            if fits(_group_tokens(pending) + _group_tokens(group)):
                group = pending + group
            else:
                merged.append(pending)
            pending = None

        if _group_tokens(group) < min_tokens:
            pending = group
        else:
            merged.append(group)

    if pending is not None:
        if merged and fits(_group_tokens(merged[-1]) + _group_tokens(pending)):
            merged[-1] = merged[-1] + pending
        else:
            merged.append(pending)

    return merged


def nearest_boundary(candidates: List[int], lower: int, limit: int) -> Optional[int]:
    """
    Pick the boundary closest to, but not beyond, a token limit.

    Args:
        candidates: Boundary positions (token indices)
        lower: Boundaries must lie strictly after this index
        limit: Boundaries must lie at or before this index

    Returns:
        The best boundary (earliest on ties), or None
    """
    best = None
    for candidate in candidates:
        if lower < candidate <= limit and (best is None or candidate > best):
            best = candidate
    return best


class BaseChunker:
    """
    Common driver for all strategies.

    Validates input and options, times the run, maps failures to error codes
    and hands the boundaries chosen by `_split` to the chunk assembler.
    """

    strategy: ChunkingStrategy

    def __init__(
        self,
        estimator: Optional[TokenEstimator] = None,
        min_document_tokens: int = MIN_DOCUMENT_TOKENS
    ):
        """
        Initialize the chunker.

        Args:
            estimator: Token estimator (defaults to the configured one)
            min_document_tokens: Documents whose only chunk has fewer tokens
                are rejected with TEXT_TOO_SHORT
        """
        self.estimator = estimator or default_token_estimator()
        self.min_document_tokens = min_document_tokens

    def chunk(self, text: str, object_id: str, options: OptionsInput = None) -> ChunkingResult:
        """
        Chunk a document's text.

        Never raises: every failure is reported as a ChunkingResult with
        success=False, an error message and an error code.

        Args:
            text: Full document text
            object_id: Source document identifier
            options: Full or partial chunking options

        Returns:
            ChunkingResult with chunks in document order
        """
        start_time = time.perf_counter()

        def elapsed_ms() -> float:
            return (time.perf_counter() - start_time) * 1000

        if not isinstance(text, str) or not text.strip():
            return ChunkingResult.failure(
                ChunkingErrorCode.EMPTY_TEXT, "Empty text provided", elapsed_ms()
            )

        try:
            opts = ChunkingOptions.from_partial(options, base=DEFAULT_CHUNKING_OPTIONS)
            opts = replace(opts, strategy=self.strategy)
        except (AttributeError, TypeError, ValueError) as e:
            return ChunkingResult.failure(ChunkingErrorCode.INVALID_OPTIONS, str(e), elapsed_ms())

        invalid = opts.validate()
        if invalid:
            return ChunkingResult.failure(ChunkingErrorCode.INVALID_OPTIONS, invalid, elapsed_ms())

        try:
            index = _TokenIndex(self.estimator.token_spans(text))
            drafts = self._split(text, index, opts)
            chunks = assemble_chunks(text, drafts, object_id, self.strategy, self.estimator)
        except TokenizationError as e:
            logger.warning(f"Tokenization failed for document {object_id}: {str(e)}")
            return ChunkingResult.failure(
                ChunkingErrorCode.TOKENIZATION_FAILED, str(e), elapsed_ms()
            )
        except Exception as e:
            logger.error(f"Chunking failed for document {object_id}: {str(e)}", exc_info=True)
            return ChunkingResult.failure(
                ChunkingErrorCode.UNKNOWN_ERROR, str(e) or type(e).__name__, elapsed_ms()
            )

        if not chunks or (len(chunks) == 1 and chunks[0].token_count < self.min_document_tokens):
            return ChunkingResult.failure(
                ChunkingErrorCode.TEXT_TOO_SHORT,
                f"Text has fewer than {self.min_document_tokens} tokens",
                elapsed_ms(),
            )

        result = ChunkingResult(
            success=True,
            chunks=chunks,
            total_tokens=total_tokens(chunks),
            processing_duration_ms=elapsed_ms(),
        )
        logger.info(
            f"Chunked document {object_id} ({self.strategy.value}): "
            f"{len(chunks)} chunks, {result.total_tokens} tokens "
            f"in {result.processing_duration_ms:.1f}ms"
        )
        return result

    def _split(self, text: str, index: _TokenIndex, options: ChunkingOptions) -> List[ChunkDraft]:
        raise NotImplementedError

    def _units(
        self,
        text: str,
        index: _TokenIndex,
        start: int,
        end: int,
        options: ChunkingOptions,
        split_oversized: bool
    ) -> List[_Unit]:
        """
        Break a region into packing units.

        Paragraphs when preserve_paragraphs is set (oversized ones broken into
        sentences if `split_oversized` and preserve_sentences), sentences when
        only preserve_sentences is set, paragraphs otherwise.
        """
        units: List[_Unit] = []
        sentences_only = options.preserve_sentences and not options.preserve_paragraphs

        for paragraph in split_paragraphs(text, start, end):
            tokens = index.count(paragraph.start, paragraph.end)
            oversized = tokens > options.max_tokens
            if sentences_only or (split_oversized and oversized and options.preserve_sentences):
                for sentence in split_sentences(text, paragraph.start, paragraph.end):
                    units.append(_Unit(
                        sentence.start,
                        sentence.end,
                        index.count(sentence.start, sentence.end),
                    ))
            else:
                units.append(_Unit(paragraph.start, paragraph.end, tokens))

        return units


class FixedChunker(BaseChunker):
    """
    Sliding token window that ignores document structure.

    Window k starts at token k * (max_tokens - overlap_tokens). The run stops
    at the first window that reaches the last token, so no window lies wholly
    inside its predecessor. Each chunk extends to the start of the token after
    its window, keeping inter-token whitespace, which makes the source exactly
    reconstructible from the chunks.
    """

    strategy = ChunkingStrategy.FIXED

    def _split(self, text: str, index: _TokenIndex, options: ChunkingOptions) -> List[ChunkDraft]:
        spans = index.spans
        token_count = len(spans)
        step = options.max_tokens - options.overlap_tokens
        drafts: List[ChunkDraft] = []

        start_token = 0
        while start_token < token_count:
            end_token = min(start_token + options.max_tokens, token_count)
            char_start = spans[start_token][0] if drafts else 0
            char_end = spans[end_token][0] if end_token < token_count else len(text)
            drafts.append(ChunkDraft(
                start=char_start,
                end=char_end,
                extra={"startTokenIndex": start_token, "endTokenIndex": end_token},
            ))
            if end_token >= token_count:
                break
            start_token += step

        return drafts


class SemanticChunker(BaseChunker):
    """Cuts only at paragraph (and optionally sentence) boundaries; no overlap."""

    strategy = ChunkingStrategy.SEMANTIC

    def _split(self, text: str, index: _TokenIndex, options: ChunkingOptions) -> List[ChunkDraft]:
        sections = detect_sections(text)
        units = self._units(text, index, 0, len(text), options, split_oversized=True)
        groups = merge_small_groups(pack_units(units, options.max_tokens), options.min_tokens)

        drafts = []
        for group in groups:
            section = find_section(sections, group[0].start)
            drafts.append(ChunkDraft(
                start=group[0].start,
                end=group[-1].end,
                section_title=section.title if section else None,
                extra={"unitCount": len(group)},
            ))
        return drafts


class HybridChunker(BaseChunker):
    """
    Section-aware semantic packing with a hard token ceiling.

    Each section is packed independently so every chunk inherits its
    section's title and page. A unit that still exceeds max_tokens is split
    with a token window (with overlap) inside that unit only.
    """

    strategy = ChunkingStrategy.HYBRID

    def _split(self, text: str, index: _TokenIndex, options: ChunkingOptions) -> List[ChunkDraft]:
        sections = detect_sections(text)
        drafts: List[ChunkDraft] = []
        carried_start: Optional[int] = None

        for position, section in enumerate(sections):
            start = section.start_char if carried_start is None else carried_start
            body_start = section.heading_end or section.start_char
            is_last = position == len(sections) - 1

            # A heading with no body travels with the next section
            if not is_last and section.title is not None and not text[body_start:section.end_char].strip():
                carried_start = start
                continue
            carried_start = None

            units = self._units(text, index, start, section.end_char, options, split_oversized=False)
            groups = merge_small_groups(
                pack_units(units, options.max_tokens),
                options.min_tokens,
                cap=options.max_tokens,
            )

            for group in groups:
                if len(group) == 1 and group[0].tokens > options.max_tokens:
                    drafts.extend(self._split_oversized(text, index, group[0], section, options))
                    continue
                drafts.append(ChunkDraft(
                    start=group[0].start,
                    end=group[-1].end,
                    section_title=section.title,
                    page_number=section.page_number,
                    extra={"unitCount": len(group)},
                ))

        return drafts

    def _split_oversized(
        self,
        text: str,
        index: _TokenIndex,
        unit: _Unit,
        section: DocumentSection,
        options: ChunkingOptions
    ) -> List[ChunkDraft]:
        """Token-window split of one unit, snapping cuts to sentence ends."""
        first = index.first_at_or_after(unit.start)
        last = index.first_at_or_after(unit.end)

        boundaries: List[int] = []
        if options.preserve_sentences:
            sentences = split_sentences(text, unit.start, unit.end)
            boundaries = [index.first_at_or_after(s.end) for s in sentences[:-1]]

        drafts: List[ChunkDraft] = []
        start_token = first
        while True:
            limit = start_token + options.max_tokens
            if limit >= last:
                cut = last
            else:
                snapped = nearest_boundary(boundaries, start_token + options.overlap_tokens, limit)
                cut = snapped if snapped is not None else limit

            drafts.append(ChunkDraft(
                start=index.spans[start_token][0],
                end=index.spans[cut - 1][1],
                section_title=section.title,
                page_number=section.page_number,
                extra={"startTokenIndex": start_token, "endTokenIndex": cut, "windowed": True},
            ))
            if cut >= last:
                break
            start_token = max(cut - options.overlap_tokens, start_token + 1)

        return drafts


CHUNKERS: Dict[ChunkingStrategy, Type[BaseChunker]] = {
    ChunkingStrategy.FIXED: FixedChunker,
    ChunkingStrategy.SEMANTIC: SemanticChunker,
    ChunkingStrategy.HYBRID: HybridChunker,
}


def get_chunker(
    strategy: Union[ChunkingStrategy, str],
    estimator: Optional[TokenEstimator] = None
) -> BaseChunker:
    """
    Create the chunker for a strategy.

    Raises:
        ValueError: If the strategy is unknown
    """
    return CHUNKERS[ChunkingStrategy(strategy)](estimator=estimator)


def chunk_document(
    text: str,
    object_id: str,
    options: OptionsInput = None,
    estimator: Optional[TokenEstimator] = None
) -> ChunkingResult:
    """
    Chunk text with the strategy named in the options (hybrid by default).

    Args:
        text: Full document text
        object_id: Source document identifier
        options: Full or partial chunking options
        estimator: Token estimator override

    Returns:
        ChunkingResult (never raises)
    """
    start_time = time.perf_counter()

    def elapsed_ms() -> float:
        return (time.perf_counter() - start_time) * 1000

    try:
        opts = ChunkingOptions.from_partial(options, base=DEFAULT_CHUNKING_OPTIONS)
        strategy = ChunkingStrategy(opts.strategy)
    except (AttributeError, TypeError, ValueError) as e:
        return ChunkingResult.failure(ChunkingErrorCode.INVALID_OPTIONS, str(e), elapsed_ms())

    try:
        chunker = get_chunker(strategy, estimator)
    except Exception as e:
        logger.error(f"Could not create {strategy.value} chunker: {str(e)}", exc_info=True)
        return ChunkingResult.failure(
            ChunkingErrorCode.UNKNOWN_ERROR, str(e) or type(e).__name__, elapsed_ms()
        )

    return chunker.chunk(text, object_id, opts)
