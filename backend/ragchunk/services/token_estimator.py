"""Token estimation for sizing chunks."""
import logging
import re
from functools import lru_cache
from typing import List, Optional, Tuple

from transformers import AutoTokenizer

from ragchunk.config import EMBEDDING_MODEL, TOKEN_ESTIMATOR

logger = logging.getLogger(__name__)

TokenSpan = Tuple[int, int]

_TOKEN_PATTERN = re.compile(r"(\w+)|[^\w\s]")


class TokenizationError(ValueError):
    """Raised when text cannot be tokenized (e.g. invalid encoding)."""


class TokenEstimator:
    """
    Base class for token counters.

    Chunk boundaries are computed from running totals of `token_spans`, so an
    implementation must be deterministic: the same text always yields the
    same spans.
    """

    name = "base"

    def token_spans(self, text: str) -> List[TokenSpan]:
        """
        Locate tokens in text.

        Args:
            text: Text to tokenize

        Returns:
            Ordered (start, end) character offsets of each token

        Raises:
            TokenizationError: If the text cannot be tokenized
        """
        raise NotImplementedError

    def estimate(self, text: str) -> int:
        """Count tokens in text."""
        if not text:
            return 0
        return len(self.token_spans(text))

    def truncate_to_tokens(self, text: str, max_tokens: int) -> str:
        """
        Cut text after its first `max_tokens` tokens.

        Args:
            text: Text to truncate
            max_tokens: Maximum number of tokens to keep

        Returns:
            The original text if it already fits, else its prefix ending at
            the last kept token
        """
        spans = self.token_spans(text)
        if len(spans) <= max_tokens:
            return text
        if max_tokens <= 0:
            return ""
        return text[:spans[max_tokens - 1][1]]


class HeuristicTokenEstimator(TokenEstimator):
    """
    Approximate tokenizer: words are split into pieces of at most
    `chars_per_token` characters, every other non-space character counts as
    one token.

    Because pieces are aligned to word starts, re-estimating any substring cut
    at token boundaries gives exactly the number of tokens it covers.
    """

    name = "heuristic"

    def __init__(self, chars_per_token: int = 4):
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token

    def token_spans(self, text: str) -> List[TokenSpan]:
        if not isinstance(text, str):
            raise TokenizationError(f"Expected str, got {type(text).__name__}")

        try:
            text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise TokenizationError(f"Text is not valid Unicode: {e.reason} at position {e.start}")

        spans: List[TokenSpan] = []
        step = self.chars_per_token
        for match in _TOKEN_PATTERN.finditer(text):
            start, end = match.span()
            if match.group(1) is None:
                spans.append((start, end))
                continue
            for piece_start in range(start, end, step):
                spans.append((piece_start, min(piece_start + step, end)))
        return spans


class HuggingFaceTokenEstimator(TokenEstimator):
    """Token counts from a Hugging Face fast tokenizer (model-exact)."""

    name = "huggingface"

    def __init__(self, model_name: str = EMBEDDING_MODEL, tokenizer=None):
        """
        Initialize the estimator.

        Args:
            model_name: Tokenizer to load when none is given
            tokenizer: Preloaded tokenizer (must support offset mappings)
        """
        if tokenizer is None:
            logger.info(f"Loading tokenizer for chunking: {model_name}")
            tokenizer = AutoTokenizer.from_pretrained(model_name)
        self.tokenizer = tokenizer

    def token_spans(self, text: str) -> List[TokenSpan]:
        try:
            encoding = self.tokenizer(
                text,
                add_special_tokens=False,
                return_offsets_mapping=True
            )
        except Exception as e:
            raise TokenizationError(f"Tokenizer failed: {str(e)}") from e

        return [(start, end) for start, end in encoding["offset_mapping"] if end > start]


_ESTIMATORS = {
    HeuristicTokenEstimator.name: HeuristicTokenEstimator,
    HuggingFaceTokenEstimator.name: HuggingFaceTokenEstimator,
}


def get_token_estimator(name: Optional[str] = None) -> TokenEstimator:
    """
    Create the configured token estimator.

    Args:
        name: "heuristic" or "huggingface" (defaults to TOKEN_ESTIMATOR)

    Raises:
        ValueError: If the name is unknown
    """
    name = (name or TOKEN_ESTIMATOR).lower()
    if name not in _ESTIMATORS:
        raise ValueError(f"Unknown token estimator: {name}")
    return _ESTIMATORS[name]()


@lru_cache(maxsize=1)
def default_token_estimator() -> TokenEstimator:
    """Shared instance of the configured estimator (tokenizers load once)."""
    return get_token_estimator()
