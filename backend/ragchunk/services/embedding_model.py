"""Embedding provider backed by the Hugging Face Inference API."""
import time
import logging
from typing import Any, Dict, List, Optional

import httpx

from ragchunk.config import (
    HUGGINGFACE_API_KEY,
    EMBEDDING_MODEL,
    EMBEDDING_API_URL,
    EMBEDDING_DIMENSION,
)
from ragchunk.models.chunk import validate_embedding

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 60.0


class EmbeddingModel:
    """Turns text into fixed-length vectors for chunk and query embedding."""

    def __init__(
        self,
        api_key: str = HUGGINGFACE_API_KEY,
        model_name: str = EMBEDDING_MODEL,
        api_url: Optional[str] = None,
        dimension: int = EMBEDDING_DIMENSION,
        max_retries: int = 5,
        initial_delay: float = 5.0,
        timeout: float = 120.0
    ):
        """
        Initialize the embedding client.

        Args:
            api_key: Hugging Face API key
            model_name: Model identifier
            api_url: Inference endpoint (defaults to EMBEDDING_API_URL, or the
                public endpoint for a non-default model)
            dimension: Expected vector length
            max_retries: Attempts before giving up on 503s and network errors
            initial_delay: First back-off delay in seconds
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("HUGGINGFACE_API_KEY environment variable is required")

        if api_url is None:
            api_url = (
                EMBEDDING_API_URL if model_name == EMBEDDING_MODEL
                else f"https://api-inference.huggingface.co/models/{model_name}"
            )

        self.api_key = api_key
        self.model_name = model_name
        self.api_url = api_url
        self.dimension = dimension
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.timeout = timeout

        logger.info(f"Initialized EmbeddingModel with model: {model_name} ({dimension} dims)")

    def embed_text(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            ValueError: If text is empty
            RuntimeError: If the API request fails after all retries
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed several texts in one API call.

        Args:
            texts: Texts to embed

        Returns:
            One vector per text, in input order

        Raises:
            ValueError: If the list is empty or any text is blank
            RuntimeError: If the request fails or the response is malformed
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")

        blank = [i for i, t in enumerate(texts) if not t or not t.strip()]
        if blank:
            raise ValueError(f"Texts at positions {blank} are empty")

        embeddings = self._post({"inputs": texts, "options": {"wait_for_model": True}})

        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            raise RuntimeError(
                f"Expected {len(texts)} embeddings, got "
                f"{len(embeddings) if isinstance(embeddings, list) else type(embeddings).__name__}"
            )

        try:
            return [validate_embedding(e, self.dimension) for e in embeddings]
        except ValueError as e:
            raise RuntimeError(f"Embedding API returned an invalid vector: {str(e)}") from e

    def _backoff(self, delay: float) -> float:
        time.sleep(delay)
        return min(delay * 2, MAX_BACKOFF_SECONDS)

    def _post(self, payload: Dict[str, Any]) -> Any:
        """
        POST to the inference endpoint with exponential back-off.

        Free-tier models sleep when idle and answer 503 while loading, so
        503s, timeouts and network errors are retried. 401, 429 and other
        statuses fail at once.

        Raises:
            RuntimeError: If the request fails after all retries
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        delay = self.initial_delay
        last_error = None
        batch_size = len(payload.get("inputs", []))

        for attempt in range(1, self.max_retries + 1):
            started = time.time()
            try:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.api_url, headers=headers, json=payload)
            except httpx.TimeoutException:
                last_error = f"Request timeout after {self.timeout}s"
                logger.warning(f"{last_error} on attempt {attempt}/{self.max_retries}")
                if attempt < self.max_retries:
                    delay = self._backoff(delay)
                continue
            except httpx.RequestError as e:
                last_error = f"Network error: {str(e)}"
                logger.warning(f"{last_error} on attempt {attempt}/{self.max_retries}")
                if attempt < self.max_retries:
                    delay = self._backoff(delay)
                continue

            if response.status_code == 503:
                last_error = "Model is loading"
                logger.warning(
                    f"Model loading (503) on attempt {attempt}/{self.max_retries}, "
                    f"retrying in {delay}s"
                )
                if attempt < self.max_retries:
                    delay = self._backoff(delay)
                continue

            if response.status_code == 401:
                logger.error("Authentication failed for Hugging Face API")
                raise RuntimeError("Invalid API key")

            if response.status_code == 429:
                logger.error("Rate limit exceeded for Hugging Face API")
                raise RuntimeError("Rate limit exceeded. Please try again later.")

            if response.status_code != 200:
                error_msg = f"API request failed with status {response.status_code}: {response.text}"
                logger.error(error_msg)
                raise RuntimeError(error_msg)

            logger.debug(f"Embedded {batch_size} texts in {time.time() - started:.2f}s")
            return response.json()

        error_msg = (
            f"Failed to generate embeddings after {self.max_retries} attempts. "
            f"Last error: {last_error}"
        )
        logger.error(error_msg)
        raise RuntimeError(error_msg)
