"""Unit tests for EmbeddingModel class."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, patch, MagicMock
import httpx
from ragchunk.services.embedding_model import EmbeddingModel


def _client_returning(*responses):
    mock_client = MagicMock()
    mock_client.__enter__.return_value.post.side_effect = list(responses)
    return mock_client


def _response(status_code, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = text
    return response


class TestEmbeddingModel:
    """Test suite for EmbeddingModel."""

    def test_initialization_success(self):
        model = EmbeddingModel(api_key="test_key")
        assert model.api_key == "test_key"
        assert model.model_name == "sentence-transformers/all-mpnet-base-v2"
        assert model.max_retries == 5
        assert model.api_url.endswith("sentence-transformers/all-mpnet-base-v2")

    def test_custom_model_gets_its_own_endpoint(self):
        model = EmbeddingModel(api_key="test_key", model_name="BAAI/bge-base-en-v1.5")
        assert model.api_url == "https://api-inference.huggingface.co/models/BAAI/bge-base-en-v1.5"

    def test_initialization_without_api_key(self):
        with pytest.raises(ValueError, match="HUGGINGFACE_API_KEY"):
            EmbeddingModel(api_key=None)

    def test_embed_text_empty_string(self):
        model = EmbeddingModel(api_key="test_key")

        with pytest.raises(ValueError, match="Text cannot be empty"):
            model.embed_text("")

        with pytest.raises(ValueError, match="Text cannot be empty"):
            model.embed_text("   ")

    def test_embed_batch_empty_list(self):
        model = EmbeddingModel(api_key="test_key")

        with pytest.raises(ValueError, match="Texts list cannot be empty"):
            model.embed_batch([])

    def test_embed_batch_rejects_blank_entries(self):
        model = EmbeddingModel(api_key="test_key")

        with pytest.raises(ValueError, match=r"positions \[1\] are empty"):
            model.embed_batch(["fine", "  ", "also fine"])

    @patch('httpx.Client')
    def test_embed_text_success(self, mock_client_class):
        mock_client_class.return_value = _client_returning(_response(200, [[0.1, 0.2, 0.3]]))

        model = EmbeddingModel(api_key="test_key", dimension=3)

        assert model.embed_text("test text") == [0.1, 0.2, 0.3]

    @patch('httpx.Client')
    def test_embed_batch_success(self, mock_client_class):
        mock_client = _client_returning(_response(200, [[0.1, 0.2, 0.3], [0.4, 0.5, 0.6]]))
        mock_client_class.return_value = mock_client

        model = EmbeddingModel(api_key="test_key", dimension=3)
        result = model.embed_batch(["first", "second"])

        assert result == [[0.1, 0.2, 0.3], [0.4, 0.5, 0.6]]
        payload = mock_client.__enter__.return_value.post.call_args[1]["json"]
        assert payload["inputs"] == ["first", "second"]
        headers = mock_client.__enter__.return_value.post.call_args[1]["headers"]
        assert headers["Authorization"] == "Bearer test_key"

    @patch('httpx.Client')
    def test_dimension_mismatch(self, mock_client_class):
        mock_client_class.return_value = _client_returning(_response(200, [[0.1, 0.2]]))

        model = EmbeddingModel(api_key="test_key", dimension=3)

        with pytest.raises(RuntimeError, match="invalid vector"):
            model.embed_text("test")

    @patch('httpx.Client')
    def test_count_mismatch(self, mock_client_class):
        mock_client_class.return_value = _client_returning(_response(200, [[0.1, 0.2, 0.3]]))

        model = EmbeddingModel(api_key="test_key", dimension=3)

        with pytest.raises(RuntimeError, match="Expected 2 embeddings, got 1"):
            model.embed_batch(["a", "b"])

    @patch('time.sleep')
    @patch('httpx.Client')
    def test_retries_while_model_loads(self, mock_client_class, mock_sleep):
        mock_client_class.side_effect = [
            _client_returning(_response(503, {"estimated_time": 20})),
            _client_returning(_response(200, [[0.1, 0.2, 0.3]])),
        ]

        model = EmbeddingModel(api_key="test_key", dimension=3, initial_delay=1.0)

        assert model.embed_text("test") == [0.1, 0.2, 0.3]
        mock_sleep.assert_called_once_with(1.0)

    @patch('time.sleep')
    @patch('httpx.Client')
    def test_gives_up_after_max_retries(self, mock_client_class, mock_sleep):
        mock_client_class.side_effect = [
            _client_returning(_response(503)) for _ in range(3)
        ]

        model = EmbeddingModel(api_key="test_key", dimension=3, max_retries=3, initial_delay=1.0)

        with pytest.raises(RuntimeError, match="after 3 attempts"):
            model.embed_text("test")
        assert [c[0][0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch('time.sleep')
    @patch('httpx.Client')
    def test_timeout_is_retried(self, mock_client_class, mock_sleep):
        failing = MagicMock()
        failing.__enter__.return_value.post.side_effect = httpx.TimeoutException("timed out")
        mock_client_class.side_effect = [
            failing,
            _client_returning(_response(200, [[0.1, 0.2, 0.3]])),
        ]

        model = EmbeddingModel(api_key="test_key", dimension=3, initial_delay=1.0)

        assert model.embed_text("test") == [0.1, 0.2, 0.3]

    @pytest.mark.parametrize("status,message", [
        (401, "Invalid API key"),
        (429, "Rate limit exceeded"),
        (500, "status 500"),
    ])
    @patch('httpx.Client')
    def test_non_retryable_errors(self, mock_client_class, status, message):
        mock_client_class.return_value = _client_returning(_response(status, text="server says no"))

        model = EmbeddingModel(api_key="test_key", dimension=3)

        with pytest.raises(RuntimeError, match=message):
            model.embed_text("test")
