"""
Unit tests for the Ollama client.

Tests for:
- Embedding requests and vector-count validation
- Chat payloads and explanations
- Error mapping to EmbeddingProviderError
"""

import io
import json
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError

import pytest

from loinc_search.config.config_loader import SearchConfig
from loinc_search.core.exceptions import EmbeddingProviderError
from loinc_search.core.types import LoincCode, ProviderConfig
from loinc_search.providers.ollama_client import OllamaClient


@pytest.fixture
def provider_config():
    """Create a test provider config."""
    return ProviderConfig(
        base_url="http://localhost:11434/",
        embed_model="nomic-embed-text",
        chat_model="llama3.2",
        temperature=0.3,
        max_tokens=150,
        timeout_seconds=30,
    )


@pytest.fixture
def client(provider_config):
    return OllamaClient(provider_config)


def _response(body):
    mock_response = MagicMock()
    mock_response.read.return_value = json.dumps(body).encode("utf-8")
    mock_response.__enter__.return_value = mock_response
    return mock_response


def _sent_payload(mock_urlopen):
    request = mock_urlopen.call_args[0][0]
    return request.full_url, json.loads(request.data.decode("utf-8"))


GLUCOSE = LoincCode(
    code="2339-0",
    display_name="Glucose [Mass/volume] in Blood",
    component="Glucose",
    system="Bld",
    property="MCnc",
)


class TestOllamaClientInit:
    """Tests for client initialization."""

    def test_initialization(self, client):
        assert client.base_url == "http://localhost:11434"
        assert client.embed_model == "nomic-embed-text"
        assert client.timeout == 30

    def test_default_config_ignores_environment(self, monkeypatch):
        """Test environment settings only apply through SearchConfig."""
        monkeypatch.setenv("OLLAMA_BASE_URL", "http://ollama:11434")

        assert OllamaClient().base_url == "http://localhost:11434"
        assert OllamaClient(SearchConfig().get_provider_config()).base_url == "http://ollama:11434"


class TestEmbeddings:
    """Tests for /api/embed."""

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_embed_texts(self, mock_urlopen, client):
        mock_urlopen.return_value = _response({
            "model": "nomic-embed-text",
            "embeddings": [[0.1, 0.2], [1, 2]],
        })

        vectors = client.embed_texts(["glucose", "sodium"])

        assert vectors == [[0.1, 0.2], [1.0, 2.0]]
        url, payload = _sent_payload(mock_urlopen)
        assert url == "http://localhost:11434/api/embed"
        assert payload == {"model": "nomic-embed-text", "input": ["glucose", "sodium"]}

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_vector_count_mismatch(self, mock_urlopen, client):
        """Test fewer vectors than inputs is an error."""
        mock_urlopen.return_value = _response({"embeddings": [[0.1]]})

        with pytest.raises(EmbeddingProviderError, match="1 embeddings for 2 inputs"):
            client.embed_texts(["a", "b"])

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_model_override(self, mock_urlopen, client):
        mock_urlopen.return_value = _response({"embeddings": [[0.1]]})

        client.embed(["a"], model="mxbai-embed-large")

        assert _sent_payload(mock_urlopen)[1]["model"] == "mxbai-embed-large"


class TestChat:
    """Tests for /api/chat and explanations."""

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_chat_payload(self, mock_urlopen, client):
        mock_urlopen.return_value = _response({
            "model": "llama3.2",
            "message": {"role": "assistant", "content": "Hello"},
            "prompt_eval_count": 12,
            "eval_count": 3,
        })

        response = client.chat([{"role": "user", "content": "Hi"}])

        assert response.content == "Hello"
        assert response.prompt_tokens == 12
        url, payload = _sent_payload(mock_urlopen)
        assert url == "http://localhost:11434/api/chat"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.3, "num_predict": 150}

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_explain_builds_prompt(self, mock_urlopen, client):
        mock_urlopen.return_value = _response({"message": {"content": "  Glucose is blood sugar.  "}})

        explanation = client.explain("blood sugar", GLUCOSE)

        assert explanation == "Glucose is blood sugar."
        messages = _sent_payload(mock_urlopen)[1]["messages"]
        assert messages[0]["role"] == "system"
        assert "under 100 words" in messages[0]["content"]
        assert 'Query: "blood sugar"' in messages[1]["content"]
        assert "LOINC Code: 2339-0" in messages[1]["content"]
        assert "Property: MCnc" in messages[1]["content"]

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_empty_explanation_raises(self, mock_urlopen, client):
        mock_urlopen.return_value = _response({"message": {"content": ""}})

        with pytest.raises(EmbeddingProviderError, match="empty explanation"):
            client.explain("blood sugar", GLUCOSE)


class TestErrors:
    """Tests for error mapping."""

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_http_error(self, mock_urlopen, client):
        mock_urlopen.side_effect = HTTPError(
            "http://localhost:11434/api/embed", 404, "Not Found", {},
            io.BytesIO(b'{"error": "model not found"}'),
        )

        with pytest.raises(EmbeddingProviderError) as exc_info:
            client.embed_texts(["a"])

        assert exc_info.value.status_code == 404
        assert exc_info.value.provider == "ollama"
        assert "model not found" in str(exc_info.value)

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_connection_error(self, mock_urlopen, client):
        mock_urlopen.side_effect = URLError("Connection refused")

        with pytest.raises(EmbeddingProviderError, match="Failed to connect"):
            client.embed_texts(["a"])

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_invalid_json(self, mock_urlopen, client):
        mock_response = MagicMock()
        mock_response.read.return_value = b"not json"
        mock_response.__enter__.return_value = mock_response
        mock_urlopen.return_value = mock_response

        with pytest.raises(EmbeddingProviderError, match="Invalid JSON"):
            client.embed_texts(["a"])

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_timeout(self, mock_urlopen, client):
        mock_urlopen.side_effect = TimeoutError("timed out")

        with pytest.raises(EmbeddingProviderError, match="Unexpected error"):
            client.embed_texts(["a"])


class TestListModels:
    """Tests for /api/tags."""

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_list_models(self, mock_urlopen, client):
        mock_urlopen.return_value = _response({
            "models": [{"name": "nomic-embed-text:latest"}, {"name": "llama3.2:latest"}],
        })

        assert client.list_models() == ["nomic-embed-text:latest", "llama3.2:latest"]

    @patch("loinc_search.providers.ollama_client.urlopen")
    def test_list_models_failure(self, mock_urlopen, client):
        mock_urlopen.side_effect = URLError("Connection refused")

        with pytest.raises(EmbeddingProviderError, match="Failed to list models"):
            client.list_models()
