"""
Ollama provider client.

Thin HTTP client for Ollama's REST API, used for both embedding generation
(/api/embed) and match explanations (/api/chat).
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.request import Request, urlopen
from urllib.error import URLError, HTTPError

from ..core.exceptions import EmbeddingProviderError
from ..core.types import LoincCode, ProviderConfig
from .base import EmbeddingProvider, ExplanationProvider
from .prompts import build_explanation_messages


logger = logging.getLogger(__name__)


@dataclass
class ChatResponse:
    """
    Response from the Ollama chat API.

    Attributes:
        content: The generated text content
        raw_response: Full response JSON
        model: Model that generated the response
        prompt_tokens: Number of prompt tokens (if available)
        completion_tokens: Number of completion tokens (if available)
    """
    content: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None
    model: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None


@dataclass
class EmbeddingResponse:
    """
    Response from the Ollama embeddings API.

    Attributes:
        embeddings: List of embedding vectors (each is list of floats)
        model: Model that generated the embeddings
        raw_response: Full response JSON
        total_duration: Total time in nanoseconds
        load_duration: Model load time in nanoseconds
    """
    embeddings: list = field(default_factory=list)
    model: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None


class OllamaClient(EmbeddingProvider, ExplanationProvider):
    """
    HTTP client for the Ollama provider.

    Example:
        >>> client = OllamaClient(ProviderConfig(embed_model="nomic-embed-text"))
        >>> vectors = client.embed_texts(["glucose in blood"])
        >>> len(vectors)
        1
    """

    def __init__(self, config: Optional[ProviderConfig] = None):
        """
        Initialize the Ollama client.

        Args:
            config: Provider configuration. If None, the built-in defaults;
                SearchConfig.get_provider_config() applies file and environment settings.
        """
        self.config = config or ProviderConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.embed_model = self.config.embed_model
        self.chat_model = self.config.chat_model
        self.timeout = self.config.timeout_seconds

        logger.debug(
            f"Initialized OllamaClient: base_url={self.base_url}, "
            f"embed_model={self.embed_model}, chat_model={self.chat_model}"
        )

    def embed(self, texts: List[str], model: Optional[str] = None) -> EmbeddingResponse:
        """
        Generate embeddings for a list of texts using /api/embed.

        Args:
            texts: List of texts to embed
            model: Embedding model to use (defaults to the configured embed model)

        Returns:
            EmbeddingResponse with embeddings and metadata

        Raises:
            EmbeddingProviderError: If the request fails
        """
        embed_model = model or self.embed_model
        payload = {
            "model": embed_model,
            "input": texts,
        }

        result = self._post(f"{self.base_url}/api/embed", payload)

        return EmbeddingResponse(
            embeddings=result.get("embeddings", []),
            model=result.get("model", embed_model),
            raw_response=result,
            total_duration=result.get("total_duration"),
            load_duration=result.get("load_duration"),
        )

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a batch of texts, one vector per text.

        Raises:
            EmbeddingProviderError: If the request fails or the provider
                returns a different number of vectors than texts
        """
        response = self.embed(list(texts))
        if len(response.embeddings) != len(texts):
            raise EmbeddingProviderError(
                f"Ollama returned {len(response.embeddings)} embeddings for {len(texts)} inputs",
                provider="ollama",
            )
        return [[float(v) for v in vector] for vector in response.embeddings]

    def chat(self, messages: list, **kwargs) -> ChatResponse:
        """
        Generate a response using the native /api/chat endpoint.

        Args:
            messages: List of message dicts with 'role' and 'content'
            **kwargs: Additional parameters passed to the API

        Returns:
            ChatResponse with the generated content

        Raises:
            EmbeddingProviderError: If the request fails
        """
        payload = {
            "model": self.chat_model,
            "messages": messages,
            "stream": False,
        }

        if self.config.temperature is not None:
            payload.setdefault("options", {})["temperature"] = self.config.temperature

        if self.config.max_tokens is not None:
            payload.setdefault("options", {})["num_predict"] = self.config.max_tokens

        payload.update(kwargs)

        result = self._post(f"{self.base_url}/api/chat", payload)
        message = result.get("message", {})

        return ChatResponse(
            content=message.get("content"),
            raw_response=result,
            model=result.get("model"),
            prompt_tokens=result.get("prompt_eval_count"),
            completion_tokens=result.get("eval_count"),
        )

    def explain(self, query: str, record: LoincCode) -> str:
        """Explain why ``record`` matches ``query`` using the chat model."""
        response = self.chat(build_explanation_messages(query, record))
        content = (response.content or "").strip()
        if not content:
            raise EmbeddingProviderError("Ollama returned an empty explanation", provider="ollama")
        return content

    def list_models(self) -> List[str]:
        """
        List the model names available on the Ollama server (/api/tags).

        Raises:
            EmbeddingProviderError: If the request fails
        """
        request = Request(f"{self.base_url}/api/tags", method="GET")
        try:
            with urlopen(request, timeout=self.timeout) as response:
                data = json.loads(response.read().decode("utf-8"))
        except (OSError, ValueError) as e:
            raise EmbeddingProviderError(
                f"Failed to list models at {self.base_url}: {e}",
                provider="ollama",
            ) from e

        return [m.get("name", "") for m in data.get("models", [])]

    def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a JSON payload and decode the JSON response.

        Raises:
            EmbeddingProviderError: If the request fails
        """
        try:
            data = json.dumps(payload).encode("utf-8")
            request = Request(
                url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )

            logger.debug(f"Making request to {url}")

            with urlopen(request, timeout=self.timeout) as response:
                return json.loads(response.read().decode("utf-8"))

        except HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else str(e)
            logger.error(f"HTTP error from Ollama: {e.code} - {error_body}")
            raise EmbeddingProviderError(
                f"Ollama API error: {e.code} - {error_body}",
                provider="ollama",
                status_code=e.code,
            ) from e
        except URLError as e:
            logger.error(f"Failed to connect to Ollama: {e}")
            raise EmbeddingProviderError(
                f"Failed to connect to Ollama at {self.base_url}: {e}",
                provider="ollama",
            ) from e
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON response from Ollama: {e}")
            raise EmbeddingProviderError(
                f"Invalid JSON response from Ollama: {e}",
                provider="ollama",
            ) from e
        except OSError as e:
            logger.error(f"Unexpected error calling Ollama: {e}")
            raise EmbeddingProviderError(
                f"Unexpected error calling Ollama: {e}",
                provider="ollama",
            ) from e
