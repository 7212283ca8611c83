"""
Provider interfaces for embedding and explanation generation.
"""

from abc import ABC, abstractmethod
from typing import List

from ..core.types import LoincCode


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding generators.

    Implementations turn a batch of texts into one vector per text, preserving
    order. A failure affects the whole batch; there is no partial success.
    """

    @abstractmethod
    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a batch of texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input text, in input order

        Raises:
            EmbeddingProviderError: If the batch could not be embedded
        """
        pass


class ExplanationProvider(ABC):
    """Abstract base class for match explanation generators."""

    @abstractmethod
    def explain(self, query: str, record: LoincCode) -> str:
        """
        Explain why ``record`` matches ``query``.

        Raises:
            EmbeddingProviderError: If the provider call fails
        """
        pass
