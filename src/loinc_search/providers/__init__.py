"""
Provider clients for embedding and explanation generation.
"""

from .base import EmbeddingProvider, ExplanationProvider
from .ollama_client import OllamaClient

__all__ = [
    "EmbeddingProvider",
    "ExplanationProvider",
    "OllamaClient",
]
