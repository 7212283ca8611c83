"""
Retrieval module - Similarity search over the LOINC embedding corpus.

This module provides:
- Store: Build-once in-memory corpus of embedding entries
- Search: Cosine similarity and exact top-K ranking
- Service: Query path with lazy store build and explanations
"""

from .store import EmbeddingStore
from .search import cosine_similarity, rank_candidates, top_k
from .service import SearchService

__all__ = [
    "EmbeddingStore",
    "cosine_similarity",
    "rank_candidates",
    "top_k",
    "SearchService",
]
