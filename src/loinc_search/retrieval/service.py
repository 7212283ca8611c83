"""
Search Service - The query path from free text to ranked, explained matches.

Workflow:
1. Build the embedding store on first use (memoized)
2. Embed the lower-cased query
3. Rank the store with top-K cosine search
4. Optionally explain each hit; explanation failures degrade to a fallback
"""

import logging
import uuid
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.exceptions import EmbeddingProviderError
from ..core.logging import LogContext, log_with_context
from ..core.types import LoincCode, MatchResult, SearchHit
from ..corpus.records import load_loinc_codes
from ..providers.base import EmbeddingProvider, ExplanationProvider
from ..providers.prompts import FALLBACK_EXPLANATION
from .search import top_k
from .store import EmbeddingStore


logger = logging.getLogger(__name__)


DEFAULT_LIMIT = 5


class SearchService:
    """
    Matches free-text queries to LOINC codes.

    Example:
        >>> client = OllamaClient()
        >>> service = SearchService(EmbeddingStore(), client, explainer=client,
        ...                         vector_path="data/loinc-embeddings.json")
        >>> for result in service.match("blood sugar"):
        ...     print(result.record.code, result.confidence)
    """

    def __init__(
        self,
        store: EmbeddingStore,
        provider: EmbeddingProvider,
        explainer: Optional[ExplanationProvider] = None,
        records: Optional[Sequence[LoincCode]] = None,
        records_path: Optional[Union[str, Path]] = None,
        vector_path: Optional[Union[str, Path]] = None,
        workers: int = 1,
    ):
        """
        Args:
            store: Store to search (built on first use if needed)
            provider: Embeds queries, and records when no vector file exists
            explainer: Explains matches; None disables explanations
            records: Record corpus; loaded from records_path when None
            records_path: Persisted corpus file (sample data when missing)
            vector_path: Persisted vector file
            workers: Search shards
        """
        self.store = store
        self.provider = provider
        self.explainer = explainer
        self.records = records
        self.records_path = records_path
        self.vector_path = vector_path
        self.workers = workers

    def ensure_ready(self) -> EmbeddingStore:
        """Build the store if it is not built yet."""
        if not self.store.is_built:
            if self.records is None:
                self.records = load_loinc_codes(self.records_path)
            self.store.build(self.records, vector_path=self.vector_path, generator=self.provider)
        return self.store

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> List[SearchHit]:
        """
        Rank the corpus against a free-text query.

        Raises:
            ValueError: If the query is not a non-empty string
            StoreBuildError: If the store could not be built
            OSError: If the vector file cannot be read
            EmbeddingProviderError: If the query could not be embedded
        """
        if not isinstance(query, str) or not query.strip():
            raise ValueError("Query is required and must be a string")

        store = self.ensure_ready()
        query_vector = self.provider.embed_texts([query.lower()])[0]

        with LogContext(query_id=uuid.uuid4().hex[:8]):
            hits = top_k(query_vector, store, limit, workers=self.workers)
            log_with_context(
                logger, logging.INFO,
                f"Matched {len(hits)} codes from {len(store)} candidates (query: {query[:50]})",
            )
        return hits

    def match(self, query: str, limit: int = DEFAULT_LIMIT, explain: bool = True) -> List[MatchResult]:
        """Search and attach a natural-language explanation to every hit."""
        hits = self.search(query, limit)
        return [
            MatchResult(
                record=hit.record,
                confidence=hit.score,
                reasoning=self._explain(query, hit.record) if explain else FALLBACK_EXPLANATION,
            )
            for hit in hits
        ]

    def _explain(self, query: str, record: LoincCode) -> str:
        if self.explainer is None:
            return FALLBACK_EXPLANATION
        try:
            return self.explainer.explain(query, record)
        except EmbeddingProviderError as e:
            logger.error(f"Error generating reasoning for {record.code}: {e}")
            return FALLBACK_EXPLANATION
