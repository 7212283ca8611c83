"""
Embedding Store - The in-memory corpus of (record, vector) entries.

Built once, lazily, either by draining the persisted vector file through the
incremental parser or, when no file exists, by generating one vector per
record. Entries are published in a single assignment, so readers see either
no store or a fully populated one. After building the store is immutable
and may be read from any number of threads.
"""

import logging
import numbers
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..core.exceptions import EmbeddingProviderError, StoreBuildError, StoreNotBuiltError
from ..core.types import EmbeddingEntry, LoincCode, create_searchable_text
from ..corpus.reader import DEFAULT_CHUNK_SIZE
from ..corpus.stream_parser import IncrementalArrayParser, default_buffer_limit, iter_vector_records
from ..providers.base import EmbeddingProvider


logger = logging.getLogger(__name__)


SOURCE_FILE = "file"
SOURCE_GENERATED = "generated"


def _vector_from_row(row: Dict[str, Any]) -> Optional[Tuple[str, Tuple[float, ...]]]:
    """Extract (code, vector) from a parsed row, or None if the row is unusable."""
    code = row.get("code")
    embedding = row.get("embedding")

    if not isinstance(code, str) or not code:
        return None
    if not isinstance(embedding, list):
        return None
    if not all(isinstance(v, numbers.Real) and not isinstance(v, bool) for v in embedding):
        return None

    return code, tuple(float(v) for v in embedding)


class EmbeddingStore:
    """
    Single-initialization corpus of embedding entries.

    The store is owned by its creator and passed to consumers; there is no
    module-level instance. ``build`` is memoized: calling it on a built store
    is a no-op. Concurrent builders are serialized by an internal lock.

    Example:
        >>> store = EmbeddingStore()
        >>> store.build(load_loinc_codes(path), vector_path="data/loinc-embeddings.json")
        >>> hits = top_k(query_vector, store, k=5)
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_buffer_chars: Optional[int] = None,
        prefetch: bool = False,
    ):
        """
        Args:
            chunk_size: Bytes per read of the vector file
            max_buffer_chars: Parser buffer limit (defaults to the larger of
                chunk_size and 10 MiB)
            prefetch: Read ahead on a background thread while parsing
        """
        self.chunk_size = chunk_size
        self.max_buffer_chars = max_buffer_chars
        self.prefetch = prefetch

        self._entries: Optional[Tuple[EmbeddingEntry, ...]] = None
        self._build_lock = threading.Lock()

    @property
    def is_built(self) -> bool:
        return self._entries is not None

    @property
    def entries(self) -> Tuple[EmbeddingEntry, ...]:
        """All entries in corpus order."""
        entries = self._entries
        if entries is None:
            raise StoreNotBuiltError("Embedding store has not been built")
        return entries

    def __len__(self) -> int:
        entries = self._entries
        return 0 if entries is None else len(entries)

    def build(
        self,
        records: Sequence[LoincCode],
        vector_path: Optional[Union[str, Path]] = None,
        generator: Optional[EmbeddingProvider] = None,
    ) -> "EmbeddingStore":
        """
        Populate the store (no-op if already built).

        Args:
            records: Ordered record corpus
            vector_path: Persisted vector file; used when it exists
            generator: Embedding provider, used when no vector file exists

        Returns:
            self

        Raises:
            StoreBuildError: If no source is available or building produced no entries
            OSError: If the vector file cannot be read
        """
        if self._entries is not None:
            return self

        with self._build_lock:
            if self._entries is not None:
                return self

            start_time = time.time()
            logger.info("Initializing LOINC embeddings...")

            if vector_path is not None and Path(vector_path).exists():
                entries = self._load_from_file(records, Path(vector_path))
                source = SOURCE_FILE
            elif generator is not None:
                logger.info("No pre-computed embeddings found, generating on the fly")
                entries = self._generate(records, generator)
                source = SOURCE_GENERATED
            else:
                raise StoreBuildError(
                    "No pre-computed embeddings found and no embedding generator configured"
                )

            if not entries:
                raise StoreBuildError(
                    f"Embedding store is empty after building from {source} "
                    f"({len(records)} records)"
                )

            self._entries = tuple(entries)

            logger.info(
                f"Initialized {len(entries)} LOINC embeddings from {source} "
                f"in {time.time() - start_time:.2f}s"
            )

        return self

    def reset(self) -> None:
        """Forget the built entries so the next build reloads."""
        with self._build_lock:
            self._entries = None

    def _load_from_file(self, records: Sequence[LoincCode], path: Path) -> List[EmbeddingEntry]:
        size_mb = path.stat().st_size / (1024 * 1024)
        logger.info(f"Loading embeddings file {path} ({size_mb:.2f} MB)...")

        vectors: Dict[str, Tuple[float, ...]] = {}
        invalid_rows = 0
        parser = IncrementalArrayParser(default_buffer_limit(self.chunk_size, self.max_buffer_chars))

        for row in iter_vector_records(path, self.chunk_size, prefetch=self.prefetch, parser=parser):
            pair = _vector_from_row(row)
            if pair is None:
                invalid_rows += 1
                logger.warning(f"Skipping embedding row without a code or numeric vector: {str(row)[:80]}")
                continue
            code, vector = pair
            vectors[code] = vector

        logger.info(f"Loaded {len(vectors)} embeddings from file")

        entries = []
        for record in records:
            vector = vectors.get(record.code)
            if vector is not None:
                entries.append(EmbeddingEntry(record, vector, create_searchable_text(record)))

        missing = len(records) - len(entries)
        if missing:
            logger.warning(f"{missing} of {len(records)} records have no pre-computed embedding")
        if invalid_rows:
            logger.warning(f"{invalid_rows} embedding rows were invalid and skipped")

        logger.info(f"Loaded {len(entries)} pre-computed embeddings")
        return entries

    def _generate(self, records: Sequence[LoincCode], generator: EmbeddingProvider) -> List[EmbeddingEntry]:
        entries = []
        for record in records:
            search_text = create_searchable_text(record)
            try:
                vectors = generator.embed_texts([search_text])
            except EmbeddingProviderError as e:
                logger.error(f"Failed to embed code {record.code}: {e}")
                continue
            if len(vectors) != 1:
                logger.error(f"Failed to embed code {record.code}: got {len(vectors)} vectors")
                continue
            entries.append(EmbeddingEntry(record, tuple(vectors[0]), search_text))
        return entries
