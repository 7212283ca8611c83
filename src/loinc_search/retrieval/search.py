"""
Retrieval Search - Rank the embedding store against a query vector.

Implements:
- Cosine similarity scoring (zero-magnitude vectors score 0.0)
- Exact top-K retrieval over the whole corpus
- Deterministic ordering: score descending, ties by corpus order
- Optional sharding of the scan across worker threads
"""

import heapq
import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Sequence, Tuple

from ..core.exceptions import VectorDimensionError
from ..core.types import SearchHit
from .store import EmbeddingStore


logger = logging.getLogger(__name__)


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        Cosine similarity score between -1 and 1; 0.0 if either vector has
        zero magnitude

    Raises:
        VectorDimensionError: If vectors have different dimensions or are empty
    """
    if not vec_a or not vec_b:
        raise VectorDimensionError("Vectors cannot be empty")

    if len(vec_a) != len(vec_b):
        raise VectorDimensionError(f"Vector dimensions must match: {len(vec_a)} != {len(vec_b)}")

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    magnitude_a = math.sqrt(sum(a * a for a in vec_a))
    magnitude_b = math.sqrt(sum(b * b for b in vec_b))

    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    return dot_product / (magnitude_a * magnitude_b)


def rank_candidates(
    query_vector: Sequence[float],
    candidates: Iterable[Tuple[int, Sequence[float]]],
    k: int,
) -> List[Tuple[float, int]]:
    """
    Score candidates and keep the best ``k``.

    Args:
        query_vector: Query embedding
        candidates: (corpus_index, vector) pairs
        k: Number of results to keep

    Returns:
        (score, corpus_index) pairs, score descending, ties by corpus_index

    Raises:
        VectorDimensionError: If any candidate's length differs from the query
    """
    if not query_vector:
        raise VectorDimensionError("Query vector cannot be empty")

    dimensions = len(query_vector)
    query_norm = math.sqrt(sum(q * q for q in query_vector))

    def scored():
        for index, vector in candidates:
            if len(vector) != dimensions:
                raise VectorDimensionError(
                    f"Vector dimensions must match: query has {dimensions}, "
                    f"corpus entry {index} has {len(vector)}"
                )
            norm = math.sqrt(sum(v * v for v in vector))
            if query_norm == 0 or norm == 0:
                yield 0.0, index
            else:
                dot_product = sum(q * v for q, v in zip(query_vector, vector))
                yield dot_product / (query_norm * norm), index

    return heapq.nsmallest(k, scored(), key=lambda pair: (-pair[0], pair[1]))


def top_k(
    query_vector: Sequence[float],
    store: EmbeddingStore,
    k: int,
    workers: int = 1,
) -> List[SearchHit]:
    """
    Return the ``k`` entries of the store most similar to the query.

    The store is not modified; concurrent calls on a built store are safe.

    Args:
        query_vector: Query embedding
        store: A built embedding store
        k: Number of results; exactly min(k, len(store)) hits are returned
        workers: Number of threads to shard the scan across

    Returns:
        SearchHit list ranked by score descending, ties by corpus order

    Raises:
        StoreNotBuiltError: If the store has not been built
        VectorDimensionError: If any stored vector's length differs from the query
        ValueError: If k or workers is negative / not positive
    """
    if k < 0:
        raise ValueError(f"k must not be negative, got {k}")
    if workers < 1:
        raise ValueError(f"workers must be positive, got {workers}")

    entries = store.entries
    if k == 0 or not entries:
        return []

    start_time = time.time()

    if workers == 1 or len(entries) < workers * 2:
        ranked = rank_candidates(
            query_vector, ((i, e.vector) for i, e in enumerate(entries)), k
        )
    else:
        shard_size = math.ceil(len(entries) / workers)
        bounds = [(s, min(s + shard_size, len(entries))) for s in range(0, len(entries), shard_size)]

        def rank_shard(bound: Tuple[int, int]) -> List[Tuple[float, int]]:
            lo, hi = bound
            return rank_candidates(
                query_vector, ((i, entries[i].vector) for i in range(lo, hi)), k
            )

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="search-shard") as executor:
            shard_results = list(executor.map(rank_shard, bounds))

        merged = (pair for shard in shard_results for pair in shard)
        ranked = heapq.nsmallest(k, merged, key=lambda pair: (-pair[0], pair[1]))

    hits = [
        SearchHit(record=entries[index].record, score=score, rank=rank, corpus_index=index)
        for rank, (score, index) in enumerate(ranked, start=1)
    ]

    execution_ms = int((time.time() - start_time) * 1000)
    logger.debug(
        f"Ranked {len(entries)} entries in {execution_ms}ms "
        f"(k={k}, workers={workers}, returned={len(hits)})"
    )

    return hits
