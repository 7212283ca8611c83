"""
Core subpackage for the LOINC search module.

Contains types, exceptions, and logging utilities.
"""

from .types import (
    LoincCode,
    EmbeddingEntry,
    SearchHit,
    MatchResult,
    ProgressMarker,
    ProviderConfig,
    create_searchable_text,
    create_import_text,
)
from .exceptions import (
    LoincSearchError,
    EmbeddingProviderError,
    CorpusError,
    VectorDimensionError,
    StoreBuildError,
    StoreNotBuiltError,
    ImportBatchError,
    ConfigError,
)

__all__ = [
    # Types
    "LoincCode",
    "EmbeddingEntry",
    "SearchHit",
    "MatchResult",
    "ProgressMarker",
    "ProviderConfig",
    "create_searchable_text",
    "create_import_text",
    # Exceptions
    "LoincSearchError",
    "EmbeddingProviderError",
    "CorpusError",
    "VectorDimensionError",
    "StoreBuildError",
    "StoreNotBuiltError",
    "ImportBatchError",
    "ConfigError",
]
