"""
Custom exceptions for the LOINC search module.
"""


class LoincSearchError(Exception):
    """Base exception for all LOINC search errors."""
    pass


class EmbeddingProviderError(LoincSearchError):
    """
    Error communicating with an embedding or explanation provider.

    Raised when:
    - Provider is unreachable
    - Request times out
    - Provider returns an error response
    - Provider returns a different number of vectors than inputs
    """

    def __init__(self, message: str, provider: str = None, status_code: int = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class CorpusError(LoincSearchError):
    """
    The corpus is inconsistent or invalid.

    Raised when:
    - A record has an empty code
    - Two records share the same code
    """
    pass


class VectorDimensionError(CorpusError, ValueError):
    """Vectors being compared have different lengths, or are empty."""
    pass


class StoreBuildError(LoincSearchError):
    """
    Building the embedding store failed.

    Raised when neither a vector file nor a generator is available, or when
    building produced no entries at all.
    """
    pass


class StoreNotBuiltError(LoincSearchError):
    """Search was attempted on a store that has not been built."""
    pass


class ImportBatchError(LoincSearchError):
    """
    The batch importer stopped on a failed batch.

    The progress marker still reflects the last successful batch, so a later
    run resumes at ``offset``.
    """

    def __init__(self, message: str, offset: int = None, batch_index: int = None):
        super().__init__(message)
        self.offset = offset
        self.batch_index = batch_index


class ConfigError(LoincSearchError):
    """
    Error in configuration.

    Raised when:
    - Configuration file is missing or invalid
    - Configuration values are out of valid range
    """
    pass
