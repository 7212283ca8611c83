"""
Corpus module - Reading the persisted LOINC corpus.

This module provides:
- Reader: Fixed-size chunked reads of large files
- Stream parser: Incremental parsing of the vector file
- Records: LOINC record loading (file, sample fallback, CSV mapping)
"""

from .reader import ChunkedByteReader
from .stream_parser import IncrementalArrayParser, LexState, iter_vector_records
from .records import LoaderConfig, load_loinc_codes, records_from_csv, save_loinc_codes

__all__ = [
    "ChunkedByteReader",
    "IncrementalArrayParser",
    "LexState",
    "iter_vector_records",
    "LoaderConfig",
    "load_loinc_codes",
    "records_from_csv",
    "save_loinc_codes",
]
