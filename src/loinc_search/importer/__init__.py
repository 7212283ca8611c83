"""
Importer module - Resumable batch generation of the vector file.

This module provides:
- ResumableImporter: Batch state machine with crash-safe resume
- ProgressStore: Atomic progress marker
- BatchJournal: Durable record of completed batches
"""

from .batch_importer import ImporterConfig, ImportResult, ImportState, ResumableImporter
from .journal import BatchJournal, write_vector_file
from .progress import ProgressStore

__all__ = [
    "ImporterConfig",
    "ImportResult",
    "ImportState",
    "ResumableImporter",
    "BatchJournal",
    "write_vector_file",
    "ProgressStore",
]
