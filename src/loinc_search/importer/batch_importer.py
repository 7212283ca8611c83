"""
Resumable Batch Importer - Generates the persisted vector file in batches.

Workflow:
1. Read the progress marker and work out where to resume
2. Embed the corpus one batch at a time (one generator call per batch)
3. After each batch, journal the rows and advance the marker
4. At the end, atomically publish the vector file and delete marker + journal

An interrupted run (crash, Ctrl-C, batch failure) is finished by simply
running the importer again: completed batches are never regenerated.

Usage:
    importer = ResumableImporter(OllamaClient(), SearchConfig(path).get_importer_config())
    result = importer.run(load_loinc_codes("data/loinc-codes.json"))
"""

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.exceptions import ConfigError, EmbeddingProviderError, ImportBatchError
from ..core.logging import LogContext, log_with_context
from ..core.types import LoincCode, ProgressMarker, create_import_text
from ..core.utils import compute_file_hash
from ..providers.base import EmbeddingProvider
from .journal import BatchJournal, write_vector_file
from .progress import ProgressStore


logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 100
DEFAULT_BATCH_DELAY_SECONDS = 0.1
DEFAULT_OUTPUT_PATH = "data/loinc-embeddings.json"

PROGRESS_SUFFIX = ".progress"
JOURNAL_SUFFIX = ".partial"


class ImportState(Enum):
    IDLE = "idle"
    RESUMING = "resuming"
    PROCESSING_BATCH = "processing_batch"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImporterConfig:
    """Configuration for the batch importer."""
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS
    output_path: str = DEFAULT_OUTPUT_PATH
    progress_path: Optional[str] = None
    journal_path: Optional[str] = None

    @property
    def resolved_progress_path(self) -> Path:
        return Path(self.progress_path or f"{self.output_path}{PROGRESS_SUFFIX}")

    @property
    def resolved_journal_path(self) -> Path:
        return Path(self.journal_path or f"{self.output_path}{JOURNAL_SUFFIX}")

    def validate(self) -> None:
        if not isinstance(self.batch_size, int) or self.batch_size <= 0:
            raise ConfigError(f"batch_size must be a positive integer, got {self.batch_size!r}")
        if self.batch_delay_seconds < 0:
            raise ConfigError(
                f"batch_delay_seconds must not be negative, got {self.batch_delay_seconds!r}"
            )
        if not self.output_path:
            raise ConfigError("output_path is required")


@dataclass
class ImportResult:
    """Summary of a completed import run."""
    run_id: str
    total_records: int
    resumed_from: int
    batches_processed: int
    records_processed: int
    output_path: str
    duration_seconds: float
    content_sha256: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "total_records": self.total_records,
            "resumed_from": self.resumed_from,
            "batches_processed": self.batches_processed,
            "records_processed": self.records_processed,
            "output_path": self.output_path,
            "duration_seconds": round(self.duration_seconds, 3),
            "content_sha256": self.content_sha256,
        }


class ResumableImporter:
    """
    Drives the batch import state machine.

    IDLE -> RESUMING -> PROCESSING_BATCH -> PERSISTING -> (PROCESSING_BATCH | COMPLETED)
    Any failure moves to FAILED with the marker left at the last completed batch.
    """

    def __init__(
        self,
        generator: EmbeddingProvider,
        config: Optional[ImporterConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            generator: Embedding provider called once per batch
            config: Importer configuration
            sleep: Pacing function called between batches
        """
        self.generator = generator
        self.config = config or ImporterConfig()
        self.config.validate()
        self._sleep = sleep

        self.progress = ProgressStore(self.config.resolved_progress_path)
        self.journal = BatchJournal(self.config.resolved_journal_path)
        self._state = ImportState.IDLE

    @property
    def state(self) -> ImportState:
        return self._state

    def _transition(self, state: ImportState) -> None:
        logger.debug(f"Importer state {self._state.value} -> {state.value}")
        self._state = state

    def reset(self) -> None:
        """Discard any saved progress so the next run starts from the beginning."""
        self.progress.clear()
        self.journal.remove()
        logger.info("Discarded saved import progress")

    def resume_offset(self, records: Sequence[LoincCode]) -> int:
        """
        Work out the index of the first record still to be embedded.

        The marker is trusted only if its last code sits at processed_count - 1
        in the current corpus and the journal holds at least that many rows.
        The journal is truncated to the returned offset.
        """
        marker = self.progress.load()
        if marker is None or marker.processed_count == 0:
            self.journal.remove()
            return 0

        offset = self._marker_offset(records, marker)
        if offset == 0:
            logger.warning(
                f"Ignoring stale progress marker (last_code={marker.last_code}, "
                f"processed_count={marker.processed_count}); starting from the beginning"
            )
            self.reset()
            return 0

        kept = self.journal.truncate(offset)
        if kept < offset:
            logger.warning(
                f"Progress marker claims {offset} records but the journal holds {kept}; "
                f"starting from the beginning"
            )
            self.reset()
            return 0

        return offset

    def _marker_offset(self, records: Sequence[LoincCode], marker: ProgressMarker) -> int:
        if marker.last_code is None:
            return 0
        for index, record in enumerate(records):
            if record.code == marker.last_code:
                return index + 1 if index + 1 == marker.processed_count else 0
        return 0

    def run(self, records: Sequence[LoincCode]) -> ImportResult:
        """
        Import (or finish importing) the corpus.

        Args:
            records: Ordered record corpus; must be the same ordering across runs

        Returns:
            ImportResult for this run

        Raises:
            ImportBatchError: If a batch failed; rerunning resumes from that batch
            OSError: If the journal, marker or vector file cannot be written
        """
        run_id = uuid.uuid4().hex[:12]
        start_time = time.time()
        total = len(records)
        batch_size = self.config.batch_size

        with LogContext(run_id=run_id):
            self._transition(ImportState.RESUMING)
            try:
                offset = self.resume_offset(records)
            except BaseException:
                self._transition(ImportState.FAILED)
                raise
            resumed_from = offset

            if offset:
                log_with_context(
                    logger, logging.INFO,
                    f"Resuming from code {offset} ({offset}/{total} already processed)",
                )
            else:
                log_with_context(logger, logging.INFO, f"Starting import of {total} codes")

            batches_processed = 0
            while offset < total:
                batch = records[offset:offset + batch_size]
                batch_index = offset // batch_size

                with LogContext(batch_index=batch_index, offset=offset):
                    self._transition(ImportState.PROCESSING_BATCH)
                    vectors = self._embed_batch(batch, offset, batch_index)

                    self._transition(ImportState.PERSISTING)
                    try:
                        self.journal.append(zip((r.code for r in batch), vectors))
                        offset += len(batch)
                        self.progress.save(ProgressMarker(processed_count=offset, last_code=batch[-1].code))
                    except BaseException:
                        self._transition(ImportState.FAILED)
                        raise

                    batches_processed += 1
                    pct = offset / total * 100
                    log_with_context(logger, logging.INFO, f"Processed {offset}/{total} codes ({pct:.1f}%)")

                if offset < total and self.config.batch_delay_seconds > 0:
                    self._sleep(self.config.batch_delay_seconds)

            self._transition(ImportState.PERSISTING)
            try:
                written = write_vector_file(self.journal, self.config.output_path)
                if written != total:
                    raise ImportBatchError(
                        f"Journal holds {written} rows but the corpus has {total} records; "
                        f"rerun with --fresh",
                        offset=written,
                    )
                self.progress.clear()
                self.journal.remove()
            except BaseException:
                self._transition(ImportState.FAILED)
                raise

            self._transition(ImportState.COMPLETED)

            result = ImportResult(
                run_id=run_id,
                total_records=total,
                resumed_from=resumed_from,
                batches_processed=batches_processed,
                records_processed=offset - resumed_from,
                output_path=str(self.config.output_path),
                duration_seconds=time.time() - start_time,
                content_sha256=compute_file_hash(self.config.output_path),
            )
            log_with_context(
                logger, logging.INFO,
                f"Import complete: {total} codes, {batches_processed} batches "
                f"in {result.duration_seconds:.1f}s",
            )
            return result

    def _embed_batch(self, batch: Sequence[LoincCode], offset: int, batch_index: int) -> List[List[float]]:
        texts = [create_import_text(record) for record in batch]
        try:
            vectors = self.generator.embed_texts(texts)
            if len(vectors) != len(batch):
                raise EmbeddingProviderError(
                    f"Generator returned {len(vectors)} vectors for {len(batch)} texts"
                )
        except Exception as e:
            self._transition(ImportState.FAILED)
            log_with_context(
                logger, logging.ERROR,
                f"Batch {batch_index} (codes {offset}-{offset + len(batch) - 1}) failed: {e}",
            )
            raise ImportBatchError(
                f"Embedding failed for batch {batch_index} at offset {offset}: {e}",
                offset=offset,
                batch_index=batch_index,
            ) from e
        return [[float(v) for v in vector] for vector in vectors]
