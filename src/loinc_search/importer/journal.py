"""
Batch Journal - Append-only record of completed importer batches.

Each line is one JSON object ``{"code": ..., "embedding": [...]}``. Batches
are appended and fsynced before the progress marker is advanced, so after a
crash the journal holds at least as many rows as the marker claims; extra
rows from a batch whose marker write never happened are truncated on resume.

On completion the journal is turned into the final vector file (a JSON
array) via a temp file and an atomic replace.
"""

import json
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Sequence, Tuple, Union

from ..core.utils import atomic_writer


logger = logging.getLogger(__name__)


class BatchJournal:
    """Durable, line-oriented store of (code, vector) rows."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def append(self, rows: Iterable[Tuple[str, Sequence[float]]]) -> int:
        """
        Append rows and fsync.

        Returns:
            Number of rows written
        """
        lines = [json.dumps({"code": code, "embedding": list(vector)}) + "\n" for code, vector in rows]

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write("".join(lines))
            f.flush()
            os.fsync(f.fileno())

        return len(lines)

    def truncate(self, count: int) -> int:
        """
        Keep only the first ``count`` complete rows.

        A torn trailing line (no newline) is never counted.

        Returns:
            Number of rows kept (less than count if the journal is shorter)
        """
        if not self.path.exists():
            return 0

        kept = 0
        offset = 0
        with open(self.path, "rb+") as f:
            for line in f:
                if kept == count or not line.endswith(b"\n"):
                    break
                kept += 1
                offset += len(line)
            f.truncate(offset)

        logger.debug(f"Journal {self.path} truncated to {kept} rows")
        return kept

    def iter_lines(self) -> Iterator[str]:
        """Yield each complete row as its JSON text (no newline)."""
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                if line.endswith("\n"):
                    yield line[:-1]

    def remove(self) -> None:
        if self.path.exists():
            self.path.unlink()


def write_vector_file(journal: BatchJournal, output_path: Union[str, Path]) -> int:
    """
    Write the journal out as the final vector file.

    Written through atomic_writer: if anything fails, the previous file at
    ``output_path`` is left untouched.

    Returns:
        Number of rows written
    """
    count = 0
    with atomic_writer(output_path) as f:
        f.write("[")
        for line in journal.iter_lines():
            f.write(",\n" if count else "\n")
            f.write(line)
            count += 1
        f.write("\n]\n")

    logger.info(f"Saved {count} embeddings to {output_path}")
    return count
