"""
Core Utilities - Shared file helpers for the LOINC search module.
"""

import hashlib
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Union


def compute_file_hash(path: Union[str, Path], block_size: int = 1024 * 1024) -> str:
    """
    Compute SHA256 hash of a file, reading it in blocks.

    Args:
        path: File to hash
        block_size: Read size in bytes

    Returns:
        Hex-encoded SHA256 hash (64 characters)
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(block_size), b""):
            digest.update(block)
    return digest.hexdigest()


@contextmanager
def atomic_writer(path: Union[str, Path]) -> Iterator[IO[str]]:
    """
    Open a temp file next to ``path`` for writing text; on a clean exit it is
    fsynced and moved over ``path`` with os.replace.

    Readers see either the previous content or the new content, never a
    partially written file. On error the temp file is removed and ``path``
    is left untouched.

    Example:
        >>> with atomic_writer("data/loinc-embeddings.json") as f:
        ...     f.write("[]")
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def atomic_write_text(path: Union[str, Path], text: str) -> None:
    """Replace the contents of ``path`` with ``text`` atomically."""
    with atomic_writer(path) as f:
        f.write(text)
