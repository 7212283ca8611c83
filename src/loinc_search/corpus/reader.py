"""
Chunked Byte Reader - Pull fixed-size byte windows from a file.

The reader knows nothing about the file format. It tracks its own offset,
never re-reads consumed bytes, and releases its file handle as soon as the
end of input is reached or it is closed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union


logger = logging.getLogger(__name__)


DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024  # 10 MiB


class ChunkedByteReader:
    """
    Reads a file in fixed-size chunks at increasing offsets.

    Example:
        >>> with ChunkedByteReader("data/loinc-embeddings.json") as reader:
        ...     for chunk in reader.iter_chunks():
        ...         parser.feed(chunk)
    """

    def __init__(self, path: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Open the file for reading.

        Args:
            path: File to read
            chunk_size: Maximum number of bytes returned per read

        Raises:
            ValueError: If chunk_size is not positive
            OSError: If the file cannot be opened
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self.path = Path(path)
        self.chunk_size = chunk_size
        self.offset = 0
        self._handle: Optional[BinaryIO] = open(self.path, "rb")

        logger.debug(f"Opened {self.path} for chunked reading (chunk_size={chunk_size})")

    @property
    def closed(self) -> bool:
        return self._handle is None

    def read_chunk(self) -> bytes:
        """
        Read the next chunk starting at the current offset.

        Returns:
            Up to chunk_size bytes; b"" at end of input or after close.

        Raises:
            OSError: Propagated from the underlying read
        """
        if self._handle is None:
            return b""

        self._handle.seek(self.offset)
        data = self._handle.read(self.chunk_size)

        if not data:
            logger.debug(f"End of input for {self.path} at offset {self.offset}")
            self.close()
            return b""

        self.offset += len(data)
        return data

    def iter_chunks(self, prefetch: bool = False) -> Iterator[bytes]:
        """
        Iterate over the remaining non-empty chunks in offset order.

        Args:
            prefetch: If True, the next read runs on a background thread
                while the caller processes the current chunk.
        """
        if not prefetch:
            while True:
                chunk = self.read_chunk()
                if not chunk:
                    return
                yield chunk

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="chunk-reader") as executor:
            pending = executor.submit(self.read_chunk)
            while True:
                chunk = pending.result()
                if not chunk:
                    return
                pending = executor.submit(self.read_chunk)
                yield chunk

    def close(self) -> None:
        """Release the file handle. Safe to call more than once."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "ChunkedByteReader":
        return self

    def __exit__(self, *args) -> None:
        self.close()
