"""
Incremental Array-of-Objects Parser.

Parses a top-level JSON array of flat objects,

    [ {"code": "2339-0", "embedding": [0.1, ...]}, {...}, ... ]

from an unbounded stream of byte chunks while holding only a bounded working
buffer. Object boundaries may fall anywhere relative to chunk boundaries.

Implements:
- Explicit lexer state machine carried across chunks
  (outside array, between objects, in object, in string, escaped)
- Immediate yield of each complete object, in file order
- Skip-and-continue on malformed objects
- Bounded memory: an object larger than the buffer limit is dropped
"""

import codecs
import json
import logging
import re
from contextlib import closing
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from .reader import DEFAULT_CHUNK_SIZE, ChunkedByteReader


logger = logging.getLogger(__name__)


DEFAULT_MAX_BUFFER_CHARS = 10 * 1024 * 1024
LOG_EVERY = 10000

# Next structurally interesting character for each state
_ARRAY_TOKENS = re.compile(r'[{\]"]')
_OBJECT_TOKENS = re.compile(r'[{}"]')
_STRING_TOKENS = re.compile(r'["\\]')


class LexState(Enum):
    """Lexer states of the array parser."""
    OUTSIDE_ARRAY = "outside_array"
    IN_ARRAY = "in_array"
    IN_OBJECT = "in_object"
    IN_STRING = "in_string"
    ESCAPED = "escaped"
    DONE = "done"


@dataclass
class ParserStats:
    """Counters for one parse."""
    records_parsed: int = 0
    records_skipped: int = 0
    records_dropped: int = 0
    chars_dropped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "records_parsed": self.records_parsed,
            "records_skipped": self.records_skipped,
            "records_dropped": self.records_dropped,
            "chars_dropped": self.chars_dropped,
        }


class IncrementalArrayParser:
    """
    Streaming parser for a top-level array of flat objects.

    Feed byte chunks in file order; each call yields the objects completed
    by that chunk. The parser is a single-consumer state machine and must not
    be shared between threads.

    Example:
        >>> parser = IncrementalArrayParser()
        >>> records = list(parser.feed(b'[{"code": "a"}, {"co'))
        >>> records += list(parser.feed(b'de": "b"}]'))
        >>> [r["code"] for r in records]
        ['a', 'b']
    """

    def __init__(self, max_buffer_chars: int = DEFAULT_MAX_BUFFER_CHARS):
        """
        Args:
            max_buffer_chars: Largest partial object kept in memory. A single
                object that grows past this is discarded and skipped.
        """
        if max_buffer_chars <= 0:
            raise ValueError(f"max_buffer_chars must be positive, got {max_buffer_chars}")

        self.max_buffer_chars = max_buffer_chars
        self.stats = ParserStats()

        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._pos = 0
        self._state = LexState.OUTSIDE_ARRAY
        self._depth = 0
        self._object_start: Optional[int] = None
        self._truncating = False

    @property
    def state(self) -> LexState:
        return self._state

    @property
    def finished(self) -> bool:
        """True once the closing bracket of the top-level array was seen."""
        return self._state is LexState.DONE

    @property
    def buffered_chars(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> Iterator[Dict[str, Any]]:
        """
        Consume one chunk of bytes and yield every object it completes.

        Input after the closing bracket is ignored.
        """
        if self.finished:
            return

        text = self._decoder.decode(chunk)
        if not text:
            return

        self._buffer += text
        yield from self._scan()
        self._compact()

    def close(self) -> List[Dict[str, Any]]:
        """
        Signal end of input.

        Flushes the decoder and returns any objects completed by it. Logs a
        warning if the input ended before the closing bracket.
        """
        records: List[Dict[str, Any]] = []

        if not self.finished:
            tail = self._decoder.decode(b"", final=True)
            if tail:
                self._buffer += tail
                records.extend(self._scan())
                self._compact()

        if not self.finished:
            if self._object_start is not None or self._truncating:
                self.stats.records_skipped += 1
            logger.warning(
                f"Input ended before the closing bracket of the array "
                f"(state={self._state.value}, {len(self._buffer)} chars unparsed)"
            )
            self._buffer = ""
            self._pos = 0
            self._object_start = None

        return records

    def _scan(self) -> Iterator[Dict[str, Any]]:
        """Advance the state machine over the unscanned part of the buffer."""
        buffer = self._buffer

        while self._pos < len(buffer):
            state = self._state

            if state is LexState.OUTSIDE_ARRAY:
                start = buffer.find("[", self._pos)
                if start == -1:
                    self._pos = len(buffer)
                    break
                # Discard everything up to and including the bracket
                self._buffer = buffer = buffer[start + 1:]
                self._pos = 0
                self._state = LexState.IN_ARRAY
                logger.debug("Found start of array")
                continue

            if state is LexState.ESCAPED:
                self._pos += 1
                self._state = LexState.IN_STRING
                continue

            if state is LexState.IN_STRING:
                pattern = _STRING_TOKENS
            elif state is LexState.IN_OBJECT:
                pattern = _OBJECT_TOKENS
            else:
                pattern = _ARRAY_TOKENS

            match = pattern.search(buffer, self._pos)
            if match is None:
                self._pos = len(buffer)
                break

            index = match.start()
            char = buffer[index]
            self._pos = index + 1

            if state is LexState.IN_STRING:
                if char == "\\":
                    self._state = LexState.ESCAPED
                else:
                    self._state = LexState.IN_OBJECT if self._depth > 0 else LexState.IN_ARRAY

            elif state is LexState.IN_ARRAY:
                if char == "{":
                    self._object_start = index
                    self._depth = 1
                    self._state = LexState.IN_OBJECT
                elif char == "]":
                    self._state = LexState.DONE
                    self._buffer = ""
                    self._pos = 0
                    logger.debug("Found end of array")
                    return
                else:
                    self._state = LexState.IN_STRING

            else:  # IN_OBJECT
                if char == '"':
                    self._state = LexState.IN_STRING
                elif char == "{":
                    self._depth += 1
                else:
                    self._depth -= 1
                    if self._depth == 0:
                        self._state = LexState.IN_ARRAY
                        record = self._complete_object(buffer, index)
                        if record is not None:
                            yield record

    def _complete_object(self, buffer: str, end: int) -> Optional[Dict[str, Any]]:
        """Parse the object ending at ``end``; None if it is skipped."""
        if self._truncating:
            # Buffer start is the continuation of the discarded object
            self._truncating = False
            self.stats.chars_dropped += end + 1
            self.stats.records_dropped += 1
            logger.warning(
                f"Dropped an object larger than {self.max_buffer_chars} chars "
                f"({self.stats.records_dropped} dropped so far)"
            )
            return None

        span = buffer[self._object_start:end + 1]
        self._object_start = None

        try:
            record = json.loads(span)
        except ValueError as e:
            self.stats.records_skipped += 1
            logger.warning(f"Skipping malformed object: {e} ({span[:80]!r})")
            return None

        if not isinstance(record, dict):
            self.stats.records_skipped += 1
            logger.warning(f"Skipping non-object value: {span[:80]!r}")
            return None

        self.stats.records_parsed += 1
        return record

    def _compact(self) -> None:
        """Drop consumed text and enforce the buffer limit."""
        if self._state is LexState.DONE:
            return

        if self._object_start is not None:
            keep_from = self._object_start
        else:
            keep_from = self._pos

        if self._truncating:
            self.stats.chars_dropped += keep_from

        if keep_from:
            self._buffer = self._buffer[keep_from:]
            self._pos -= keep_from
            if self._object_start is not None:
                self._object_start = 0

        if len(self._buffer) <= self.max_buffer_chars:
            return

        # Over the limit: everything buffered belongs to one unfinished
        # object (or precedes the array). Discard it, keep lexing.
        self.stats.chars_dropped += len(self._buffer)
        logger.warning(
            f"Buffer exceeded {self.max_buffer_chars} chars without a complete "
            f"object; discarding {len(self._buffer)} chars"
        )
        if self._object_start is not None:
            self._truncating = True
            self._object_start = None
        self._buffer = ""
        self._pos = 0


def default_buffer_limit(chunk_size: int, max_buffer_chars: Optional[int] = None) -> int:
    """Buffer limit for a parser fed chunk_size reads; never below one full default buffer."""
    if max_buffer_chars is not None:
        return max_buffer_chars
    return max(chunk_size, DEFAULT_MAX_BUFFER_CHARS)


def iter_vector_records(
    path: Union[str, Path],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_buffer_chars: Optional[int] = None,
    prefetch: bool = False,
    parser: Optional[IncrementalArrayParser] = None,
) -> Iterator[Dict[str, Any]]:
    """
    Stream the objects of a persisted vector file.

    Reading stops as soon as the closing bracket is found. I/O errors
    propagate and abort the iteration.

    Args:
        path: Vector file path
        chunk_size: Bytes per read
        max_buffer_chars: Parser buffer limit (defaults to the larger of
            chunk_size and DEFAULT_MAX_BUFFER_CHARS)
        prefetch: Read the next chunk in the background while parsing
        parser: Optional parser instance (to inspect its stats afterwards)
    """
    if parser is None:
        parser = IncrementalArrayParser(default_buffer_limit(chunk_size, max_buffer_chars))

    with ChunkedByteReader(path, chunk_size) as reader:
        with closing(reader.iter_chunks(prefetch=prefetch)) as chunks:
            for chunk in chunks:
                for record in parser.feed(chunk):
                    yield record
                    if parser.stats.records_parsed % LOG_EVERY == 0:
                        logger.info(f"Parsed {parser.stats.records_parsed} records...")
                if parser.finished:
                    break

    yield from parser.close()

    logger.info(
        f"Finished parsing {path}: {parser.stats.records_parsed} records, "
        f"{parser.stats.records_skipped} skipped, {parser.stats.records_dropped} dropped"
    )
