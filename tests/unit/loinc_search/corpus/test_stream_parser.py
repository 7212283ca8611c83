"""
Unit tests for the incremental array-of-objects parser.

Tests for:
- Chunk-boundary invariance
- Braces, brackets and escapes inside strings
- Malformed-object skipping
- Oversized-object dropping
- End-of-array and truncated-input handling
"""

import json

import pytest

from loinc_search.corpus.stream_parser import (
    DEFAULT_MAX_BUFFER_CHARS,
    IncrementalArrayParser,
    LexState,
    default_buffer_limit,
    iter_vector_records,
)


TRICKY_RECORDS = [
    {"code": "2339-0", "embedding": [0.1, -0.2, 3e-05]},
    {"code": "brace}{", "note": "array ] and [ inside", "embedding": [1.0]},
    {"code": "quote\"d", "note": "backslash \\ and \\\" escaped", "embedding": []},
    {"code": "unicode", "note": "Glucose café 日本 🧪", "embedding": [2.5]},
    {"code": "nested", "meta": {"inner": {"deep": "}"}}, "embedding": [0.0, 1.0]},
    {"code": "empty-string", "note": "", "embedding": [4.0]},
]


def _document(records, indent=None):
    return json.dumps(records, ensure_ascii=False, indent=indent).encode("utf-8")


def _parse_in_chunks(data: bytes, chunk_size: int, max_buffer_chars: int = 100_000):
    parser = IncrementalArrayParser(max_buffer_chars)
    records = []
    for start in range(0, len(data), chunk_size):
        records.extend(parser.feed(data[start:start + chunk_size]))
    records.extend(parser.close())
    return records, parser


class TestChunkBoundaryInvariance:
    """The parsed sequence must not depend on where chunks split."""

    def test_every_chunk_size_yields_same_records(self):
        """Test all chunk sizes from 1 byte to the whole document."""
        data = _document(TRICKY_RECORDS)

        for chunk_size in range(1, len(data) + 1):
            records, parser = _parse_in_chunks(data, chunk_size)
            assert records == TRICKY_RECORDS, f"chunk_size={chunk_size}"
            assert parser.finished

    def test_pretty_printed_document(self):
        """Test whitespace and newlines between objects are ignored."""
        data = _document(TRICKY_RECORDS, indent=2)

        for chunk_size in (1, 2, 3, 5, 8, 64):
            records, _ = _parse_in_chunks(data, chunk_size)
            assert records == TRICKY_RECORDS

    def test_multibyte_character_split_across_chunks(self):
        """Test a UTF-8 sequence split between chunks decodes correctly."""
        data = '[{"code": "é"}]'.encode("utf-8")
        split = data.index(b"\xc3") + 1

        parser = IncrementalArrayParser()
        records = list(parser.feed(data[:split])) + list(parser.feed(data[split:]))

        assert records == [{"code": "é"}]

    def test_escape_at_chunk_end(self):
        """Test a backslash ending a chunk still escapes the next quote."""
        parser = IncrementalArrayParser()
        records = list(parser.feed(b'[{"code": "a\\'))
        assert parser.state is LexState.ESCAPED

        records += list(parser.feed(b'"b"}]'))

        assert records == [{"code": 'a"b'}]


class TestParserBehavior:
    """Tests for IncrementalArrayParser edge cases."""

    def test_objects_yielded_as_soon_as_complete(self):
        """Test each object is yielded by the chunk that closes it."""
        parser = IncrementalArrayParser()

        first = list(parser.feed(b'[{"code": "a"}, {"code'))
        second = list(parser.feed(b'": "b"}'))

        assert first == [{"code": "a"}]
        assert second == [{"code": "b"}]
        assert not parser.finished

    def test_malformed_object_is_skipped(self):
        """Test an unparseable object is skipped and parsing continues."""
        data = b'[{"code": "a"}, {"code": oops}, {"code": "c"}]'

        records, parser = _parse_in_chunks(data, 4)

        assert [r["code"] for r in records] == ["a", "c"]
        assert parser.stats.records_skipped == 1
        assert parser.stats.records_parsed == 2

    def test_leading_text_before_array(self):
        """Test anything before the opening bracket is ignored."""
        records, _ = _parse_in_chunks(b'\xef\xbb\xbf  \n [{"code": "a"}]', 3)

        assert records == [{"code": "a"}]

    def test_empty_array(self):
        """Test an empty array yields nothing and finishes."""
        records, parser = _parse_in_chunks(b"[ ]", 1)

        assert records == []
        assert parser.finished

    def test_input_after_closing_bracket_ignored(self):
        """Test objects after the end of the array are not yielded."""
        parser = IncrementalArrayParser()

        records = list(parser.feed(b'[{"code": "a"}] {"code": "b"}'))
        records += list(parser.feed(b'{"code": "c"}'))

        assert records == [{"code": "a"}]
        assert parser.finished
        assert parser.buffered_chars == 0

    def test_truncated_input(self):
        """Test a missing closing bracket keeps completed objects only."""
        records, parser = _parse_in_chunks(b'[{"code": "a"}, {"code": "b"', 5)

        assert records == [{"code": "a"}]
        assert not parser.finished
        assert parser.stats.records_skipped == 1

    def test_buffer_compacted_between_chunks(self):
        """Test consumed text is not retained."""
        parser = IncrementalArrayParser()
        list(parser.feed(b'[{"code": "a"}, {"code": "b"}, '))

        assert parser.buffered_chars <= 2

    @pytest.mark.parametrize("limit", [0, -5])
    def test_invalid_buffer_limit(self, limit):
        """Test non-positive buffer limits are rejected."""
        with pytest.raises(ValueError, match="max_buffer_chars must be positive"):
            IncrementalArrayParser(limit)


class TestBufferOverflow:
    """Objects larger than the buffer limit are dropped, parsing continues."""

    def test_oversized_object_dropped(self):
        """Test the oversized object is counted and its neighbours survive."""
        big = {"code": "big", "embedding": [0.123456789] * 40}
        data = _document([{"code": "a"}, big, {"code": "c"}])

        records, parser = _parse_in_chunks(data, 10, max_buffer_chars=50)

        assert [r["code"] for r in records] == ["a", "c"]
        assert parser.stats.records_dropped == 1
        assert parser.stats.chars_dropped > 50
        assert parser.finished

    def test_oversized_object_with_braces_in_strings(self):
        """Test the skip still honours strings inside the dropped object."""
        big = {"code": "big", "note": "}}}" * 30 + "{" * 10}
        data = _document([big, {"code": "after"}])

        records, parser = _parse_in_chunks(data, 8, max_buffer_chars=40)

        assert records == [{"code": "after"}]
        assert parser.stats.records_dropped == 1

    def test_buffer_never_exceeds_limit_between_feeds(self):
        """Test the retained buffer stays within the limit."""
        big = {"code": "big", "embedding": list(range(200))}
        data = _document([big, {"code": "c"}])
        parser = IncrementalArrayParser(64)

        for start in range(0, len(data), 16):
            list(parser.feed(data[start:start + 16]))
            assert parser.buffered_chars <= 64


class TestIterVectorRecords:
    """Tests for iter_vector_records over a file."""

    def test_streams_file(self, tmp_path):
        """Test a vector file is streamed in order."""
        path = tmp_path / "vectors.json"
        path.write_bytes(_document(TRICKY_RECORDS, indent=2))

        records = list(iter_vector_records(path, chunk_size=7))

        assert records == TRICKY_RECORDS

    def test_prefetch_matches_sequential(self, tmp_path):
        """Test read-ahead produces the same records."""
        path = tmp_path / "vectors.json"
        rows = [{"code": str(i), "embedding": [i / 10.0] * 5} for i in range(50)]
        path.write_bytes(_document(rows))

        assert list(iter_vector_records(path, chunk_size=13, prefetch=True)) == rows

    def test_chunk_smaller_than_one_record(self, tmp_path):
        """Test the default buffer limit does not shrink with the read size."""
        path = tmp_path / "vectors.json"
        rows = [{"code": f"{i}-0", "embedding": [0.1, 0.2, 0.3]} for i in range(5)]
        path.write_bytes(_document(rows))

        for chunk_size in (16, 4096):
            assert list(iter_vector_records(path, chunk_size=chunk_size)) == rows

    def test_parser_stats_available(self, tmp_path):
        """Test a caller-provided parser exposes counters afterwards."""
        path = tmp_path / "vectors.json"
        path.write_bytes(b'[{"code": "a"}, {bad}, {"code": "b"}]')
        parser = IncrementalArrayParser(1024)

        records = list(iter_vector_records(path, chunk_size=4, parser=parser))

        assert len(records) == 2
        assert parser.stats.to_dict() == {
            "records_parsed": 2,
            "records_skipped": 1,
            "records_dropped": 0,
            "chars_dropped": 0,
        }


class TestDefaultBufferLimit:
    """Tests for default_buffer_limit."""

    def test_small_chunks_keep_full_limit(self):
        assert default_buffer_limit(16) == DEFAULT_MAX_BUFFER_CHARS

    def test_large_chunks_raise_limit(self):
        assert default_buffer_limit(DEFAULT_MAX_BUFFER_CHARS * 2) == DEFAULT_MAX_BUFFER_CHARS * 2

    def test_explicit_limit_wins(self):
        assert default_buffer_limit(16, 64) == 64
