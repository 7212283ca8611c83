"""
Unit tests for the embedding store.
"""

import json
import threading

import pytest

from conftest import FakeEmbeddingProvider, make_records
from loinc_search.core.exceptions import EmbeddingProviderError, StoreBuildError, StoreNotBuiltError
from loinc_search.core.types import create_searchable_text
from loinc_search.retrieval.store import EmbeddingStore


def _write_vectors(path, rows):
    path.write_text(json.dumps(rows), encoding="utf-8")


class TestBuildFromFile:
    """Tests for building from a persisted vector file."""

    def test_joins_vectors_in_record_order(self, tmp_path):
        """Test entries follow corpus order regardless of file order."""
        records = make_records(3)
        path = tmp_path / "vectors.json"
        _write_vectors(path, [
            {"code": records[2].code, "embedding": [0.0, 1.0]},
            {"code": records[0].code, "embedding": [1.0, 0.0]},
            {"code": records[1].code, "embedding": [1.0, 1.0]},
        ])

        store = EmbeddingStore().build(records, vector_path=path)

        assert [e.code for e in store.entries] == [r.code for r in records]
        assert store.entries[0].vector == (1.0, 0.0)

    def test_records_without_vectors_omitted(self, tmp_path):
        records = make_records(3)
        path = tmp_path / "vectors.json"
        _write_vectors(path, [
            {"code": records[1].code, "embedding": [1.0]},
            {"code": "not-in-corpus", "embedding": [2.0]},
        ])

        store = EmbeddingStore().build(records, vector_path=path)

        assert [e.code for e in store.entries] == [records[1].code]

    def test_invalid_rows_skipped(self, tmp_path):
        """Test rows without a code or numeric vector are skipped."""
        records = make_records(3)
        path = tmp_path / "vectors.json"
        _write_vectors(path, [
            {"code": records[0].code, "embedding": "not a list"},
            {"embedding": [1.0]},
            {"code": records[1].code, "embedding": [1.0, "x"]},
            {"code": records[2].code, "embedding": [3, 4]},
        ])

        store = EmbeddingStore().build(records, vector_path=path)

        assert len(store) == 1
        assert store.entries[0].vector == (3.0, 4.0)

    def test_small_chunks(self, tmp_path):
        """Test a file read in tiny chunks builds the same store."""
        records = make_records(20)
        path = tmp_path / "vectors.json"
        _write_vectors(path, [{"code": r.code, "embedding": [i, i + 0.5]} for i, r in enumerate(records)])

        small = EmbeddingStore(chunk_size=5).build(records, vector_path=path)
        large = EmbeddingStore().build(records, vector_path=path)

        assert small.entries == large.entries

    def test_chunk_smaller_than_one_record(self, tmp_path):
        """Test reads shorter than a single row still load every row."""
        records = make_records(5)
        path = tmp_path / "vectors.json"
        _write_vectors(path, [{"code": r.code, "embedding": [0.25, 0.5, 0.75]} for r in records])

        store = EmbeddingStore(chunk_size=16).build(records, vector_path=path)

        assert [e.code for e in store.entries] == [r.code for r in records]
        assert store.entries[0].vector == (0.25, 0.5, 0.75)

    def test_search_text_populated(self, tmp_path):
        records = make_records(1)
        path = tmp_path / "vectors.json"
        _write_vectors(path, [{"code": records[0].code, "embedding": [1.0]}])

        store = EmbeddingStore().build(records, vector_path=path)

        assert store.entries[0].search_text == create_searchable_text(records[0])

    def test_file_preferred_over_generator(self, tmp_path):
        records = make_records(2)
        path = tmp_path / "vectors.json"
        _write_vectors(path, [{"code": r.code, "embedding": [1.0]} for r in records])
        provider = FakeEmbeddingProvider()

        EmbeddingStore().build(records, vector_path=path, generator=provider)

        assert provider.calls == []

    def test_empty_file_raises(self, tmp_path):
        """Test a file yielding no usable entries is a build failure."""
        path = tmp_path / "vectors.json"
        path.write_text("[]", encoding="utf-8")
        store = EmbeddingStore()

        with pytest.raises(StoreBuildError, match="empty"):
            store.build(make_records(3), vector_path=path)

        assert not store.is_built


class TestBuildGenerated:
    """Tests for generating vectors when no file exists."""

    def test_generates_one_vector_per_record(self, tmp_path, fake_provider):
        records = make_records(4)

        store = EmbeddingStore().build(records, vector_path=tmp_path / "missing.json", generator=fake_provider)

        assert len(store) == 4
        assert fake_provider.calls == [[create_searchable_text(r)] for r in records]

    def test_failed_records_skipped(self):
        """Test a record whose generation fails is left out."""
        provider = FakeEmbeddingProvider(fail_on_call=2)
        records = make_records(3)

        store = EmbeddingStore().build(records, generator=provider)

        assert [e.code for e in store.entries] == [records[0].code, records[2].code]

    def test_all_failures_raise(self):
        class BrokenProvider:
            def embed_texts(self, texts):
                raise EmbeddingProviderError("down")

        with pytest.raises(StoreBuildError):
            EmbeddingStore().build(make_records(2), generator=BrokenProvider())

    def test_no_source_raises(self, tmp_path):
        with pytest.raises(StoreBuildError, match="no embedding generator"):
            EmbeddingStore().build(make_records(2), vector_path=tmp_path / "missing.json")


class TestStoreLifecycle:
    """Tests for memoization, reset and unbuilt access."""

    def test_unbuilt_store_raises(self):
        store = EmbeddingStore()

        assert not store.is_built
        assert len(store) == 0
        with pytest.raises(StoreNotBuiltError):
            store.entries

    def test_build_is_memoized(self, fake_provider):
        """Test a second build does not regenerate."""
        records = make_records(3)
        store = EmbeddingStore()

        store.build(records, generator=fake_provider)
        first = store.entries
        store.build(records, generator=fake_provider)

        assert store.entries is first
        assert len(fake_provider.calls) == 3

    def test_reset_allows_rebuild(self, fake_provider):
        records = make_records(2)
        store = EmbeddingStore().build(records, generator=fake_provider)

        store.reset()

        assert not store.is_built
        store.build(records, generator=fake_provider)
        assert len(fake_provider.calls) == 4

    def test_concurrent_builders_build_once(self, fake_provider):
        """Test racing builders trigger a single build."""
        records = make_records(5)
        store = EmbeddingStore()
        barrier = threading.Barrier(4)

        def build():
            barrier.wait()
            store.build(records, generator=fake_provider)

        threads = [threading.Thread(target=build) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 5
        assert len(fake_provider.calls) == 5
