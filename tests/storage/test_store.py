"""
Unit tests for the in-memory library store.
"""

import pytest

from storage.errors import StoreLoadError
from storage.store import Collection, LibraryStore


class TestCollection:
    """Test cases for collection naming."""

    def test_file_names(self):
        assert Collection.BOOKS.file_name == "books.json"
        assert Collection.AUTHORS.file_name == "authors.json"
        assert Collection.PUBLISHERS.file_name == "publishers.json"

    def test_labels(self):
        assert Collection.BOOKS.label == "Book"
        assert Collection.AUTHORS.label == "Author"
        assert Collection.PUBLISHERS.label == "Publisher"

    def test_foreign_keys(self):
        assert Collection.BOOKS.foreign_key is None
        assert Collection.AUTHORS.foreign_key == "author_id"
        assert Collection.PUBLISHERS.foreign_key == "publisher_id"
        assert not Collection.BOOKS.is_parent
        assert Collection.AUTHORS.is_parent


class TestLibraryStoreLoad:
    """Test cases for loading collections from disk."""

    def test_load_reads_every_collection(self, data_dir):
        store = LibraryStore.load(data_dir)

        assert store.counts() == {"books": 3, "authors": 2, "publishers": 2}
        assert store.find(Collection.BOOKS, 3)["title"] == "Ficciones"

    def test_missing_file_starts_empty(self, data_dir):
        (data_dir / "publishers.json").unlink()

        store = LibraryStore.load(data_dir)

        assert store.all(Collection.PUBLISHERS) == []
        assert len(store.all(Collection.BOOKS)) == 3

    def test_malformed_file_fails(self, data_dir):
        (data_dir / "authors.json").write_text("[{", encoding="utf-8")

        with pytest.raises(StoreLoadError):
            LibraryStore.load(data_dir)

    def test_non_array_document_fails(self, data_dir):
        (data_dir / "books.json").write_text('{"id": 1}', encoding="utf-8")

        with pytest.raises(StoreLoadError):
            LibraryStore.load(data_dir)


class TestLibraryStore:
    """Test cases for store operations."""

    def test_find_and_index_of(self, store):
        assert store.index_of(Collection.BOOKS, 2) == 1
        assert store.index_of(Collection.BOOKS, 42) == -1
        assert store.find(Collection.AUTHORS, 2)["name"] == "Jorge Luis Borges"
        assert store.find(Collection.AUTHORS, 42) is None
        assert store.exists(Collection.PUBLISHERS, 1)
        assert not store.exists(Collection.PUBLISHERS, 3)

    def test_insert_is_visible_immediately(self, store):
        store.insert(Collection.BOOKS, {"id": 4, "title": "El Aleph"})

        assert store.find(Collection.BOOKS, 4) == {"id": 4, "title": "El Aleph"}
        assert store.index_of(Collection.BOOKS, 4) == 3

    def test_replace_at(self, store):
        store.replace_at(Collection.BOOKS, 0, {"id": 1, "title": "Replaced"})

        assert store.find(Collection.BOOKS, 1) == {"id": 1, "title": "Replaced"}

    def test_remove_where_keeps_list_identity(self, store):
        books = store.all(Collection.BOOKS)

        removed = store.remove_where(Collection.BOOKS, lambda b: b["author_id"] == 1)

        assert removed == 2
        assert store.all(Collection.BOOKS) is books
        assert [b["id"] for b in books] == [3]

    def test_remove_where_no_match(self, store):
        assert store.remove_where(Collection.AUTHORS, lambda a: a["id"] == 99) == 0
        assert len(store.all(Collection.AUTHORS)) == 2

    def test_snapshot_is_detached(self, store):
        snapshot = store.snapshot(Collection.AUTHORS)

        store.find(Collection.AUTHORS, 1)["books"].append({"book_id": 2, "title": "x"})

        assert len(snapshot[0]["books"]) == 1
