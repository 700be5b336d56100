"""
Pytest configuration and shared fixtures.
"""

import copy
import json

import pytest
from fastapi.testclient import TestClient

from storage.store import LibraryStore
from utilities.config import config


SAMPLE_BOOKS = [
    {"id": 1, "title": "Cien años de soledad", "author_id": 1, "publisher_id": 1},
    {"id": 2, "title": "El amor en los tiempos del cólera", "author_id": 1, "publisher_id": 2},
    {"id": 3, "title": "Ficciones", "author_id": 2, "publisher_id": None},
]

SAMPLE_AUTHORS = [
    {"id": 1, "name": "Gabriel García Márquez", "books": [{"book_id": 1, "title": "Cien años de soledad"}]},
    {"id": 2, "name": "Jorge Luis Borges", "books": []},
]

SAMPLE_PUBLISHERS = [
    {"id": 1, "name": "Editorial Sudamericana", "books": [{"book_id": 1, "title": "Cien años de soledad"}]},
    {"id": 2, "name": "Oveja Negra", "books": []},
]


@pytest.fixture
def read_document():
    """Decode a collection document from a data directory."""
    def _read(data_dir, file_name):
        return json.loads((data_dir / file_name).read_text(encoding="utf-8"))
    return _read


@pytest.fixture
def sample_books():
    return copy.deepcopy(SAMPLE_BOOKS)


@pytest.fixture
def sample_authors():
    return copy.deepcopy(SAMPLE_AUTHORS)


@pytest.fixture
def sample_publishers():
    return copy.deepcopy(SAMPLE_PUBLISHERS)


@pytest.fixture
def store(sample_books, sample_authors, sample_publishers):
    """Create an in-memory store seeded with sample data."""
    return LibraryStore(books=sample_books, authors=sample_authors, publishers=sample_publishers)


@pytest.fixture
def data_dir(tmp_path, sample_books, sample_authors, sample_publishers):
    """Temporary data directory holding the three collection documents."""
    for name, entities in (
        ("books.json", sample_books),
        ("authors.json", sample_authors),
        ("publishers.json", sample_publishers),
    ):
        (tmp_path / name).write_text(json.dumps(entities, indent=2), encoding="utf-8")
    return tmp_path


@pytest.fixture
def client(data_dir, monkeypatch):
    """Test client running the app lifespan against the temporary data directory."""
    from api.main import app

    monkeypatch.setattr(config, "data_dir", str(data_dir))
    with TestClient(app) as test_client:
        yield test_client
