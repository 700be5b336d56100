"""
In-memory holder of the books, authors and publishers collections.

Collections are loaded once at startup and mutated in place for the
lifetime of the process. Lookups are linear scans; there is no secondary
index at this scale.
"""

import copy
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog

from .errors import StoreLoadError
from .json_files import read_collection

logger = structlog.get_logger(__name__)

Entity = Dict[str, Any]


class Collection(str, Enum):
    """Named collections, each mirrored to ``<value>.json``."""
    BOOKS = "books"
    AUTHORS = "authors"
    PUBLISHERS = "publishers"

    @property
    def file_name(self) -> str:
        return f"{self.value}.json"

    @property
    def label(self) -> str:
        """Singular, capitalised entity name used in error messages."""
        return self.value[:-1].capitalize()

    @property
    def foreign_key(self) -> Optional[str]:
        """Book field referencing this collection, for parent collections."""
        if self is Collection.BOOKS:
            return None
        return f"{self.value[:-1]}_id"

    @property
    def is_parent(self) -> bool:
        return self is not Collection.BOOKS


class LibraryStore:
    """
    Owns the three collections.

    Mutations run synchronously to completion, so every change is visible
    to the next read in the same process.
    """

    def __init__(
        self,
        books: Optional[List[Entity]] = None,
        authors: Optional[List[Entity]] = None,
        publishers: Optional[List[Entity]] = None,
    ):
        self._collections: Dict[Collection, List[Entity]] = {
            Collection.BOOKS: books if books is not None else [],
            Collection.AUTHORS: authors if authors is not None else [],
            Collection.PUBLISHERS: publishers if publishers is not None else [],
        }

    @classmethod
    def load(cls, data_dir: Path) -> "LibraryStore":
        """
        Load every collection from ``data_dir``.

        A missing document starts its collection empty. A document that is
        not valid JSON or not a top-level array aborts the load.
        """
        data_dir = Path(data_dir)
        loaded: Dict[Collection, List[Entity]] = {}

        for collection in Collection:
            path = data_dir / collection.file_name
            try:
                entities = read_collection(path)
            except (OSError, ValueError) as e:
                logger.error("Failed to load collection", collection=collection.value,
                             path=str(path), error=str(e))
                raise StoreLoadError(f"Cannot load {path}: {e}") from e

            if entities is None:
                logger.warning("Collection file missing, starting empty",
                               collection=collection.value, path=str(path))
                entities = []
            elif not isinstance(entities, list):
                raise StoreLoadError(f"{path} must contain a JSON array")

            loaded[collection] = entities

        store = cls(
            books=loaded[Collection.BOOKS],
            authors=loaded[Collection.AUTHORS],
            publishers=loaded[Collection.PUBLISHERS],
        )
        logger.info("Library store loaded", data_dir=str(data_dir), **store.counts())
        return store

    def all(self, collection: Collection) -> List[Entity]:
        """Return the live list backing ``collection``."""
        return self._collections[collection]

    def index_of(self, collection: Collection, entity_id: int) -> int:
        for idx, entity in enumerate(self._collections[collection]):
            if entity.get("id") == entity_id:
                return idx
        return -1

    def find(self, collection: Collection, entity_id: int) -> Optional[Entity]:
        idx = self.index_of(collection, entity_id)
        if idx == -1:
            return None
        return self._collections[collection][idx]

    def exists(self, collection: Collection, entity_id: int) -> bool:
        return self.index_of(collection, entity_id) != -1

    def insert(self, collection: Collection, entity: Entity) -> None:
        self._collections[collection].append(entity)

    def replace_at(self, collection: Collection, index: int, entity: Entity) -> None:
        self._collections[collection][index] = entity

    def remove_where(self, collection: Collection, predicate: Callable[[Entity], bool]) -> int:
        """Remove every entity matching ``predicate``; return how many were removed."""
        entities = self._collections[collection]
        kept = [entity for entity in entities if not predicate(entity)]
        removed = len(entities) - len(kept)
        # Slice assignment keeps the list identity handed out by all().
        entities[:] = kept
        return removed

    def snapshot(self, collection: Collection) -> List[Entity]:
        """Deep copy of ``collection`` for persistence."""
        return copy.deepcopy(self._collections[collection])

    def counts(self) -> Dict[str, int]:
        return {collection.value: len(entities) for collection, entities in self._collections.items()}
