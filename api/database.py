"""
Library service layer for the FastAPI application.

Each mutating call changes the in-memory store synchronously, then queues
a snapshot of every collection it touched and waits for those writes to
settle. If a write fails the in-memory change stays applied; the caller
gets PersistenceError and the document catches up on the next write of
that collection.
"""

import asyncio
from typing import Any, Dict, List, Optional

import structlog

from storage.errors import DuplicateEntityError, EntityNotFoundError, MissingFieldError
from storage.relationships import RelationshipMaintainer
from storage.store import Collection, Entity, LibraryStore
from storage.write_queue import WriteQueue

logger = structlog.get_logger(__name__)


class LibraryService:
    """Service for API operations on books, authors and publishers."""

    def __init__(self, store: LibraryStore, write_queue: WriteQueue):
        self.store = store
        self.write_queue = write_queue
        self.relationships = RelationshipMaintainer(store)

    async def _persist(self, *collections: Collection) -> None:
        """
        Queue one write per collection, in the order given, and wait for all
        of them.

        Raises:
            PersistenceError: if any of the writes failed
        """
        futures = [
            self.write_queue.enqueue(collection, self.store.snapshot(collection))
            for collection in collections
        ]
        results = await asyncio.gather(*futures, return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise errors[0]

    def list_entities(self, collection: Collection) -> List[Entity]:
        return self.store.all(collection)

    def get_entity(self, collection: Collection, entity_id: Optional[int]) -> Entity:
        entity = self.store.find(collection, entity_id) if entity_id is not None else None
        if entity is None:
            raise EntityNotFoundError(collection.label, entity_id)
        return entity

    async def create_entity(self, collection: Collection, payload: Dict[str, Any]) -> Entity:
        """
        Insert a new entity.

        Args:
            collection: Target collection
            payload: Entity fields, ``id`` included

        Returns:
            The stored entity
        """
        entity_id = payload.get("id")
        if not entity_id:
            raise MissingFieldError("id")
        if self.store.exists(collection, entity_id):
            raise DuplicateEntityError(collection.label, entity_id)

        entity = dict(payload)
        if collection.is_parent and not entity.get("books"):
            entity["books"] = []

        self.store.insert(collection, entity)
        logger.info(f"{collection.label} created", entity_id=entity_id)
        await self._persist(collection)
        return entity

    async def replace_entity(
        self, collection: Collection, entity_id: Optional[int], payload: Dict[str, Any]
    ) -> Entity:
        """Replace an entity wholesale; the path identifier wins over the body."""
        idx = self.store.index_of(collection, entity_id) if entity_id is not None else -1
        if idx == -1:
            raise EntityNotFoundError(collection.label, entity_id)

        entity = {**payload, "id": entity_id}
        if collection.is_parent and not entity.get("books"):
            entity["books"] = []

        self.store.replace_at(collection, idx, entity)
        logger.info(f"{collection.label} replaced", entity_id=entity_id)
        await self._persist(collection)
        return entity

    async def update_entity(
        self, collection: Collection, entity_id: Optional[int], payload: Dict[str, Any]
    ) -> Entity:
        """Shallow-merge ``payload`` into an existing entity."""
        idx = self.store.index_of(collection, entity_id) if entity_id is not None else -1
        if idx == -1:
            raise EntityNotFoundError(collection.label, entity_id)

        entity = {**self.store.all(collection)[idx], **payload, "id": entity_id}
        self.store.replace_at(collection, idx, entity)
        logger.info(f"{collection.label} updated", entity_id=entity_id, fields=sorted(payload))
        await self._persist(collection)
        return entity

    async def delete_book(self, book_id: Optional[int]) -> None:
        if book_id is None:
            raise EntityNotFoundError(Collection.BOOKS.label)
        self.relationships.delete_book(book_id)
        await self._persist(Collection.BOOKS, Collection.AUTHORS, Collection.PUBLISHERS)

    async def delete_parent(self, collection: Collection, parent_id: Optional[int]) -> None:
        if parent_id is None:
            raise EntityNotFoundError(collection.label)
        self.relationships.delete_parent(collection, parent_id)
        await self._persist(collection, Collection.BOOKS)

    async def attach_book(
        self,
        collection: Collection,
        parent_id: Optional[int],
        book_id: Optional[int],
        title: Optional[str] = None,
    ) -> Entity:
        if parent_id is None:
            raise EntityNotFoundError(collection.label)
        parent = self.relationships.attach_book(collection, parent_id, book_id, title)
        await self._persist(Collection.BOOKS, collection)
        return parent

    def books_of(self, collection: Collection, parent_id: Optional[int]) -> List[Entity]:
        if parent_id is None:
            raise EntityNotFoundError(collection.label)
        return self.relationships.books_of(collection, parent_id)

    async def health_check(self) -> Dict[str, Any]:
        """Report write queue status."""
        return {
            "status": "healthy" if self.write_queue.running else "stopped",
            "pending_writes": self.write_queue.pending,
        }

    async def get_stats(self) -> Dict[str, int]:
        """Get collection sizes and write counters."""
        return {
            **self.store.counts(),
            "pending_writes": self.write_queue.pending,
            "writes_completed": self.write_queue.writes_completed,
            "writes_failed": self.write_queue.writes_failed,
        }
