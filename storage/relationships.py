"""
Relationship maintenance between books and their authors/publishers.

Books point at their parents through ``author_id`` / ``publisher_id``.
Authors and publishers cache a ``books`` list of ``{book_id, title}``
reference records. Only the operations here keep both sides in step;
plain book create/update leaves the references alone.

Every operation validates before it mutates, so a rejected call leaves
the store untouched.
"""

from typing import Any, List, Optional

import structlog

from .errors import EntityNotFoundError, MissingFieldError
from .store import Collection, Entity, LibraryStore

logger = structlog.get_logger(__name__)


def _require_parent(collection: Collection) -> None:
    if not collection.is_parent:
        raise ValueError(f"{collection.value} has no book references")


def reference_ids(parent: Entity) -> List[Any]:
    """Book ids listed in a parent's reference records, in list order."""
    return [ref.get("book_id") for ref in parent.get("books") or [] if isinstance(ref, dict)]


class RelationshipMaintainer:
    """Keeps foreign keys and embedded reference records consistent."""

    def __init__(self, store: LibraryStore):
        self.store = store

    def attach_book(
        self,
        collection: Collection,
        parent_id: int,
        book_id: Optional[int],
        title: Optional[str] = None,
    ) -> Entity:
        """
        Attach a book to an author or publisher.

        Sets the book's foreign key and appends a reference record to the
        parent unless one for the same book already exists.

        Args:
            collection: AUTHORS or PUBLISHERS
            parent_id: Identifier of the author/publisher
            book_id: Identifier of the book to attach
            title: Title for the reference record, defaults to the book title

        Returns:
            The updated parent entity
        """
        _require_parent(collection)

        parent_idx = self.store.index_of(collection, parent_id)
        if parent_idx == -1:
            raise EntityNotFoundError(collection.label, parent_id)
        if not book_id:
            raise MissingFieldError("book_id")
        book_idx = self.store.index_of(Collection.BOOKS, book_id)
        if book_idx == -1:
            raise EntityNotFoundError(Collection.BOOKS.label, book_id)

        book = {**self.store.all(Collection.BOOKS)[book_idx], collection.foreign_key: parent_id}
        self.store.replace_at(Collection.BOOKS, book_idx, book)

        parent = self.store.all(collection)[parent_idx]
        refs = parent.get("books") or []
        if book_id not in reference_ids(parent):
            refs.append({"book_id": book_id, "title": title or book.get("title")})
            logger.info("Book reference added", collection=collection.value,
                        parent_id=parent_id, book_id=book_id)
        parent["books"] = refs
        return parent

    def delete_book(self, book_id: int) -> None:
        """Remove a book and strip its reference records from every parent."""
        if not self.store.exists(Collection.BOOKS, book_id):
            raise EntityNotFoundError(Collection.BOOKS.label, book_id)

        stripped = 0
        for collection in (Collection.AUTHORS, Collection.PUBLISHERS):
            for parent in self.store.all(collection):
                refs = parent.get("books")
                if not refs:
                    continue
                kept = [ref for ref in refs if not (isinstance(ref, dict) and ref.get("book_id") == book_id)]
                stripped += len(refs) - len(kept)
                parent["books"] = kept

        self.store.remove_where(Collection.BOOKS, lambda b: b.get("id") == book_id)
        logger.info("Book deleted", book_id=book_id, references_stripped=stripped)

    def delete_parent(self, collection: Collection, parent_id: int) -> None:
        """Remove an author/publisher and null the foreign key on its books."""
        _require_parent(collection)

        if not self.store.exists(collection, parent_id):
            raise EntityNotFoundError(collection.label, parent_id)
        self.store.remove_where(collection, lambda p: p.get("id") == parent_id)

        key = collection.foreign_key
        books = self.store.all(Collection.BOOKS)
        detached = 0
        for idx, book in enumerate(books):
            if book.get(key) == parent_id:
                books[idx] = {**book, key: None}
                detached += 1

        logger.info(f"{collection.label} deleted", parent_id=parent_id, books_detached=detached)

    def books_of(self, collection: Collection, parent_id: int) -> List[Entity]:
        """
        Books belonging to an author/publisher.

        A non-empty reference list is resolved in its own order, each book
        once, skipping ids that no longer exist. Otherwise the books collection is scanned
        for a matching foreign key.
        """
        _require_parent(collection)

        parent = self.store.find(collection, parent_id)
        if parent is None:
            raise EntityNotFoundError(collection.label, parent_id)

        ids = reference_ids(parent)
        if ids:
            resolved = []
            seen = []
            for book_id in ids:
                if book_id in seen:
                    continue
                seen.append(book_id)
                book = self.store.find(Collection.BOOKS, book_id)
                if book is not None:
                    resolved.append(book)
            return resolved

        key = collection.foreign_key
        return [book for book in self.store.all(Collection.BOOKS) if book.get(key) == parent_id]
