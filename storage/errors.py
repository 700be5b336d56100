"""
Exceptions raised by the storage layer.
"""

from typing import Optional


class LibraryError(Exception):
    """Base class for library storage errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EntityNotFoundError(LibraryError):
    """Raised when an identifier does not match any entity."""

    def __init__(self, label: str, entity_id: Optional[int] = None):
        super().__init__(f"{label} not found")
        self.label = label
        self.entity_id = entity_id


class MissingFieldError(LibraryError):
    """Raised when a required request field is absent."""

    def __init__(self, field_name: str):
        super().__init__(f"{field_name} is required")
        self.field_name = field_name


class DuplicateEntityError(LibraryError):
    """Raised when creating an entity whose identifier already exists."""

    def __init__(self, label: str, entity_id: int):
        super().__init__(f"{label} already exists")
        self.label = label
        self.entity_id = entity_id


class PersistenceError(LibraryError):
    """Raised when a collection could not be written to its backing file."""

    def __init__(self, file_name: str, cause: Exception):
        super().__init__(f"Failed to write {file_name}: {cause}")
        self.file_name = file_name
        self.cause = cause


class StoreLoadError(LibraryError):
    """Raised when a backing file cannot be loaded at startup."""
