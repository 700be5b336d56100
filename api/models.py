"""
API models and schemas for the FastAPI application.

Entity payloads only validate the identifier. Any other field, embedded
book references included, is accepted and stored as sent.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BookPayload(BaseModel):
    """Book request body."""
    model_config = ConfigDict(extra="allow")

    id: Optional[int] = Field(None, description="Caller-assigned book identifier")


class ParentPayload(BaseModel):
    """Author or publisher request body."""
    model_config = ConfigDict(extra="allow")

    id: Optional[int] = Field(None, description="Caller-assigned identifier")
    books: Optional[List[Dict[str, Any]]] = Field(
        None, description="Embedded {book_id, title} reference records"
    )


class AttachBookRequest(BaseModel):
    """Body of PUT /authors/{id}/books and PUT /publishers/{id}/books."""
    book_id: Optional[int] = Field(None, description="Book to attach")
    title: Optional[str] = Field(None, description="Reference title, defaults to the book title")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details (debug only)")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    write_queue_status: str = Field(..., description="Write queue worker status")
    pending_writes: int = Field(..., description="Writes waiting in the queue")


class StatsResponse(BaseModel):
    """Collection sizes and write counters."""
    books: int
    authors: int
    publishers: int
    pending_writes: int
    writes_completed: int
    writes_failed: int
