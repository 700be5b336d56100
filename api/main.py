"""
FastAPI main application for the Bookshelf API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from api.config import config as api_config
from api.database import LibraryService
from api.models import (
    AttachBookRequest, BookPayload, ErrorResponse,
    HealthResponse, ParentPayload, StatsResponse
)
from storage.errors import (
    DuplicateEntityError, EntityNotFoundError, MissingFieldError, PersistenceError
)
from storage.store import Collection, LibraryStore
from storage.write_queue import WriteQueue
from utilities.config import config
from utilities.logger import setup_logging

# Setup logging
logger = structlog.get_logger(__name__)

# Global library service
library_service: LibraryService = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global library_service

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Bookshelf API", data_dir=config.data_dir)

    try:
        store = LibraryStore.load(config.get_data_dir_path())
    except Exception as e:
        logger.error("Failed to load library data", error=str(e))
        raise

    write_queue = WriteQueue(config.get_data_dir_path())
    write_queue.start()
    library_service = LibraryService(store, write_queue)

    yield

    # Shutdown
    logger.info("Shutting down Bookshelf API")
    await write_queue.stop()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    REST API for books, authors and publishers stored as flat JSON documents.

    ## Features

    * **Books, authors, publishers**: create, read, replace, patch, delete
    * **Relationships**: attach books to authors and publishers, list their books
    * **Ordered persistence**: every change is written to disk one write at a time,
      in the order requests made it
    """,
    version=api_config.api_version,
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT",
    },
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


def _error(status_code: int, message: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, detail=detail).model_dump(exclude_none=True)
    )


# Exception handlers
@app.exception_handler(EntityNotFoundError)
async def not_found_handler(request: Request, exc: EntityNotFoundError):
    """Unknown identifier in the path or in a body reference."""
    return _error(status.HTTP_404_NOT_FOUND, exc.message)


@app.exception_handler(MissingFieldError)
async def missing_field_handler(request: Request, exc: MissingFieldError):
    """Required field absent from the request body."""
    return _error(status.HTTP_400_BAD_REQUEST, exc.message)


@app.exception_handler(DuplicateEntityError)
async def duplicate_handler(request: Request, exc: DuplicateEntityError):
    """Identifier already taken on create."""
    return _error(status.HTTP_409_CONFLICT, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request body."""
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"{location}: {errors[0].get('msg')}" if location else errors[0].get("msg", message)
    return _error(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(PersistenceError)
async def persistence_exception_handler(request: Request, exc: PersistenceError):
    """A collection write failed; the in-memory change has already been applied."""
    logger.error("Persistence failed", error=exc.message, path=request.url.path)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Failed to persist changes",
        detail=exc.message if api_config.debug else None
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        detail=str(exc) if api_config.debug else None
    )


def parse_identifier(raw: str) -> Optional[int]:
    """Path identifier as an integer, or None when it is not a number."""
    try:
        return int(raw)
    except ValueError:
        return None


def _body(payload) -> dict:
    if payload is None:
        return {}
    body = payload.model_dump(exclude_unset=True)
    # Unknown fields are stored verbatim.
    body.update(payload.model_extra or {})
    return body


def _created(collection: Collection, entity: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=entity,
        headers={"Location": f"/{collection.value}/{entity['id']}"}
    )


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    queue_status = "unavailable"
    pending = 0
    if library_service:
        info = await library_service.health_check()
        queue_status = info["status"]
        pending = info["pending_writes"]

    return HealthResponse(
        status="healthy" if queue_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=api_config.api_version,
        write_queue_status=queue_status,
        pending_writes=pending
    )


# Statistics endpoint
@app.get("/stats", response_model=StatsResponse, tags=["Statistics"])
async def get_stats():
    """Collection sizes and write counters."""
    return await library_service.get_stats()


# Books endpoints
@app.get("/books", tags=["Books"])
async def list_books():
    return JSONResponse(content=library_service.list_entities(Collection.BOOKS))


@app.get("/books/{book_id}", tags=["Books"])
async def get_book(book_id: str):
    """Get a single book by ID."""
    book = library_service.get_entity(Collection.BOOKS, parse_identifier(book_id))
    return JSONResponse(content=book)


@app.post("/books", status_code=status.HTTP_201_CREATED, tags=["Books"])
async def create_book(payload: Optional[BookPayload] = None):
    """
    Create a book.

    - **id**: required, caller-assigned and unique
    - any other field is stored as given
    """
    book = await library_service.create_entity(Collection.BOOKS, _body(payload))
    return _created(Collection.BOOKS, book)


@app.put("/books/{book_id}", tags=["Books"])
async def replace_book(book_id: str, payload: Optional[BookPayload] = None):
    """Replace a book. The path ID overrides any ``id`` in the body."""
    book = await library_service.replace_entity(Collection.BOOKS, parse_identifier(book_id), _body(payload))
    return JSONResponse(content=book)


@app.patch("/books/{book_id}", tags=["Books"])
async def update_book(book_id: str, payload: Optional[BookPayload] = None):
    """Merge fields into a book."""
    book = await library_service.update_entity(Collection.BOOKS, parse_identifier(book_id), _body(payload))
    return JSONResponse(content=book)


@app.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Books"])
async def delete_book(book_id: str):
    """Delete a book and drop it from every author's and publisher's book list."""
    await library_service.delete_book(parse_identifier(book_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Authors endpoints
@app.get("/authors", tags=["Authors"])
async def list_authors():
    return JSONResponse(content=library_service.list_entities(Collection.AUTHORS))


@app.get("/authors/{author_id}", tags=["Authors"])
async def get_author(author_id: str):
    author = library_service.get_entity(Collection.AUTHORS, parse_identifier(author_id))
    return JSONResponse(content=author)


@app.get("/authors/{author_id}/books", tags=["Authors"])
async def get_author_books(author_id: str):
    """
    Books written by an author.

    Uses the author's own book list when it has one, otherwise every book
    whose ``author_id`` matches.
    """
    books = library_service.books_of(Collection.AUTHORS, parse_identifier(author_id))
    return JSONResponse(content=books)


@app.post("/authors", status_code=status.HTTP_201_CREATED, tags=["Authors"])
async def create_author(payload: Optional[ParentPayload] = None):
    author = await library_service.create_entity(Collection.AUTHORS, _body(payload))
    return _created(Collection.AUTHORS, author)


@app.put("/authors/{author_id}", tags=["Authors"])
async def replace_author(author_id: str, payload: Optional[ParentPayload] = None):
    author = await library_service.replace_entity(
        Collection.AUTHORS, parse_identifier(author_id), _body(payload)
    )
    return JSONResponse(content=author)


@app.patch("/authors/{author_id}", tags=["Authors"])
async def update_author(author_id: str, payload: Optional[ParentPayload] = None):
    author = await library_service.update_entity(
        Collection.AUTHORS, parse_identifier(author_id), _body(payload)
    )
    return JSONResponse(content=author)


@app.delete("/authors/{author_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Authors"])
async def delete_author(author_id: str):
    """Delete an author; its books keep existing with ``author_id`` set to null."""
    await library_service.delete_parent(Collection.AUTHORS, parse_identifier(author_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.put("/authors/{author_id}/books", tags=["Authors"])
async def attach_author_book(author_id: str, payload: Optional[AttachBookRequest] = None):
    """
    Attach a book to an author.

    - **book_id**: required, must reference an existing book
    - **title**: optional, defaults to the book's title
    """
    request = payload or AttachBookRequest()
    author = await library_service.attach_book(
        Collection.AUTHORS, parse_identifier(author_id), request.book_id, request.title
    )
    return JSONResponse(content=author)


# Publishers endpoints
@app.get("/publishers", tags=["Publishers"])
async def list_publishers():
    return JSONResponse(content=library_service.list_entities(Collection.PUBLISHERS))


@app.get("/publishers/{publisher_id}", tags=["Publishers"])
async def get_publisher(publisher_id: str):
    publisher = library_service.get_entity(Collection.PUBLISHERS, parse_identifier(publisher_id))
    return JSONResponse(content=publisher)


@app.get("/publishers/{publisher_id}/books", tags=["Publishers"])
async def get_publisher_books(publisher_id: str):
    books = library_service.books_of(Collection.PUBLISHERS, parse_identifier(publisher_id))
    return JSONResponse(content=books)


@app.post("/publishers", status_code=status.HTTP_201_CREATED, tags=["Publishers"])
async def create_publisher(payload: Optional[ParentPayload] = None):
    publisher = await library_service.create_entity(Collection.PUBLISHERS, _body(payload))
    return _created(Collection.PUBLISHERS, publisher)


@app.put("/publishers/{publisher_id}", tags=["Publishers"])
async def replace_publisher(publisher_id: str, payload: Optional[ParentPayload] = None):
    publisher = await library_service.replace_entity(
        Collection.PUBLISHERS, parse_identifier(publisher_id), _body(payload)
    )
    return JSONResponse(content=publisher)


@app.patch("/publishers/{publisher_id}", tags=["Publishers"])
async def update_publisher(publisher_id: str, payload: Optional[ParentPayload] = None):
    publisher = await library_service.update_entity(
        Collection.PUBLISHERS, parse_identifier(publisher_id), _body(payload)
    )
    return JSONResponse(content=publisher)


@app.delete("/publishers/{publisher_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Publishers"])
async def delete_publisher(publisher_id: str):
    await library_service.delete_parent(Collection.PUBLISHERS, parse_identifier(publisher_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.put("/publishers/{publisher_id}/books", tags=["Publishers"])
async def attach_publisher_book(publisher_id: str, payload: Optional[AttachBookRequest] = None):
    request = payload or AttachBookRequest()
    publisher = await library_service.attach_book(
        Collection.PUBLISHERS, parse_identifier(publisher_id), request.book_id, request.title
    )
    return JSONResponse(content=publisher)


# Legacy singular alias; its 404 is plain text
@app.get("/book", tags=["Legacy"], include_in_schema=False)
async def legacy_list_books():
    return JSONResponse(content=library_service.list_entities(Collection.BOOKS))


@app.get("/book/{book_id}", tags=["Legacy"], include_in_schema=False)
async def legacy_get_book(book_id: str):
    entity_id = parse_identifier(book_id)
    book = library_service.store.find(Collection.BOOKS, entity_id) if entity_id is not None else None
    if book is None:
        return PlainTextResponse("Book not found", status_code=status.HTTP_404_NOT_FOUND)
    return JSONResponse(content=book)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower()
    )
