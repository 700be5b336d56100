"""
FastAPI RESTful API for the Bookshelf library.

This module provides a REST API for:
- Book, author and publisher CRUD backed by JSON documents
- Attaching books to authors and publishers
- Listing the books of an author or publisher
"""
