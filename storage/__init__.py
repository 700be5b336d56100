"""
In-memory library storage backed by flat JSON documents.

The store holds the books, authors and publishers collections, the write
queue mirrors them to disk one write at a time, and the relationship
maintainer keeps foreign keys and embedded book references consistent.
"""
