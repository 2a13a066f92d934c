"""
SQLite Adapter - Activity document storage.
"""

from .repository import SQLiteRepository, resolve_document_filter

__all__ = ["SQLiteRepository", "resolve_document_filter"]
