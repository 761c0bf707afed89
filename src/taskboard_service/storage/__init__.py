"""Storage for users, tasks and notifications."""

from taskboard_service.storage.document_store import COLLECTIONS, DocumentStore, build_where

__all__ = [
    "COLLECTIONS",
    "DocumentStore",
    "build_where",
]
