from typing import Optional

from .base import (
    ExecutionService,
    NotebookUpdate,
    PersistenceService,
    SessionService,
    StorageBackend,
)
from .file_storage import FileStorage
from .http import NotebookApiClient


_storage_backend: Optional[StorageBackend] = None


def get_storage() -> StorageBackend:
    """Get the configured storage backend (singleton)"""
    global _storage_backend

    if _storage_backend is None:
        _storage_backend = FileStorage()

    return _storage_backend


__all__ = [
    "StorageBackend", "FileStorage", "get_storage",
    "SessionService", "PersistenceService", "ExecutionService", "NotebookUpdate",
    "NotebookApiClient",
]
