from typing import Optional

from ..storage import StorageBackend, get_storage
from ..websocket.hub import CollaborationHub

_hub: Optional[CollaborationHub] = None


def get_hub() -> CollaborationHub:
    """Collaboration hub over the configured storage backend (singleton)"""
    global _hub
    if _hub is None:
        _hub = CollaborationHub(get_storage())
    return _hub


def get_storage_dependency() -> StorageBackend:
    return get_storage()


__all__ = ["get_hub", "get_storage_dependency"]
