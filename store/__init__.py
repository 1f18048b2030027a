"""Versioned storage of per-idea overview state."""

from .persistence import PersistenceBackend, InMemoryPersistence, JsonFilePersistence
from .versioned_store import VersionedOverviewStore

__all__ = [
    "PersistenceBackend",
    "InMemoryPersistence",
    "JsonFilePersistence",
    "VersionedOverviewStore",
]
