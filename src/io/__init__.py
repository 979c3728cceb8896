"""Repository interfaces plus file-backed catalog and application storage."""

from src.io.repositories import (
    ApplicationStore,
    CatalogReader,
    InMemoryApplicationStore,
    InMemoryCatalogReader,
    InMemoryProfileReader,
    ProfileReader,
)
from src.io.snapshotting import JsonApplicationStore, JsonCatalogReader, SnapshotCatalogReader

__all__ = [
    "ApplicationStore",
    "CatalogReader",
    "InMemoryApplicationStore",
    "InMemoryCatalogReader",
    "InMemoryProfileReader",
    "JsonApplicationStore",
    "JsonCatalogReader",
    "ProfileReader",
    "SnapshotCatalogReader",
]
