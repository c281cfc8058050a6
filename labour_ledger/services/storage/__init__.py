"""
Storage Services Package

Provides the abstract entity store, its in-memory and Google Sheets
implementations, and the typed EntityStoreAdapter used by the core.
"""

from labour_ledger.services.storage.adapter import EntityStoreAdapter
from labour_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsEntityStore,
)
from labour_ledger.services.storage.interface import (
    AuditStorageInterface,
    EntityStoreInterface,
    RecordKind,
    RecordMissingError,
    RecordQuery,
    StorageError,
    StoreConnectionError,
)
from labour_ledger.services.storage.memory import InMemoryAuditStorage, InMemoryEntityStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "EntityStoreInterface",
    "RecordKind",
    "RecordQuery",
    # Exceptions
    "RecordMissingError",
    "StorageError",
    "StoreConnectionError",
    # Implementations
    "EntityStoreAdapter",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsEntityStore",
    "InMemoryAuditStorage",
    "InMemoryEntityStore",
]
