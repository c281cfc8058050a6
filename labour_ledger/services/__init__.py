"""Services package."""

from labour_ledger.services.storage import (
    AuditStorageInterface,
    EntityStoreAdapter,
    EntityStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsEntityStore,
    InMemoryAuditStorage,
    InMemoryEntityStore,
    RecordKind,
    RecordMissingError,
    RecordQuery,
    StorageError,
    StoreConnectionError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "EntityStoreAdapter",
    "EntityStoreInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsEntityStore",
    "InMemoryAuditStorage",
    "InMemoryEntityStore",
    "RecordKind",
    "RecordMissingError",
    "RecordQuery",
    "StorageError",
    "StoreConnectionError",
]
