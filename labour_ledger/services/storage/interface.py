"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real document store later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally small - a document-store shape with
collection/query primitives, not an ORM. Records are plain dicts of JSON
primitives; the typed EntityStoreAdapter converts them to models.

The one non-trivial primitive is increment(): it MUST be atomic at the
store level. Balance fields are never written with read-modify-write in
application code.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from labour_ledger.errors import DatabaseError
from labour_ledger.models.audit import AuditEvent


class RecordKind(str, Enum):
    """Collections the core reads and writes."""
    LABOUR = "labour"
    LINKED_PAIR = "linked_pair"
    WAGE_ENTRY = "wage_entry"
    PAYMENT = "payment"
    LEDGER_ADJUSTMENT = "ledger_adjustment"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class RecordQuery(BaseModel):
    """
    Filter for list().

    Supports the filters the core needs: equality on fields (organization
    scope, worker/pair identifier, category/type), membership of a field
    value in a set, and an inclusive range on one date field.
    """

    equals: dict[str, Any] = Field(default_factory=dict)
    any_of: dict[str, list[Any]] = Field(default_factory=dict)
    range_field: Optional[str] = None
    range_from: Optional[date] = None
    range_to: Optional[date] = None
    limit: Optional[int] = Field(default=None, ge=1)

    def matches(self, record: dict[str, Any]) -> bool:
        for field, expected in self.equals.items():
            if record.get(field) != _plain(expected):
                return False

        for field, options in self.any_of.items():
            if record.get(field) not in {_plain(option) for option in options}:
                return False

        if self.range_field and (self.range_from or self.range_to):
            value = record.get(self.range_field)
            if value is None:
                return False
            # ISO dates compare correctly as strings; datetimes are cut to the day
            day = str(value)[:10]
            if self.range_from and day < self.range_from.isoformat():
                return False
            if self.range_to and day > self.range_to.isoformat():
                return False

        return True


class EntityStoreInterface(ABC):
    """
    Abstract interface for the document store.

    Any implementation (Google Sheets, in-memory, a real document DB)
    must implement these methods. Every failure is raised as StorageError.
    """

    @abstractmethod
    async def create(self, kind: RecordKind, fields: dict[str, Any]) -> str:
        """
        Insert a record.

        Uses fields["id"] when present, otherwise generates one.

        Returns:
            The record id
        """
        pass

    @abstractmethod
    async def get(self, kind: RecordKind, record_id: str) -> Optional[dict[str, Any]]:
        """Return the record, or None if it does not exist."""
        pass

    @abstractmethod
    async def update(self, kind: RecordKind, record_id: str, fields: dict[str, Any]) -> None:
        """
        Merge fields into an existing record (partial update).

        Raises:
            RecordMissingError: If the record doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, kind: RecordKind, record_id: str) -> None:
        """Remove a record. Deleting a missing record is a no-op."""
        pass

    @abstractmethod
    async def list(
        self,
        kind: RecordKind,
        query: Optional[RecordQuery] = None,
    ) -> list[dict[str, Any]]:
        """Return matching records in insertion order."""
        pass

    @abstractmethod
    async def increment(
        self,
        kind: RecordKind,
        record_id: str,
        field: str,
        delta: Decimal,
    ) -> None:
        """
        Atomically add delta to a numeric field.

        Raises:
            RecordMissingError: If the record doesn't exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for one entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(DatabaseError):
    """Base exception for storage operations."""
    pass


class RecordMissingError(StorageError):
    """Update or increment targeted a record that does not exist."""
    pass


class StoreConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
