"""
In-Memory Storage Implementation

Reference backend for the entity store and the test double used by the
suite. Records live in per-kind dicts; reads and writes are counted so
tests can assert "no second read" or "no write occurred".
"""

import asyncio
import copy
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from labour_ledger.models.audit import AuditEvent
from labour_ledger.models.labour import new_record_id
from labour_ledger.services.storage.interface import (
    AuditStorageInterface,
    EntityStoreInterface,
    RecordKind,
    RecordMissingError,
    RecordQuery,
    StorageError,
)


class InMemoryEntityStore(EntityStoreInterface):
    """
    Dict-backed entity store.

    increment() runs inside one asyncio lock, so concurrent postings
    against the same balance never lose updates.
    """

    def __init__(self):
        self._records: dict[RecordKind, dict[str, dict[str, Any]]] = {
            kind: {} for kind in RecordKind
        }
        self._lock = asyncio.Lock()
        self.reads = 0
        self.writes = 0

    def reset_counters(self) -> None:
        self.reads = 0
        self.writes = 0

    async def create(self, kind: RecordKind, fields: dict[str, Any]) -> str:
        record = copy.deepcopy(fields)
        record_id = str(record.get("id") or new_record_id())
        record["id"] = record_id

        table = self._records[RecordKind(kind)]
        if record_id in table:
            raise StorageError(f"Duplicate {kind.value} id: {record_id}", operation="create")

        self.writes += 1
        table[record_id] = record
        return record_id

    async def get(self, kind: RecordKind, record_id: str) -> Optional[dict[str, Any]]:
        self.reads += 1
        record = self._records[RecordKind(kind)].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def update(self, kind: RecordKind, record_id: str, fields: dict[str, Any]) -> None:
        table = self._records[RecordKind(kind)]
        if record_id not in table:
            raise RecordMissingError(f"{kind.value} not found: {record_id}", operation="update")

        self.writes += 1
        table[record_id].update(copy.deepcopy(fields))

    async def delete(self, kind: RecordKind, record_id: str) -> None:
        self.writes += 1
        self._records[RecordKind(kind)].pop(record_id, None)

    async def list(
        self,
        kind: RecordKind,
        query: Optional[RecordQuery] = None,
    ) -> list[dict[str, Any]]:
        self.reads += 1
        query = query or RecordQuery()

        matches = []
        for record in self._records[RecordKind(kind)].values():
            if query.matches(record):
                matches.append(copy.deepcopy(record))
                if query.limit and len(matches) >= query.limit:
                    break
        return matches

    async def increment(
        self,
        kind: RecordKind,
        record_id: str,
        field: str,
        delta: Decimal,
    ) -> None:
        async with self._lock:
            table = self._records[RecordKind(kind)]
            record = table.get(record_id)
            if record is None:
                raise RecordMissingError(
                    f"{kind.value} not found: {record_id}", operation="increment"
                )
            try:
                current = Decimal(str(record.get(field) or "0"))
            except InvalidOperation as e:
                raise StorageError(
                    f"Field {field} on {kind.value} {record_id} is not numeric", operation="increment"
                ) from e

            self.writes += 1
            record[field] = str(current + Decimal(delta))


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            event for event in self.events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
