"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is kept as a real backend because:
1. Supervisors can view worker and posting data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (one organization's workforce is fine)
- No transactions (the registry applies multi-writes in a fixed order)
- Limited query capabilities (we filter in Python)
- No atomic increment: every read-modify-write (update, increment,
  delete) is serialized through one per-process lock. Two processes
  writing the same balance can still lose an update; run a single writer
  process against a spreadsheet.

Every record kind gets its own worksheet with the columns
[id, org_id, updated_at, data_json]. The full record is kept in data_json
so the sheet layout never has to follow model changes.
"""

import asyncio
import json
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from labour_ledger.config import get_settings
from labour_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from labour_ledger.models.common import utc_now
from labour_ledger.models.labour import new_record_id
from labour_ledger.services.storage.interface import (
    AuditStorageInterface,
    EntityStoreInterface,
    RecordKind,
    RecordMissingError,
    RecordQuery,
    StorageError,
    StoreConnectionError,
)

logger = structlog.get_logger(__name__)


RECORD_COLUMNS = ["id", "org_id", "updated_at", "data_json"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "org_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup. Only the connection
    handshake is retried; data writes are never retried automatically.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StoreConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}",
                    operation="connect",
                )
            except Exception as e:
                raise StoreConnectionError(
                    f"Failed to connect to Google Sheets: {e}", operation="connect"
                ) from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise StoreConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}",
                    operation="connect",
                )
        return self._spreadsheet

    def sheet_name_for(self, kind: RecordKind) -> str:
        names = {
            RecordKind.LABOUR: self._settings.labours_sheet_name,
            RecordKind.LINKED_PAIR: self._settings.linked_pairs_sheet_name,
            RecordKind.WAGE_ENTRY: self._settings.wage_entries_sheet_name,
            RecordKind.PAYMENT: self._settings.payments_sheet_name,
            RecordKind.LEDGER_ADJUSTMENT: self._settings.adjustments_sheet_name,
        }
        return names[RecordKind(kind)]

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
            logger.info("worksheet_created", title=title)

        self._worksheets[title] = sheet
        return sheet

    def get_record_sheet(self, kind: RecordKind) -> gspread.Worksheet:
        return self.get_worksheet(self.sheet_name_for(kind), RECORD_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for the audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsEntityStore(EntityStoreInterface):
    """
    Google Sheets implementation of the entity store.

    gspread is synchronous; every call, worksheet lookup included, runs in
    the default executor so the event loop stays free while Sheets answers.
    Writes that rewrite a whole row hold the write lock, so an update can
    never write back a balance an increment has already moved.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._write_lock = asyncio.Lock()

    @staticmethod
    def _record_to_row(record: dict[str, Any]) -> list:
        return [
            record["id"],
            record.get("org_id", ""),
            utc_now().isoformat(),
            json.dumps(record, default=str),
        ]

    @staticmethod
    def _row_to_record(row: list) -> Optional[dict[str, Any]]:
        if len(row) < 4 or not row[0] or not row[3]:
            return None
        return json.loads(row[3])

    def _find_row(self, sheet: gspread.Worksheet, record_id: str) -> tuple[int, Optional[list]]:
        """Return (1-based row index, row) for a record id, or (0, None)."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == record_id:
                return idx, row
        return 0, None

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _create_sync(self, kind: RecordKind, record: dict[str, Any]) -> None:
        sheet = self._client.get_record_sheet(kind)
        sheet.append_row(self._record_to_row(record), value_input_option="RAW")

    async def create(self, kind: RecordKind, fields: dict[str, Any]) -> str:
        record = dict(fields)
        record["id"] = str(record.get("id") or new_record_id())
        try:
            await self._run(self._create_sync, kind, record)
            return record["id"]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create {kind.value}: {e}", operation="create") from e

    def _get_sync(self, kind: RecordKind, record_id: str) -> Optional[list]:
        _, row = self._find_row(self._client.get_record_sheet(kind), record_id)
        return row

    async def get(self, kind: RecordKind, record_id: str) -> Optional[dict[str, Any]]:
        try:
            row = await self._run(self._get_sync, kind, record_id)
            return self._row_to_record(row) if row else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get {kind.value}: {e}", operation="get") from e

    def _update_sync(self, kind: RecordKind, record_id: str, fields: dict[str, Any]) -> None:
        sheet = self._client.get_record_sheet(kind)
        idx, row = self._find_row(sheet, record_id)
        if not row:
            raise RecordMissingError(f"{kind.value} not found: {record_id}", operation="update")

        record = self._row_to_record(row) or {"id": record_id}
        record.update(fields)
        sheet.update(f"A{idx}:D{idx}", [self._record_to_row(record)], value_input_option="RAW")

    async def update(self, kind: RecordKind, record_id: str, fields: dict[str, Any]) -> None:
        async with self._write_lock:
            try:
                await self._run(self._update_sync, kind, record_id, fields)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to update {kind.value}: {e}", operation="update") from e

    def _delete_sync(self, kind: RecordKind, record_id: str) -> None:
        sheet = self._client.get_record_sheet(kind)
        idx, row = self._find_row(sheet, record_id)
        if row:
            sheet.delete_rows(idx)

    async def delete(self, kind: RecordKind, record_id: str) -> None:
        # Deleting shifts row indices under any in-flight row rewrite
        async with self._write_lock:
            try:
                await self._run(self._delete_sync, kind, record_id)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to delete {kind.value}: {e}", operation="delete") from e

    def _all_rows_sync(self, kind: RecordKind) -> list[list]:
        return self._client.get_record_sheet(kind).get_all_values()

    async def list(
        self,
        kind: RecordKind,
        query: Optional[RecordQuery] = None,
    ) -> list[dict[str, Any]]:
        query = query or RecordQuery()
        try:
            all_rows = (await self._run(self._all_rows_sync, kind))[1:]  # Skip header
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list {kind.value}: {e}", operation="list") from e

        records = []
        for row in all_rows:
            # Cheap org pre-filter on the indexed column
            org_id = query.equals.get("org_id")
            if org_id and len(row) > 1 and row[1] != org_id:
                continue
            try:
                record = self._row_to_record(row)
            except json.JSONDecodeError:
                logger.warning("malformed_row_skipped", kind=kind.value, row_id=row[0] if row else None)
                continue
            if record is None or not query.matches(record):
                continue
            records.append(record)
            if query.limit and len(records) >= query.limit:
                break
        return records

    def _increment_sync(self, kind: RecordKind, record_id: str, field: str, delta: Decimal) -> None:
        sheet = self._client.get_record_sheet(kind)
        idx, row = self._find_row(sheet, record_id)
        if not row:
            raise RecordMissingError(f"{kind.value} not found: {record_id}", operation="increment")

        record = self._row_to_record(row) or {"id": record_id}
        try:
            current = Decimal(str(record.get(field) or "0"))
        except InvalidOperation as e:
            raise StorageError(
                f"Field {field} on {kind.value} {record_id} is not numeric", operation="increment"
            ) from e
        record[field] = str(current + Decimal(delta))
        sheet.update(f"A{idx}:D{idx}", [self._record_to_row(record)], value_input_option="RAW")

    async def increment(
        self,
        kind: RecordKind,
        record_id: str,
        field: str,
        delta: Decimal,
    ) -> None:
        async with self._write_lock:
            try:
                await self._run(self._increment_sync, kind, record_id, field, delta)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(
                    f"Failed to increment {kind.value}.{field}: {e}", operation="increment"
                ) from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=safe_get(1),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            org_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
        )

    def _append_sync(self, row: list) -> None:
        self._client.get_audit_sheet().append_row(row, value_input_option="RAW")

    def _load_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, json.JSONDecodeError):
                logger.warning("malformed_audit_row_skipped", event_id=row[0])
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are reported, not raised."""
        try:
            await asyncio.get_running_loop().run_in_executor(
                None, self._append_sync, event.to_sheets_row()
            )
            return True
        except Exception as e:
            logger.warning("audit_persist_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            loaded = await asyncio.get_running_loop().run_in_executor(None, self._load_events)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}", operation="list") from e

        events = [
            event for event in loaded
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = await asyncio.get_running_loop().run_in_executor(None, self._load_events)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}", operation="list") from e

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
