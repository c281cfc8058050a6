"""
Typed Entity Store Adapter

Converts pydantic models to and from the raw JSON-primitive records the
EntityStoreInterface deals in. No business rules live here.

Every failure coming out of the raw store is surfaced exactly once as a
DatabaseError carrying the operation name; callers never see backend
exceptions.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Optional, TypeVar

import pydantic
import structlog

from labour_ledger.errors import DatabaseError
from labour_ledger.models.labour import Labour, LabourStatus, LinkedPair
from labour_ledger.models.wage import LedgerAdjustment, Payment, WageEntry
from labour_ledger.services.storage.interface import (
    EntityStoreInterface,
    RecordKind,
    RecordQuery,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def to_record(model: pydantic.BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json")


class EntityStoreAdapter:
    """
    Typed access to Labour, LinkedPair, WageEntry, Payment and
    LedgerAdjustment records.
    """

    def __init__(self, store: EntityStoreInterface):
        self._store = store

    @property
    def store(self) -> EntityStoreInterface:
        return self._store

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except DatabaseError as e:
            if e.operation is None:
                e.operation = operation
            logger.error("store_operation_failed", operation=operation, error=str(e))
            raise
        except Exception as e:
            logger.error("store_operation_failed", operation=operation, error=str(e))
            raise DatabaseError(f"Store operation {operation} failed: {e}", operation=operation) from e

    def _parse(self, model_cls: type[ModelT], record: dict[str, Any], operation: str) -> ModelT:
        try:
            return model_cls.model_validate(record)
        except pydantic.ValidationError as e:
            raise DatabaseError(
                f"Stored {model_cls.__name__} {record.get('id')} is malformed: {e}",
                operation=operation,
            ) from e

    async def _get(self, kind: RecordKind, model_cls: type[ModelT], record_id: str) -> Optional[ModelT]:
        operation = f"get_{kind.value}"
        record = await self._call(operation, self._store.get(kind, record_id))
        return self._parse(model_cls, record, operation) if record else None

    async def _list(self, kind: RecordKind, model_cls: type[ModelT], query: RecordQuery) -> list[ModelT]:
        operation = f"list_{kind.value}"
        records = await self._call(operation, self._store.list(kind, query))
        return [self._parse(model_cls, record, operation) for record in records]

    @staticmethod
    def _date_query(
        org_id: Optional[str],
        range_field: str,
        date_from: Optional[date],
        date_to: Optional[date],
        **equals: Any,
    ) -> RecordQuery:
        filters = {k: v for k, v in equals.items() if v is not None}
        if org_id:
            filters["org_id"] = org_id
        return RecordQuery(
            equals=filters,
            range_field=range_field,
            range_from=date_from,
            range_to=date_to,
        )

    # =========================================================================
    # LABOURS
    # =========================================================================

    async def create_labour(self, labour: Labour) -> Labour:
        await self._call("create_labour", self._store.create(RecordKind.LABOUR, to_record(labour)))
        return labour

    async def get_labour(self, labour_id: str) -> Optional[Labour]:
        return await self._get(RecordKind.LABOUR, Labour, labour_id)

    async def find_labour_by_code(self, labour_code: str, org_id: Optional[str] = None) -> Optional[Labour]:
        query = RecordQuery(equals={"labour_code": labour_code}, limit=1)
        if org_id:
            query.equals["org_id"] = org_id
        labours = await self._list(RecordKind.LABOUR, Labour, query)
        return labours[0] if labours else None

    async def find_labours_by_code(self, labour_code: str, org_id: Optional[str] = None) -> list[Labour]:
        """Every worker carrying a code; more than one only for pre-existing duplicates."""
        query = RecordQuery(equals={"labour_code": labour_code})
        if org_id:
            query.equals["org_id"] = org_id
        return await self._list(RecordKind.LABOUR, Labour, query)

    async def list_labours(
        self,
        org_id: str,
        status: Optional[LabourStatus] = None,
        limit: Optional[int] = None,
    ) -> list[Labour]:
        query = RecordQuery(equals={"org_id": org_id}, limit=limit)
        if status is not None:
            query.equals["status"] = status
        return await self._list(RecordKind.LABOUR, Labour, query)

    async def update_labour(self, labour_id: str, fields: dict[str, Any]) -> None:
        await self._call("update_labour", self._store.update(RecordKind.LABOUR, labour_id, fields))

    async def delete_labour(self, labour_id: str) -> None:
        await self._call("delete_labour", self._store.delete(RecordKind.LABOUR, labour_id))

    async def increment_labour(self, labour_id: str, field: str, delta: Decimal) -> None:
        await self._call(
            "increment_labour",
            self._store.increment(RecordKind.LABOUR, labour_id, field, delta),
        )

    # =========================================================================
    # LINKED PAIRS
    # =========================================================================

    async def create_pair(self, pair: LinkedPair) -> LinkedPair:
        await self._call("create_linked_pair", self._store.create(RecordKind.LINKED_PAIR, to_record(pair)))
        return pair

    async def get_pair(self, pair_id: str) -> Optional[LinkedPair]:
        return await self._get(RecordKind.LINKED_PAIR, LinkedPair, pair_id)

    async def list_pairs(
        self,
        org_id: str,
        status: Optional[LabourStatus] = None,
        limit: Optional[int] = None,
    ) -> list[LinkedPair]:
        query = RecordQuery(equals={"org_id": org_id}, limit=limit)
        if status is not None:
            query.equals["status"] = status
        return await self._list(RecordKind.LINKED_PAIR, LinkedPair, query)

    async def delete_pair(self, pair_id: str) -> None:
        await self._call("delete_linked_pair", self._store.delete(RecordKind.LINKED_PAIR, pair_id))

    async def increment_pair(self, pair_id: str, field: str, delta: Decimal) -> None:
        await self._call(
            "increment_linked_pair",
            self._store.increment(RecordKind.LINKED_PAIR, pair_id, field, delta),
        )

    # =========================================================================
    # POSTINGS
    # =========================================================================

    async def create_wage_entry(self, entry: WageEntry) -> WageEntry:
        await self._call("create_wage_entry", self._store.create(RecordKind.WAGE_ENTRY, to_record(entry)))
        return entry

    async def get_wage_entry(self, entry_id: str) -> Optional[WageEntry]:
        return await self._get(RecordKind.WAGE_ENTRY, WageEntry, entry_id)

    async def list_wage_entries(
        self,
        labour_ids: list[str],
        org_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[WageEntry]:
        query = self._date_query(org_id, "wage_date", date_from, date_to)
        query.any_of["labour_id"] = list(labour_ids)
        return await self._list(RecordKind.WAGE_ENTRY, WageEntry, query)

    async def create_payment(self, payment: Payment) -> Payment:
        await self._call("create_payment", self._store.create(RecordKind.PAYMENT, to_record(payment)))
        return payment

    async def list_payments(
        self,
        org_id: Optional[str] = None,
        pair_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Payment]:
        query = self._date_query(org_id, "payment_date", date_from, date_to, pair_id=pair_id)
        return await self._list(RecordKind.PAYMENT, Payment, query)

    async def create_adjustment(self, adjustment: LedgerAdjustment) -> LedgerAdjustment:
        await self._call(
            "create_ledger_adjustment",
            self._store.create(RecordKind.LEDGER_ADJUSTMENT, to_record(adjustment)),
        )
        return adjustment

    async def list_adjustments(
        self,
        org_id: Optional[str] = None,
        labour_id: Optional[str] = None,
        pair_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[LedgerAdjustment]:
        query = self._date_query(
            org_id, "adjustment_date", date_from, date_to,
            labour_id=labour_id, pair_id=pair_id,
        )
        return await self._list(RecordKind.LEDGER_ADJUSTMENT, LedgerAdjustment, query)
