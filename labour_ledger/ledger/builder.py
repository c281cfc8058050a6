"""
Ledger Builder

Resolves the entity once, reads the three posting sources concurrently,
and hands everything to the pure assemble_ledger. The ledger is never
cached or persisted; every call re-derives it from the postings.

Reads are all-or-nothing: if any source fails, the call raises
DatabaseError and no partial ledger is returned.
"""

import asyncio
from typing import Optional

import structlog

from labour_ledger.audit import AuditLogger
from labour_ledger.errors import LedgerConsistencyError
from labour_ledger.ledger.compute import assemble_ledger
from labour_ledger.models.ledger import EntityRef, LedgerFilters, LedgerResult, PairRef
from labour_ledger.registry import LabourRegistry

logger = structlog.get_logger(__name__)


class LedgerBuilder:
    """Builds ledgers for one worker or one linked pair."""

    def __init__(
        self,
        registry: LabourRegistry,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._registry = registry
        self._adapter = registry.adapter
        self._audit_logger = audit_logger

    async def build_ledger(
        self,
        ref_id: str,
        filters: Optional[LedgerFilters] = None,
    ) -> LedgerResult:
        """
        Build the ledger for a worker id or a linked-pair id.

        Raises:
            NotFoundError: if ref_id names neither a worker nor a pair
            DatabaseError: if any posting source cannot be read
            LedgerConsistencyError: if the summary disagrees with the running balance
        """
        entity = await self._registry.resolve_entity(ref_id)
        return await self.build_for(entity, filters)

    async def build_for(
        self,
        entity: EntityRef,
        filters: Optional[LedgerFilters] = None,
    ) -> LedgerResult:
        filters = filters or LedgerFilters()
        member_ids = [member.id for member in entity.members]

        # Lines after date_to never matter; earlier ones feed the brought-forward balance
        wage_entries, payments, adjustments = await asyncio.gather(
            self._adapter.list_wage_entries(member_ids, org_id=entity.org_id, date_to=filters.date_to),
            self._adapter.list_payments(
                org_id=entity.org_id,
                pair_id=entity.id if isinstance(entity, PairRef) else None,
                date_to=filters.date_to,
            ),
            self._adapter.list_adjustments(org_id=entity.org_id, date_to=filters.date_to),
        )

        try:
            result = assemble_ledger(entity, wage_entries, payments, adjustments, filters)
        except LedgerConsistencyError as e:
            logger.error("ledger_inconsistent", entity_id=entity.id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="ledger_inconsistent",
                    error_message=str(e),
                    details={"entity_kind": entity.kind, "entity_id": entity.id},
                )
            raise

        logger.debug(
            "ledger_built",
            entity_kind=entity.kind,
            entity_id=entity.id,
            entries=len(result.entries),
            closing_balance=str(result.summary.closing_balance),
        )
        if self._audit_logger:
            await self._audit_logger.log_ledger_built(
                entity_kind=entity.kind,
                entity_id=entity.id,
                entry_count=len(result.entries),
                closing_balance=str(result.summary.closing_balance),
            )
        return result
