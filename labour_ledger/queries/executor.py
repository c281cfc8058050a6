"""
Read-side Labour Queries

Listing and headcount figures for one organization. Everything here is a
plain read over stored workers; nothing is estimated and nothing is written.
"""

from typing import Optional

import structlog

from labour_ledger.models.common import ZERO, to_money
from labour_ledger.models.labour import Labour, LabourFilters, LabourStats, LabourStatus
from labour_ledger.services.storage import EntityStoreAdapter

logger = structlog.get_logger(__name__)


def filter_labours(labours: list[Labour], filters: LabourFilters) -> list[Labour]:
    """Apply status, linked flag, tag overlap and name substring filters."""
    filtered = list(labours)

    if filters.status is not None:
        filtered = [labour for labour in filtered if labour.status == filters.status]

    if filters.is_linked is not None:
        filtered = [labour for labour in filtered if labour.is_linked == filters.is_linked]

    if filters.tags:
        wanted = set(filters.tags)
        filtered = [labour for labour in filtered if wanted.intersection(labour.tags)]

    if filters.search_term:
        term = filters.search_term.strip().lower()
        filtered = [labour for labour in filtered if term in labour.name.lower()]

    return filtered


class LabourQueryExecutor:
    """
    Executes listing and statistics queries against the worker store.

    Only returns stored data; an empty organization yields an empty list
    and zeroed stats.
    """

    def __init__(self, adapter: EntityStoreAdapter):
        self._adapter = adapter

    async def list_labours(
        self,
        org_id: str,
        filters: Optional[LabourFilters] = None,
    ) -> list[Labour]:
        """List workers matching the filters, newest first."""
        filters = filters or LabourFilters()
        labours = await self._adapter.list_labours(org_id, status=filters.status)
        labours = filter_labours(labours, filters)
        labours.sort(key=lambda labour: labour.created_at, reverse=True)

        logger.debug("labours_listed", org_id=org_id, count=len(labours))
        return labours

    async def labour_stats(self, org_id: str) -> LabourStats:
        labours = await self._adapter.list_labours(org_id)
        if not labours:
            return LabourStats()

        total_balance = sum((labour.current_balance for labour in labours), ZERO)
        linked = sum(1 for labour in labours if labour.is_linked)
        active = sum(1 for labour in labours if labour.status == LabourStatus.ACTIVE)

        return LabourStats(
            total=len(labours),
            active=active,
            inactive=len(labours) - active,
            linked=linked,
            individual=len(labours) - linked,
            total_balance=total_balance,
            average_balance=to_money(total_balance / len(labours)),
        )
