"""
Main Orchestrator for the Labour Ledger

Ties the components together and defines the ledger flow:
    search term → pick entity → build ledger → export

Every component is constructed once here and shares one store adapter
and one audit logger, so a process never talks to two different stores.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from labour_ledger.audit import AuditLogger, create_correlation_id
from labour_ledger.config import Settings, get_settings
from labour_ledger.ledger import LedgerBuilder, ledger_to_csv, ledger_to_rows
from labour_ledger.models.ledger import LedgerFilters, LedgerResult, SearchResult
from labour_ledger.queries import LabourQueryExecutor
from labour_ledger.registry import LabourRegistry
from labour_ledger.search import EntitySearchIndex
from labour_ledger.services.storage import (
    AuditStorageInterface,
    EntityStoreAdapter,
    EntityStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsEntityStore,
    InMemoryAuditStorage,
    InMemoryEntityStore,
)
from labour_ledger.validation import LabourValidator
from labour_ledger.wages import WageDistributionEngine

logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    adapter: EntityStoreAdapter
    audit_logger: AuditLogger
    registry: LabourRegistry
    wages: WageDistributionEngine
    ledger: LedgerBuilder
    search: EntitySearchIndex
    queries: LabourQueryExecutor
    sheets_client: Optional[GoogleSheetsClient] = None


class LedgerFlow:
    """
    Orchestrates the ledger lookup flow.

    Flow:
    1. Search → fuzzy match workers and pair accounts by name
    2. Build → derive the ledger from postings (never cached)
    3. Export → flat rows or CSV text with the configured currency symbol
    """

    def __init__(
        self,
        builder: LedgerBuilder,
        search: EntitySearchIndex,
        settings: Optional[Settings] = None,
    ):
        self._builder = builder
        self._search = search
        self._settings = settings or get_settings()

    async def find(self, org_id: str, term: str) -> list[SearchResult]:
        return await self._search.search(org_id, term)

    async def build(
        self,
        ref_id: str,
        filters: Optional[LedgerFilters] = None,
    ) -> LedgerResult:
        correlation_id = create_correlation_id()
        logger.info("ledger_requested", ref_id=ref_id, correlation_id=str(correlation_id))
        return await self._builder.build_ledger(ref_id, filters)

    async def export_rows(
        self,
        ref_id: str,
        filters: Optional[LedgerFilters] = None,
    ) -> list[dict[str, str]]:
        result = await self.build(ref_id, filters)
        return ledger_to_rows(result.entries, result.summary, result.entity_name)

    async def export_csv(
        self,
        ref_id: str,
        filters: Optional[LedgerFilters] = None,
    ) -> tuple[str, str]:
        """
        Build and export a ledger as CSV.

        Returns:
            (filename, csv_text)
        """
        result = await self.build(ref_id, filters)
        text = ledger_to_csv(
            result.entries,
            result.summary,
            result.entity_name,
            currency_symbol=self._settings.app.currency_symbol,
        )
        safe_name = "".join(c if c.isalnum() else "_" for c in result.entity_name).strip("_")
        return f"ledger_{safe_name or result.entity_id}.csv", text


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[EntityStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings container; defaults to get_settings().
        store: Raw entity store. When omitted the backend named by
               APP_STORAGE_BACKEND is built (memory or google_sheets).
        audit_storage: Where audit events persist. Defaults to the same
                       backend as the store when the store is built here.
    """
    settings = settings or get_settings()
    sheets_client = None

    if store is None:
        if settings.app.storage_backend == "google_sheets":
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsEntityStore(sheets_client)
            if audit_storage is None:
                audit_storage = GoogleSheetsAuditStorage(sheets_client)
        else:
            store = InMemoryEntityStore()
            if audit_storage is None:
                audit_storage = InMemoryAuditStorage()

    logger.info(
        "components_created",
        backend=type(store).__name__,
        audit_backend=type(audit_storage).__name__ if audit_storage else None,
    )

    adapter = EntityStoreAdapter(store)
    audit_logger = AuditLogger(audit_storage)
    validator = LabourValidator()
    registry = LabourRegistry(
        adapter,
        audit_logger=audit_logger,
        validator=validator,
        settings=settings.ledger,
    )

    return AppComponents(
        adapter=adapter,
        audit_logger=audit_logger,
        registry=registry,
        wages=WageDistributionEngine(registry, audit_logger=audit_logger, validator=validator),
        ledger=LedgerBuilder(registry, audit_logger=audit_logger),
        search=EntitySearchIndex(adapter, settings=settings.ledger),
        queries=LabourQueryExecutor(adapter),
        sheets_client=sheets_client,
    )


def create_ledger_flow(components: AppComponents, settings: Optional[Settings] = None) -> LedgerFlow:
    return LedgerFlow(components.ledger, components.search, settings=settings)
