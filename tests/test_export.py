"""
Tests for ledger export, the read-side queries and the component factory.
"""

import csv
import io
from datetime import date
from decimal import Decimal

from labour_ledger.config import AppSettings, LedgerSettings, Settings
from labour_ledger.ledger import ledger_to_csv, ledger_to_rows
from labour_ledger.models.labour import LabourFilters, LabourStatus
from labour_ledger.orchestrator import create_app_components, create_ledger_flow
from labour_ledger.queries import LabourQueryExecutor
from labour_ledger.services.storage import InMemoryEntityStore


async def _ledger_for(make_labour, engine, builder):
    """Build the ledger of a worker with one wage posting."""
    labour = await make_labour("Ravi Kumar", opening="1200")
    await engine.distribute_equal_wage(Decimal("150"), [labour.labour_code], wage_date=date(2024, 2, 1))
    return await builder.build_ledger(labour.id)


class TestLedgerExport:
    """Tests for ledger row and CSV export."""

    async def test_rows_include_closing_row(self, make_labour, engine, builder):
        """Test rows carry an opening and closing row."""
        result = await _ledger_for(make_labour, engine, builder)
        rows = ledger_to_rows(result.entries, result.summary, result.entity_name)

        assert len(rows) == len(result.entries) + 1
        assert rows[0]["type"] == "opening"
        assert rows[1] == {
            "date": "2024-02-01",
            "type": "credit",
            "description": "Individual wage payment",
            "member": "Ravi Kumar",
            "amount": "150.00",
            "running_balance": "1350.00",
        }
        assert rows[-1]["type"] == "closing"
        assert rows[-1]["running_balance"] == "1350.00"

    async def test_csv_summary_block_then_table(self, make_labour, engine, builder):
        """Test the CSV starts with the summary block."""
        result = await _ledger_for(make_labour, engine, builder)
        text = ledger_to_csv(result.entries, result.summary, result.entity_name, currency_symbol="₹")

        lines = list(csv.reader(io.StringIO(text)))
        assert lines[0] == ["Ledger", "Ravi Kumar"]
        assert lines[1] == ["Opening Balance", "₹1,200.00"]
        assert lines[4] == ["Closing Balance", "₹1,350.00"]
        header_at = lines.index(["Date", "Type", "Description", "Member", "Amount", "Running Balance"])
        assert lines[header_at - 1] == []
        assert len(lines) - header_at - 1 == len(result.entries)


class TestLabourQueries:
    """Tests for LabourQueryExecutor."""

    async def test_filters_and_newest_first(self, adapter, registry, make_labour):
        """Test each filter and newest-first ordering."""
        ravi = await make_labour("Ravi", tags=["driver"])
        sita = await make_labour("Sita", tags=["loader", "driver"])
        anil = await make_labour("Anil", tags=["production"], status="Inactive")
        await registry.create_linked_pair(ravi.id, sita.id)
        queries = LabourQueryExecutor(adapter)

        drivers = await queries.list_labours("org-1", LabourFilters(tags=["driver"]))
        assert [l.id for l in drivers] == [sita.id, ravi.id]

        inactive = await queries.list_labours("org-1", LabourFilters(status=LabourStatus.INACTIVE))
        assert [l.id for l in inactive] == [anil.id]

        unlinked = await queries.list_labours("org-1", LabourFilters(is_linked=False))
        assert [l.id for l in unlinked] == [anil.id]

        named = await queries.list_labours("org-1", LabourFilters(search_term="SIT"))
        assert [l.id for l in named] == [sita.id]

    async def test_stats(self, adapter, registry, make_labour):
        """Test counts and balance totals."""
        await make_labour("Ravi", opening="100")
        await make_labour("Sita", opening="50", status="Inactive")
        stats = await LabourQueryExecutor(adapter).labour_stats("org-1")

        assert (stats.total, stats.active, stats.inactive) == (2, 1, 1)
        assert (stats.linked, stats.individual) == (0, 2)
        assert stats.total_balance == Decimal("150")
        assert stats.average_balance == Decimal("75.00")

    async def test_stats_for_empty_org(self, adapter):
        """Test an empty org has zero stats."""
        stats = await LabourQueryExecutor(adapter).labour_stats("nobody")
        assert stats.total == 0
        assert stats.average_balance == Decimal("0")


class TestComponents:
    """Tests for the component factory and ledger flow."""

    async def test_flow_search_build_export(self):
        """Test find, then export a ledger end to end."""
        settings = Settings()
        components = create_app_components(settings=settings, store=InMemoryEntityStore())
        flow = create_ledger_flow(components, settings=settings)

        labour = await components.registry.create_labour(
            {"org_id": "org-1", "name": "Ravi", "gender": "Male", "opening_balance": "10"}
        )
        found = await flow.find("org-1", "ravi")
        filename, text = await flow.export_csv(found[0].id)

        assert found[0].id == labour.id
        assert filename == "ledger_Ravi.csv"
        assert f"{settings.app.currency_symbol}10.00" in text

        rows = await flow.export_rows(labour.id)
        assert [row["type"] for row in rows] == ["opening", "closing"]

    def test_memory_backend_by_default(self):
        """Test the in-memory backend is the default."""
        settings = Settings()
        assert isinstance(settings.app, AppSettings)
        assert isinstance(settings.ledger, LedgerSettings)
        components = create_app_components(settings=settings)
        assert isinstance(components.adapter.store, InMemoryEntityStore)
        assert components.sheets_client is None
