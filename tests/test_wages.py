"""
Tests for wage distribution, production wages, payment processing and
reversals.
"""

from datetime import date
from decimal import Decimal

import pytest

from labour_ledger.errors import DomainError, NotFoundError, ValidationError
from labour_ledger.models.audit import AuditEventType
from labour_ledger.models.labour import Gender, Labour
from labour_ledger.models.wage import CustomWage, ProductionWageData, TransactionType, WageType
from labour_ledger.wages import (
    INDIVIDUAL_DESCRIPTION,
    LINKED_DESCRIPTION,
    calculate_custom_distribution,
    calculate_equal_distribution,
    calculate_percentage_distribution,
    calculate_production_wage,
)


class TestPureCalculations:
    """Tests for the I/O-free distribution helpers."""

    def test_equal_distribution_sums_within_tolerance(self):
        """Test equal shares add up to the total within rounding."""
        codes = ["L000001", "L000002", "L000003"]
        distribution = calculate_equal_distribution(Decimal("100"), codes)

        amounts = [share.amount for share in distribution.distributions]
        assert amounts == [Decimal("33.33")] * 3
        assert abs(sum(amounts) - Decimal("100")) <= Decimal("0.005") * len(codes)

    def test_equal_distribution_needs_codes(self):
        """Test an empty code list is rejected."""
        with pytest.raises(ValidationError):
            calculate_equal_distribution(Decimal("100"), [])

    def test_percentage_distribution(self):
        """Test shares follow the given percentages."""
        distribution = calculate_percentage_distribution(
            Decimal("1000"), [("L000001", Decimal("60")), ("L000002", Decimal("40"))]
        )
        assert [s.amount for s in distribution.distributions] == [Decimal("600.00"), Decimal("400.00")]

    def test_percentage_distribution_must_total_100(self):
        """Test percentages that do not add up to 100 are rejected."""
        with pytest.raises(ValidationError, match="100%"):
            calculate_percentage_distribution(Decimal("1000"), [("L000001", Decimal("60"))])

    def test_custom_distribution_keeps_amounts(self):
        """Test custom amounts are kept as given."""
        distribution = calculate_custom_distribution([
            CustomWage(labour_code="L000001", amount=Decimal("120.50")),
            CustomWage(labour_code="L000002", amount=Decimal("80")),
        ])
        assert distribution.total_wage == Decimal("200.50")
        assert distribution.method == "custom"

    def test_production_wage(self):
        """Test the production and thappi wage formula."""
        calculation = calculate_production_wage(ProductionWageData(
            batch_number="B-7",
            production_units=Decimal("10000"),
            thappi_units=Decimal("2000"),
            wage_per_1000_units=Decimal("50"),
            wage_per_thappi=Decimal("10"),
            labour_codes=["L000001", "L000002"],
            wage_date=date(2024, 3, 1),
        ))
        assert calculation.total_wage == Decimal("520.00")
        assert calculation.per_worker_wage == Decimal("260.00")
        assert len(calculation.distributions) == 2

    def test_production_wage_lists_every_problem(self):
        """Test every production input problem is reported."""
        with pytest.raises(ValidationError) as excinfo:
            calculate_production_wage(ProductionWageData(
                batch_number=" ",
                production_units=Decimal("0"),
                thappi_units=Decimal("-1"),
                wage_per_1000_units=None,
                wage_per_thappi=Decimal("0"),
            ))

        fields = {issue.field for issue in excinfo.value.issues}
        assert fields == {
            "batch_number", "production_units", "thappi_units",
            "wage_per_1000_units", "wage_per_thappi", "labour_codes", "wage_date",
        }


class TestDistributeEqualWage:
    """Tests for equal wage postings."""

    async def test_two_individuals_get_half_each(self, engine, make_labour):
        """Test two workers get half of the total each."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita")

        entries = await engine.distribute_equal_wage(Decimal("1000"), [a.labour_code, b.labour_code])

        assert [e.amount for e in entries] == [Decimal("500.00"), Decimal("500.00")]
        assert {e.labour_id for e in entries} == {a.id, b.id}
        assert all(e.description == INDIVIDUAL_DESCRIPTION for e in entries)

    async def test_linked_members_marked_shared_and_grouped_last(self, engine, registry, make_labour):
        """Test linked members get the shared description but the same amount."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita")
        c = await make_labour("Anil")
        await registry.create_linked_pair(a.id, b.id)

        entries = await engine.distribute_equal_wage(
            Decimal("900"), [a.labour_code, c.labour_code, b.labour_code]
        )

        assert entries[0].labour_id == c.id
        assert entries[0].description == INDIVIDUAL_DESCRIPTION
        assert [e.labour_id for e in entries[1:]] == [a.id, b.id]
        assert all(e.description == LINKED_DESCRIPTION for e in entries[1:])
        assert all(e.amount == Decimal("300.00") for e in entries)

    async def test_posting_does_not_move_balances(self, engine, registry, make_labour):
        """Test posting alone leaves balances unchanged."""
        a = await make_labour("Ravi", opening="10")
        await engine.distribute_equal_wage(Decimal("100"), [a.labour_code])
        assert (await registry.get_labour(a.id)).current_balance == Decimal("10")

    async def test_rejects_bad_input_with_every_issue(self, engine):
        """Test empty codes and a zero total are reported together."""
        with pytest.raises(ValidationError) as excinfo:
            await engine.distribute_equal_wage(Decimal("0"), [])
        assert {i.field for i in excinfo.value.issues} == {"labour_codes", "total_amount"}

    async def test_unknown_code_writes_nothing(self, engine, store, make_labour):
        """Test one unknown code blocks every posting."""
        a = await make_labour("Ravi")
        store.reset_counters()

        with pytest.raises(NotFoundError, match="L999999"):
            await engine.distribute_equal_wage(Decimal("100"), [a.labour_code, "L999999"])
        assert store.writes == 0

    async def test_cross_org_codes_rejected(self, engine, store, make_labour):
        """Test one distribution cannot span organizations."""
        a = await make_labour("Ravi", org_id="org-1")
        b = await make_labour("Sita", org_id="org-2")
        store.reset_counters()

        with pytest.raises(DomainError):
            await engine.distribute_equal_wage(Decimal("100"), [a.labour_code, b.labour_code])
        assert store.writes == 0

    async def test_audited(self, engine, make_labour, audit_storage):
        """Test postings are audited."""
        a = await make_labour("Ravi")
        await engine.distribute_equal_wage(Decimal("100"), [a.labour_code], wage_type=WageType.BONUS)
        assert audit_storage.events[-1].event_type == AuditEventType.WAGES_POSTED


class TestCodeScoping:
    """Tests for codes that exist in more than one organization."""

    @pytest.fixture
    async def shared_code(self, adapter):
        """Two pre-existing workers in different organizations share L500000."""
        mine = Labour(labour_code="L500000", org_id="org-2", name="Sita", gender=Gender.FEMALE)
        other = Labour(labour_code="L500000", org_id="org-1", name="Ravi", gender=Gender.MALE)
        await adapter.create_labour(other)
        await adapter.create_labour(mine)
        return mine

    async def test_org_id_picks_the_right_worker(self, engine, shared_code):
        """Test an org-scoped equal posting reaches only that organization's worker."""
        entries = await engine.distribute_equal_wage(
            Decimal("100"), [shared_code.labour_code], org_id="org-2"
        )
        assert [(e.org_id, e.labour_id) for e in entries] == [("org-2", shared_code.id)]

    async def test_custom_and_production_honour_org_id(self, engine, shared_code):
        """Test custom and production postings resolve codes within the organization."""
        custom = await engine.distribute_custom_wage(
            [{"labour_code": shared_code.labour_code, "amount": "50"}], org_id="org-2"
        )
        production = await engine.post_production_wage(ProductionWageData(
            production_units=Decimal("1000"),
            wage_per_1000_units=Decimal("40"),
            wage_per_thappi=Decimal("10"),
            labour_codes=[shared_code.labour_code],
            wage_date=date(2024, 3, 1),
            org_id="org-2",
        ))
        assert {e.labour_id for e in custom + production} == {shared_code.id}

    async def test_ambiguous_code_without_org_writes_nothing(self, engine, store, shared_code):
        """Test an unscoped posting of a shared code is refused."""
        store.reset_counters()

        with pytest.raises(DomainError, match="L500000"):
            await engine.distribute_equal_wage(Decimal("100"), [shared_code.labour_code])
        assert store.writes == 0


class TestCustomAndProduction:
    """Tests for custom and production postings."""

    async def test_custom_amounts_posted_as_given(self, engine, make_labour):
        """Test custom amounts are posted without recomputation."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita")

        entries = await engine.distribute_custom_wage([
            {"labour_code": a.labour_code, "amount": "123.45"},
            CustomWage(labour_code=b.labour_code, amount=Decimal("10")),
        ])
        assert [e.amount for e in entries] == [Decimal("123.45"), Decimal("10")]

    async def test_custom_invalid_amounts_reported_together(self, engine, make_labour):
        """Test every bad custom line is reported."""
        a = await make_labour("Ravi")
        with pytest.raises(ValidationError) as excinfo:
            await engine.distribute_custom_wage([
                {"labour_code": a.labour_code, "amount": "-1"},
                {"labour_code": "", "amount": "abc"},
            ])
        assert len(excinfo.value.issues) == 3

    async def test_production_wage_posts_batch_linkage(self, engine, make_labour):
        """Test production postings carry the batch fields."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita")

        entries = await engine.post_production_wage(ProductionWageData(
            batch_number="B-7",
            production_units=Decimal("10000"),
            thappi_units=Decimal("2000"),
            wage_per_1000_units=Decimal("50"),
            wage_per_thappi=Decimal("10"),
            labour_codes=[a.labour_code, b.labour_code],
            wage_date=date(2024, 3, 1),
            production_entry_id="prod-1",
        ))

        assert [e.amount for e in entries] == [Decimal("260.00"), Decimal("260.00")]
        assert all(e.batch_number == "B-7" and e.production_entry_id == "prod-1" for e in entries)
        assert entries[0].wage_date == date(2024, 3, 1)


class TestProcessWagePayment:
    """Tests for applying posted wages to balances."""

    async def test_pair_shared_balance_receives_both_shares(self, engine, registry, make_labour):
        """Test both members' wages land on the shared balance."""
        a = await make_labour("Ravi", opening="500")
        b = await make_labour("Sita", opening="300")
        pair = await registry.create_linked_pair(a.id, b.id)

        entries = await engine.distribute_equal_wage(Decimal("1000"), [a.labour_code, b.labour_code])
        await engine.process_wage_payment(entries)

        assert (await registry.get_linked_pair(pair.id)).shared_balance == Decimal("1800")

    async def test_aggregates_per_worker(self, engine, registry, make_labour, audit_storage):
        """Test one balance update per worker, not per entry."""
        a = await make_labour("Ravi")
        entries = await engine.distribute_equal_wage(
            Decimal("100"), [a.labour_code, a.labour_code]
        )

        applied = await engine.process_wage_payment(entries)

        assert applied == {a.id: Decimal("100.00")}
        balance_events = [e for e in audit_storage.events if e.event_type == AuditEventType.BALANCE_UPDATED]
        assert len(balance_events) == 1
        stored = await registry.get_labour(a.id)
        assert stored.current_balance == Decimal("100.00")
        assert stored.total_earned == Decimal("100.00")

    async def test_empty_entries(self, engine):
        """Test processing nothing is a validation error."""
        with pytest.raises(ValidationError):
            await engine.process_wage_payment([])


class TestReversalAndSummary:
    """Tests for wage reversal and per-worker wage summaries."""

    async def test_reverse_restores_balance_and_keeps_entry(self, engine, registry, adapter, make_labour):
        """Test reversal adds a debit adjustment and keeps the entry."""
        a = await make_labour("Ravi")
        entries = await engine.distribute_equal_wage(Decimal("200"), [a.labour_code])
        await engine.process_wage_payment(entries)

        adjustment = await engine.reverse_wage_entry(entries[0].id)

        assert adjustment.transaction_type == TransactionType.DEBIT
        assert adjustment.reference_id == entries[0].id
        assert (await registry.get_labour(a.id)).current_balance == Decimal("0.00")
        assert await adapter.get_wage_entry(entries[0].id) is not None

    async def test_reverse_twice_rejected(self, engine, make_labour):
        """Test an entry can only be reversed once."""
        a = await make_labour("Ravi")
        entries = await engine.distribute_equal_wage(Decimal("200"), [a.labour_code])
        await engine.reverse_wage_entry(entries[0].id)

        with pytest.raises(DomainError, match="already been reversed"):
            await engine.reverse_wage_entry(entries[0].id)

    async def test_reverse_missing(self, engine):
        """Test reversing an unknown entry raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await engine.reverse_wage_entry("nope")

    async def test_wage_summary(self, engine, make_labour):
        """Test totals, average and last date, with and without a window."""
        a = await make_labour("Ravi")
        await engine.distribute_equal_wage(Decimal("100"), [a.labour_code], wage_date=date(2024, 2, 1))
        await engine.distribute_equal_wage(Decimal("300"), [a.labour_code], wage_date=date(2024, 2, 5))

        summary = await engine.get_labour_wage_summary(a.id)
        assert summary.total_entries == 2
        assert summary.total_earned == Decimal("400.00")
        assert summary.average_wage == Decimal("200.00")
        assert summary.last_wage_date == date(2024, 2, 5)

        windowed = await engine.get_labour_wage_summary(a.id, date_from=date(2024, 2, 2))
        assert windowed.total_entries == 1
