"""
Tests for the Labour Registry: worker CRUD, linking, dissolution and
the balance-mutation primitive.
"""

from decimal import Decimal

import pytest

from labour_ledger.errors import DatabaseError, DomainError, NotFoundError, ValidationError
from labour_ledger.models.audit import AuditEventType
from labour_ledger.models.labour import Gender, LabourStatus
from labour_ledger.models.ledger import IndividualRef, PairRef
from labour_ledger.registry import LabourRegistry
from labour_ledger.services.storage import (
    EntityStoreAdapter,
    InMemoryEntityStore,
    RecordKind,
    StorageError,
)


class FailingUpdateStore(InMemoryEntityStore):
    """Fails the Nth update call and every one after it."""

    def __init__(self, fail_on: int):
        super().__init__()
        self.fail_on = fail_on
        self.update_calls = 0

    async def update(self, kind, record_id, fields):
        self.update_calls += 1
        if self.update_calls >= self.fail_on:
            raise StorageError("sheet quota exceeded", operation="update")
        await super().update(kind, record_id, fields)


class TestCreateLabour:
    """Tests for worker creation."""

    async def test_create_sets_code_and_opening_balance(self, make_labour):
        """Test a new worker gets a code and starts at its opening balance."""
        labour = await make_labour("Ravi", opening="250")
        assert labour.labour_code == "L000001"
        assert labour.current_balance == Decimal("250")
        assert labour.opening_balance == Decimal("250")
        assert labour.is_linked is False

    async def test_create_accepts_enum_members(self, registry):
        """Test gender and status may be passed as enum members."""
        labour = await registry.create_labour({
            "org_id": "org-1",
            "name": "Sita",
            "gender": Gender.FEMALE,
            "status": LabourStatus.INACTIVE,
        })
        assert labour.gender == Gender.FEMALE
        assert labour.status == LabourStatus.INACTIVE

    async def test_create_reports_every_issue(self, registry):
        """Test every violated rule is reported, not just the first."""
        with pytest.raises(ValidationError) as excinfo:
            await registry.create_labour({"org_id": "", "name": " ", "gender": "Other"})

        fields = {issue.field for issue in excinfo.value.issues}
        assert {"org_id", "name", "gender"} <= fields
        assert "Name is required." in str(excinfo.value)

    async def test_create_rejects_negative_opening_balance(self, registry):
        """Test a negative opening balance is rejected."""
        with pytest.raises(ValidationError) as excinfo:
            await registry.create_labour({
                "org_id": "org-1", "name": "Ravi", "gender": "Male", "opening_balance": "-5",
            })
        assert excinfo.value.issues[0].field == "opening_balance"

    async def test_code_collision_retries_until_unused(self, adapter, make_labour):
        """Test a colliding code is regenerated."""
        await make_labour("Ravi")
        codes = iter(["L000001", "L000001", "L777777"])
        registry = LabourRegistry(adapter, code_generator=lambda: next(codes))

        labour = await registry.create_labour({"org_id": "org-1", "name": "Sita", "gender": "Female"})
        assert labour.labour_code == "L777777"

    async def test_codes_are_unique_across_organizations(self, adapter, make_labour):
        """Test a code taken in one organization is not reused in another."""
        await make_labour("Ravi", org_id="org-1")
        codes = iter(["L000001", "L000002"])
        registry = LabourRegistry(adapter, code_generator=lambda: next(codes))

        labour = await registry.create_labour({"org_id": "org-2", "name": "Sita", "gender": "Female"})
        assert labour.labour_code == "L000002"

    async def test_code_generation_gives_up(self, adapter, make_labour, ledger_settings):
        """Test code generation stops after the configured attempts."""
        await make_labour("Ravi")
        registry = LabourRegistry(adapter, settings=ledger_settings, code_generator=lambda: "L000001")

        with pytest.raises(DomainError):
            await registry.create_labour({"org_id": "org-1", "name": "Sita", "gender": "Female"})


class TestUpdateAndDelete:
    """Tests for profile updates and deletion."""

    async def test_update_changes_profile_fields_only(self, registry, make_labour):
        """Test a partial update leaves other fields untouched."""
        labour = await make_labour("Ravi", opening="100")
        updated = await registry.update_labour(labour.id, {"name": "Ravi Kumar", "tags": ["driver"]})

        stored = await registry.get_labour(labour.id)
        assert updated.name == stored.name == "Ravi Kumar"
        assert stored.tags == ["driver"]
        assert stored.current_balance == Decimal("100")

    async def test_update_accepts_enum_members(self, registry, make_labour):
        """Test gender and status updates may be passed as enum members."""
        labour = await make_labour("Ravi")
        await registry.update_labour(labour.id, {"status": LabourStatus.INACTIVE, "gender": Gender.FEMALE})

        stored = await registry.get_labour(labour.id)
        assert stored.status == LabourStatus.INACTIVE
        assert stored.gender == Gender.FEMALE

    async def test_update_rejects_balance_fields(self, registry, store, make_labour):
        """Test balance fields cannot be written through an update."""
        labour = await make_labour("Ravi", opening="100")
        store.reset_counters()

        with pytest.raises(ValidationError) as excinfo:
            await registry.update_labour(labour.id, {"current_balance": "9999", "name": ""})

        issues = {issue.field: issue.issue_type for issue in excinfo.value.issues}
        assert issues["current_balance"] == "not_allowed"
        assert issues["name"] == "invalid_value"
        assert store.writes == 0

    async def test_update_missing_labour(self, registry):
        """Test updating an unknown worker raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await registry.update_labour("nope", {"name": "X"})

    async def test_delete_unlinked(self, registry, make_labour):
        """Test an unlinked worker can be deleted."""
        labour = await make_labour("Ravi")
        await registry.delete_labour(labour.id)
        with pytest.raises(NotFoundError):
            await registry.get_labour(labour.id)

    async def test_delete_linked_is_rejected(self, registry, make_labour, audit_storage):
        """Test a linked worker cannot be deleted."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita")
        await registry.create_linked_pair(a.id, b.id)

        with pytest.raises(DomainError, match="dissolve the linked pair first"):
            await registry.delete_labour(a.id)
        assert audit_storage.events[-1].event_type == AuditEventType.DOMAIN_RULE_VIOLATED


class TestLinking:
    """Tests for linked pair creation."""

    async def test_link_moves_balances_to_pair(self, registry, make_labour):
        """Test both balances move into the shared balance."""
        a = await make_labour("Ravi", opening="500")
        b = await make_labour("Sita", opening="300")

        pair = await registry.create_linked_pair(a.id, b.id)
        member1, member2 = await registry.get_pair_members(pair.id)

        assert pair.shared_balance == Decimal("800")
        assert pair.name == "Ravi & Sita"
        assert member1.current_balance == member2.current_balance == Decimal("0")
        assert member1.linked_pair_id == member2.linked_pair_id == pair.id
        assert member1.is_linked and member2.is_linked

    async def test_link_preserves_total(self, registry, make_labour):
        """Test linking keeps the combined balance to the paisa."""
        a = await make_labour("Ravi", opening="123.45")
        b = await make_labour("Sita", opening="0.55")
        pair = await registry.create_linked_pair(a.id, b.id, name="Night shift")

        stored = await registry.get_linked_pair(pair.id)
        assert stored.shared_balance == Decimal("124.00")
        assert stored.name == "Night shift"

    async def test_self_link_rejected(self, registry, make_labour):
        """Test a worker cannot be linked to itself."""
        a = await make_labour("Ravi")
        with pytest.raises(DomainError):
            await registry.create_linked_pair(a.id, a.id)

    async def test_missing_member(self, registry, make_labour):
        """Test linking an unknown worker raises NotFoundError."""
        a = await make_labour("Ravi")
        with pytest.raises(NotFoundError):
            await registry.create_linked_pair(a.id, "ghost")

    async def test_different_orgs_rejected_without_writes(self, registry, store, make_labour):
        """Test workers from different organizations cannot be linked."""
        a = await make_labour("Ravi", org_id="org-1")
        b = await make_labour("Sita", org_id="org-2")
        store.reset_counters()

        with pytest.raises(DomainError, match="different organizations"):
            await registry.create_linked_pair(a.id, b.id)

        assert store.writes == 0
        assert (await registry.get_labour(a.id)).is_linked is False
        assert (await registry.get_labour(b.id)).is_linked is False

    async def test_already_linked_rejected(self, registry, make_labour):
        """Test a linked worker cannot join a second pair."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita")
        c = await make_labour("Anil")
        await registry.create_linked_pair(a.id, b.id)

        with pytest.raises(DomainError, match="already linked"):
            await registry.create_linked_pair(a.id, c.id)

    async def test_inactive_member_rejected(self, registry, make_labour):
        """Test inactive workers cannot be linked."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita", status="Inactive")
        with pytest.raises(DomainError, match="active"):
            await registry.create_linked_pair(a.id, b.id)

    async def test_linked_partner(self, registry, make_labour):
        """Test partner lookup for linked and unlinked workers."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita")
        c = await make_labour("Anil")
        await registry.create_linked_pair(a.id, b.id)

        partner = await registry.get_linked_partner(b.id)
        assert partner.id == a.id
        assert await registry.get_linked_partner(c.id) is None

    async def test_partial_link_failure_names_applied_writes(self, audit_logger, audit_storage):
        """Test a mid-sequence failure reports the writes already applied."""
        store = FailingUpdateStore(fail_on=2)
        registry = LabourRegistry(EntityStoreAdapter(store), audit_logger=audit_logger)
        a = await registry.create_labour({"org_id": "org-1", "name": "Ravi", "gender": "Male"})
        b = await registry.create_labour({"org_id": "org-1", "name": "Sita", "gender": "Female"})

        with pytest.raises(DatabaseError) as excinfo:
            await registry.create_linked_pair(a.id, b.id)

        assert "link member 2" in str(excinfo.value)
        assert "create pair" in str(excinfo.value)
        assert excinfo.value.operation == "create_linked_pair"
        assert len(await store.list(RecordKind.LINKED_PAIR)) == 1
        assert any(e.event_type == AuditEventType.PARTIAL_WRITE for e in audit_storage.events)

    async def test_failure_on_first_write_is_raised_unchanged(self):
        """Test a failure before any write keeps the store's message."""
        store = FailingUpdateStore(fail_on=1)
        registry = LabourRegistry(EntityStoreAdapter(store))
        a = await registry.create_labour({"org_id": "org-1", "name": "Ravi", "gender": "Male"})

        with pytest.raises(DatabaseError) as excinfo:
            await registry.update_labour(a.id, {"name": "Ravi K"})
        assert "sheet quota exceeded" in str(excinfo.value)


class TestDissolve:
    """Tests for linked pair dissolution."""

    async def test_dissolve_splits_evenly(self, registry, make_labour):
        """Test the shared balance is split evenly between members."""
        a = await make_labour("Ravi", opening="1000")
        b = await make_labour("Sita", opening="800")
        pair = await registry.create_linked_pair(a.id, b.id)

        member1, member2 = await registry.dissolve_linked_pair(pair.id)

        assert member1.current_balance == member2.current_balance == Decimal("900")
        stored1, stored2 = await registry.get_labour(a.id), await registry.get_labour(b.id)
        assert stored1.current_balance == stored2.current_balance == Decimal("900")
        assert not stored1.is_linked and stored1.linked_pair_id is None
        with pytest.raises(NotFoundError):
            await registry.get_linked_pair(pair.id)

    async def test_dissolve_odd_paisa_goes_to_member1(self, registry, make_labour):
        """Test member 1 takes the odd paisa."""
        a = await make_labour("Ravi", opening="0.01")
        b = await make_labour("Sita", opening="100")
        pair = await registry.create_linked_pair(a.id, b.id)

        member1, member2 = await registry.dissolve_linked_pair(pair.id)

        assert member1.current_balance == Decimal("50.01")
        assert member2.current_balance == Decimal("50.00")
        assert member1.current_balance + member2.current_balance == Decimal("100.01")

    async def test_dissolve_negative_balance(self, registry, make_labour):
        """Test a negative shared balance splits without losing money."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita")
        pair = await registry.create_linked_pair(a.id, b.id)
        await registry.update_balance(a.id, Decimal("-0.03"))

        member1, member2 = await registry.dissolve_linked_pair(pair.id)
        assert member1.current_balance + member2.current_balance == Decimal("-0.03")

    async def test_dissolve_missing_pair(self, registry):
        """Test dissolving an unknown pair raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await registry.dissolve_linked_pair("nope")


class TestUpdateBalance:
    """Tests for the balance-mutation primitive."""

    async def test_individual_credit_and_debit(self, registry, make_labour):
        """Test credits and debits move balance and totals."""
        labour = await make_labour("Ravi", opening="100")

        await registry.update_balance(labour.id, Decimal("250"), "wage")
        await registry.update_balance(labour.id, Decimal("-75.50"), "advance")

        stored = await registry.get_labour(labour.id)
        assert stored.current_balance == Decimal("274.50")
        assert stored.total_earned == Decimal("250")
        assert stored.total_paid == Decimal("75.50")

    async def test_linked_moves_shared_balance(self, registry, make_labour):
        """Test a linked worker's delta lands on the pair."""
        a = await make_labour("Ravi", opening="500")
        b = await make_labour("Sita", opening="300")
        pair = await registry.create_linked_pair(a.id, b.id)

        await registry.update_balance(b.id, "1000")

        assert (await registry.get_linked_pair(pair.id)).shared_balance == Decimal("1800")
        assert (await registry.get_labour(b.id)).current_balance == Decimal("0")

    async def test_zero_delta_writes_nothing(self, registry, store, make_labour):
        """Test a zero delta is a no-op."""
        labour = await make_labour("Ravi")
        store.reset_counters()
        await registry.update_balance(labour.id, 0)
        assert store.writes == 0

    async def test_non_numeric_delta(self, registry, make_labour):
        """Test a non-numeric delta is a validation error."""
        labour = await make_labour("Ravi")
        with pytest.raises(ValidationError):
            await registry.update_balance(labour.id, "ten")

    async def test_audited(self, registry, make_labour, audit_storage):
        """Test balance updates are audited."""
        labour = await make_labour("Ravi")
        await registry.update_balance(labour.id, Decimal("10"), "bonus")
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.BALANCE_UPDATED
        assert event.entity_id == labour.id


class TestResolveEntity:
    """Tests for entity lookups."""

    async def test_labour_and_pair_ids(self, registry, make_labour):
        """Test worker ids resolve to individuals and pair ids to pairs."""
        a = await make_labour("Ravi")
        b = await make_labour("Sita")
        pair = await registry.create_linked_pair(a.id, b.id)

        individual = await registry.resolve_entity(a.id)
        shared = await registry.resolve_entity(pair.id)

        assert isinstance(individual, IndividualRef)
        assert individual.labour.id == a.id
        assert isinstance(shared, PairRef)
        assert [m.id for m in shared.members] == [a.id, b.id]

    async def test_unknown_id(self, registry):
        """Test an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await registry.resolve_entity("missing")

    async def test_lookup_by_code_is_org_scoped(self, registry, make_labour):
        """Test code lookup honours the organization."""
        labour = await make_labour("Ravi")

        assert (await registry.get_labour_by_code(labour.labour_code, "org-1")).id == labour.id
        with pytest.raises(NotFoundError):
            await registry.get_labour_by_code(labour.labour_code, "org-2")


class TestLegacyMigration:
    """Tests for converting legacy combined records."""

    def test_converts_individual_and_pair_records(self):
        """Test individual and pair records become workers and pairs."""
        labours, pairs = LabourRegistry.migrate_legacy_labours([
            {
                "type": "individual",
                "id": "w1",
                "labour_code": "L100001",
                "org_id": "org-1",
                "name": "Ravi",
                "gender": "Male",
                "current_balance": "40",
            },
            {
                "type": "linked_pair",
                "id": "p1",
                "org_id": "org-1",
                "labour1": {"name": "Sita", "gender": "Female"},
                "labour2": {"name": "Anil", "gender": "Male"},
                "shared_balance": {"current_balance": "900"},
            },
        ])

        assert [l.id for l in labours] == ["w1", "p1_labour1", "p1_labour2"]
        assert labours[1].linked_pair_id == "p1"
        assert pairs[0].shared_balance == Decimal("900")
        assert pairs[0].member_ids == ("p1_labour1", "p1_labour2")

    def test_unknown_type(self):
        """Test an unknown record type is rejected."""
        with pytest.raises(ValidationError):
            LabourRegistry.migrate_legacy_labours([{"type": "crew", "id": "x", "org_id": "o"}])

    def test_missing_key(self):
        """Test a record without an id is rejected."""
        with pytest.raises(ValidationError):
            LabourRegistry.migrate_legacy_labours([{"type": "individual", "org_id": "o"}])
