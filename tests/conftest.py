"""
Shared fixtures.

Every test runs against InMemoryEntityStore; no network, no Sheets.
"""

import itertools
from datetime import date
from decimal import Decimal

import pytest

from labour_ledger.audit import AuditLogger
from labour_ledger.config import LedgerSettings
from labour_ledger.ledger import LedgerBuilder
from labour_ledger.models.labour import Gender
from labour_ledger.registry import LabourRegistry
from labour_ledger.search import EntitySearchIndex
from labour_ledger.services.storage import (
    EntityStoreAdapter,
    InMemoryAuditStorage,
    InMemoryEntityStore,
)
from labour_ledger.wages import WageDistributionEngine

ORG = "org-1"


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
def adapter(store):
    return EntityStoreAdapter(store)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger_settings():
    return LedgerSettings()


@pytest.fixture
def registry(adapter, audit_logger, ledger_settings):
    codes = itertools.count(1)
    return LabourRegistry(
        adapter,
        audit_logger=audit_logger,
        settings=ledger_settings,
        code_generator=lambda: f"L{next(codes):06d}",
    )


@pytest.fixture
def engine(registry, audit_logger):
    return WageDistributionEngine(registry, audit_logger=audit_logger)


@pytest.fixture
def builder(registry, audit_logger):
    return LedgerBuilder(registry, audit_logger=audit_logger)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def search(adapter, ledger_settings, clock):
    return EntitySearchIndex(adapter, settings=ledger_settings, clock=clock)


@pytest.fixture
def make_labour(registry):
    """Async factory: await make_labour("Ravi", opening="500")."""

    async def _make(name: str, opening="0", org_id: str = ORG, **extra):
        payload = {
            "org_id": org_id,
            "name": name,
            "gender": Gender.MALE,
            "opening_balance": Decimal(opening),
            "date_joined": date(2024, 1, 1),
        }
        payload.update(extra)
        return await registry.create_labour(payload)

    return _make
