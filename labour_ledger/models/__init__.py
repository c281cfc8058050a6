"""
Data Models Package

All Pydantic models used by the labour ledger core.
Persisted records (Labour, LinkedPair, WageEntry, Payment, LedgerAdjustment)
and derived ones (LedgerEntry, LedgerSummary) both live here.
"""

from labour_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from labour_ledger.models.common import (
    MONEY_QUANTUM,
    ZERO,
    ValidationIssue,
    ValidationResult,
    split_in_two,
    to_money,
    utc_now,
)
from labour_ledger.models.labour import (
    Gender,
    Labour,
    LabourFilters,
    LabourStats,
    LabourStatus,
    LinkedPair,
    new_record_id,
)
from labour_ledger.models.ledger import (
    EntityRef,
    IndividualRef,
    LedgerEntry,
    LedgerEntryKind,
    LedgerEntryType,
    LedgerFilters,
    LedgerResult,
    LedgerSummary,
    MemberBalance,
    PairRef,
    SearchResult,
)
from labour_ledger.models.wage import (
    CustomWage,
    LedgerAdjustment,
    Payment,
    PaymentAllocation,
    ProductionWageData,
    TransactionType,
    WageCalculation,
    WageDistribution,
    WageEntry,
    WageShare,
    WageSummary,
    WageType,
)

__all__ = [
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Common
    "MONEY_QUANTUM",
    "ZERO",
    "ValidationIssue",
    "ValidationResult",
    "split_in_two",
    "to_money",
    "utc_now",
    # Labour models
    "Gender",
    "Labour",
    "LabourFilters",
    "LabourStats",
    "LabourStatus",
    "LinkedPair",
    "new_record_id",
    # Ledger models
    "EntityRef",
    "IndividualRef",
    "LedgerEntry",
    "LedgerEntryKind",
    "LedgerEntryType",
    "LedgerFilters",
    "LedgerResult",
    "LedgerSummary",
    "MemberBalance",
    "PairRef",
    "SearchResult",
    # Posting models
    "CustomWage",
    "LedgerAdjustment",
    "Payment",
    "PaymentAllocation",
    "ProductionWageData",
    "TransactionType",
    "WageCalculation",
    "WageDistribution",
    "WageEntry",
    "WageShare",
    "WageSummary",
    "WageType",
]
