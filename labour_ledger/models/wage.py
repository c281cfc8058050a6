"""
Posting Models

WageEntry, Payment and LedgerAdjustment are the source-of-truth event log.
They are created once and never modified or deleted in normal operation;
the ledger is re-derived from them on every request.

- WageEntry: earned wages (always a credit, amount > 0)
- Payment: money paid out, either allocated per worker or scoped to a
  linked-pair account (always a debit)
- LedgerAdjustment: manual expense-style posting, credit or debit by its
  own transaction_type flag
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from labour_ledger.models.common import ZERO, utc_now
from labour_ledger.models.labour import new_record_id


class WageType(str, Enum):
    PRODUCTION = "production"
    OVERTIME = "overtime"
    BONUS = "bonus"
    PENALTY = "penalty"
    ADJUSTMENT = "adjustment"


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class WageEntry(BaseModel):
    """An immutable credit posting representing earned wages."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id)
    org_id: str = Field(..., min_length=1)
    labour_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=500)
    wage_type: WageType = WageType.PRODUCTION
    wage_date: date = Field(default_factory=date.today)

    # Optional production linkage
    production_entry_id: Optional[str] = None
    batch_number: Optional[str] = None
    production_units: Optional[Decimal] = None
    thappi_units: Optional[Decimal] = None
    wage_per_1000_units: Optional[Decimal] = None
    wage_per_thappi: Optional[Decimal] = None

    created_at: datetime = Field(default_factory=utc_now)


class PaymentAllocation(BaseModel):
    """One worker's share of a payment event."""
    model_config = ConfigDict(frozen=True)

    labour_id: str = Field(..., min_length=1)
    labour_name: str = ""
    amount: Decimal = Field(..., gt=0)


class Payment(BaseModel):
    """
    Money paid out.

    Either allocated across workers (allocations) or scoped directly to a
    linked-pair account (pair_id). An individual's ledger uses the
    per-allocation amount; a pair's ledger uses total_amount.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id)
    org_id: str = Field(..., min_length=1)
    pair_id: Optional[str] = None
    total_amount: Decimal = Field(..., gt=0)
    payment_date: date = Field(default_factory=date.today)
    remarks: str = ""
    allocations: list[PaymentAllocation] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_scope(self) -> 'Payment':
        if not self.pair_id and not self.allocations:
            raise ValueError("Payment needs a pair account or at least one allocation")
        return self

    def allocation_for(self, labour_id: str) -> Optional[PaymentAllocation]:
        for allocation in self.allocations:
            if allocation.labour_id == labour_id:
                return allocation
        return None


class LedgerAdjustment(BaseModel):
    """Manual posting scoped to exactly one worker or one pair account."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id)
    org_id: str = Field(..., min_length=1)
    labour_id: Optional[str] = None
    pair_id: Optional[str] = None
    transaction_type: TransactionType
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Magnitude; the direction comes from transaction_type"
    )
    description: str = ""
    category: str = "expense"
    reference_id: Optional[str] = None
    adjustment_date: date = Field(default_factory=date.today)
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_scope(self) -> 'LedgerAdjustment':
        if bool(self.labour_id) == bool(self.pair_id):
            raise ValueError("Adjustment must be scoped to exactly one worker or one pair")
        return self

    @property
    def signed_amount(self) -> Decimal:
        if self.transaction_type == TransactionType.CREDIT:
            return self.amount
        return -self.amount


# =============================================================================
# DISTRIBUTION MODELS
# =============================================================================

class WageShare(BaseModel):
    labour_code: str
    amount: Decimal
    percentage: Optional[Decimal] = None


class CustomWage(BaseModel):
    """Caller-specified amount for one worker; not recomputed."""

    labour_code: str
    amount: Decimal


class WageDistribution(BaseModel):
    method: str = Field(..., pattern="^(equal|percentage|custom)$")
    total_wage: Decimal
    distributions: list[WageShare] = Field(default_factory=list)


class ProductionWageData(BaseModel):
    """
    Inputs for a production wage computation.

    Fields are deliberately loose; LabourValidator reports every problem at once.
    """

    batch_number: Optional[str] = None
    production_units: Optional[Decimal] = None
    thappi_units: Decimal = ZERO
    wage_per_1000_units: Optional[Decimal] = None
    wage_per_thappi: Optional[Decimal] = None
    labour_codes: list[str] = Field(default_factory=list)
    wage_date: Optional[date] = None
    production_entry_id: Optional[str] = None
    org_id: Optional[str] = Field(None, description="Scope for resolving labour codes")


class WageCalculation(BaseModel):
    total_wage: Decimal
    per_worker_wage: Decimal
    distributions: list[WageShare] = Field(default_factory=list)


class WageSummary(BaseModel):
    labour_id: str
    total_earned: Decimal = ZERO
    total_entries: int = 0
    average_wage: Decimal = ZERO
    last_wage_date: Optional[date] = None
