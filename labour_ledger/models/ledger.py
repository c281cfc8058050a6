"""
Ledger Models

LedgerEntry and LedgerSummary are DERIVED: they exist only for the duration
of one ledger-construction call and are never persisted.

EntityRef is a tagged union resolved once at the top of a request:
    IndividualRef(labour) | PairRef(pair, members)
so downstream code never re-derives "is this linked?" branches.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from labour_ledger.models.common import ZERO
from labour_ledger.models.labour import Labour, LinkedPair


class LedgerEntryKind(str, Enum):
    OPENING = "opening"
    CREDIT = "credit"
    DEBIT = "debit"


class LedgerEntryType(str, Enum):
    """Credit/debit-only filter values."""
    ALL = "all"
    CREDITS = "credits"
    DEBITS = "debits"


# =============================================================================
# ENTITY REFERENCES
# =============================================================================

class IndividualRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["individual"] = "individual"
    labour: Labour

    @property
    def id(self) -> str:
        return self.labour.id

    @property
    def name(self) -> str:
        return self.labour.name

    @property
    def org_id(self) -> str:
        return self.labour.org_id

    @property
    def members(self) -> tuple[Labour, ...]:
        return (self.labour,)


class PairRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["pair"] = "pair"
    pair: LinkedPair
    member1: Labour
    member2: Labour

    @property
    def id(self) -> str:
        return self.pair.id

    @property
    def name(self) -> str:
        return self.pair.name or f"{self.member1.name} & {self.member2.name}"

    @property
    def org_id(self) -> str:
        return self.pair.org_id

    @property
    def members(self) -> tuple[Labour, ...]:
        return (self.member1, self.member2)


EntityRef = Annotated[Union[IndividualRef, PairRef], Field(discriminator="kind")]


# =============================================================================
# LEDGER LINES AND SUMMARY
# =============================================================================

class LedgerEntry(BaseModel):
    """
    One normalized ledger line.

    amount is signed: credits positive, debits negative. The opening
    line's running_balance equals its own amount.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    entry_date: date
    kind: LedgerEntryKind
    description: str
    amount: Decimal
    running_balance: Decimal = ZERO
    member: Optional[str] = None
    category: Optional[str] = None
    reference_id: Optional[str] = None


class LedgerFilters(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    category: Optional[str] = None
    entry_type: LedgerEntryType = LedgerEntryType.ALL

    @model_validator(mode='after')
    def validate_range(self) -> 'LedgerFilters':
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("Date-to cannot be before date-from")
        return self


class MemberBalance(BaseModel):
    labour_id: str
    labour_name: str
    opening_balance: Decimal = ZERO
    total_credits: Decimal = ZERO
    total_debits: Decimal = ZERO
    closing_balance: Decimal = ZERO
    debit_split_policy: str = "even"


class LedgerSummary(BaseModel):
    """closing_balance == opening_balance + total_credits - total_debits, exactly."""

    opening_balance: Decimal = ZERO
    total_credits: Decimal = ZERO
    total_debits: Decimal = ZERO
    closing_balance: Decimal = ZERO
    member_breakdown: Optional[list[MemberBalance]] = None


class LedgerResult(BaseModel):
    entity_kind: Literal["individual", "pair"]
    entity_id: str
    entity_name: str
    entries: list[LedgerEntry] = Field(default_factory=list)
    summary: LedgerSummary


# =============================================================================
# SEARCH
# =============================================================================

class SearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["worker", "pair"]
    id: str
    name: str
    description: str = ""
    score: int = Field(..., ge=0, le=100)
