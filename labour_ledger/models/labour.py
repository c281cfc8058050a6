"""
Labour Models

A Labour is one worker with a running account balance. Two workers can be
merged into a LinkedPair (e.g. a married couple sharing wages); while
linked, all economic activity routes through the pair's shared balance.

INVARIANTS (enforced on every model instance):
- is_linked  => linked_pair_id is set and current_balance == 0
- not linked => linked_pair_id is absent
- a pair always has exactly two distinct members
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from labour_ledger.models.common import ZERO, utc_now


def new_record_id() -> str:
    return uuid4().hex


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class LabourStatus(str, Enum):
    """Active/Inactive is orthogonal to linking; any transition is allowed."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class Labour(BaseModel):
    """A worker record as persisted in the store."""
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: str = Field(
        default_factory=new_record_id,
        description="Internal identifier"
    )
    labour_code: str = Field(
        ...,
        min_length=1,
        description="Human-readable code like L349635"
    )
    org_id: str = Field(..., min_length=1)

    # Profile
    name: str = Field(..., min_length=1, max_length=200)
    gender: Gender
    status: LabourStatus = LabourStatus.ACTIVE
    tags: list[str] = Field(default_factory=list)
    assigned_vehicle: Optional[str] = None
    date_joined: date = Field(default_factory=date.today)

    # Money (Decimal rupees)
    current_balance: Decimal = ZERO
    total_earned: Decimal = ZERO
    total_paid: Decimal = ZERO
    opening_balance: Decimal = Field(default=ZERO, ge=0)

    # Linking
    linked_pair_id: Optional[str] = None
    is_linked: bool = False

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_link_state(self) -> 'Labour':
        if self.is_linked:
            if not self.linked_pair_id:
                raise ValueError("Linked labour must reference its linked pair")
            if self.current_balance != ZERO:
                raise ValueError("Linked labour balance must stay at zero")
        elif self.linked_pair_id:
            raise ValueError("Unlinked labour cannot reference a linked pair")
        return self

    @property
    def is_active(self) -> bool:
        return self.status == LabourStatus.ACTIVE


class LinkedPair(BaseModel):
    """Exactly two workers of one organization treated as one economic unit."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id)
    org_id: str = Field(..., min_length=1)
    labour1_id: str = Field(..., min_length=1)
    labour2_id: str = Field(..., min_length=1)
    name: str = Field(
        default="",
        description="Display name used by search, e.g. 'Ravi & Sita'"
    )
    status: LabourStatus = LabourStatus.ACTIVE
    shared_balance: Decimal = ZERO
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_members(self) -> 'LinkedPair':
        if self.labour1_id == self.labour2_id:
            raise ValueError("A linked pair needs two distinct members")
        return self

    @property
    def member_ids(self) -> tuple[str, str]:
        return (self.labour1_id, self.labour2_id)

    def partner_of(self, labour_id: str) -> str:
        if labour_id == self.labour1_id:
            return self.labour2_id
        if labour_id == self.labour2_id:
            return self.labour1_id
        raise ValueError(f"{labour_id} is not a member of pair {self.id}")


class LabourFilters(BaseModel):
    """In-memory filters for listing workers."""

    status: Optional[LabourStatus] = None
    tags: list[str] = Field(default_factory=list)
    is_linked: Optional[bool] = None
    search_term: Optional[str] = None


class LabourStats(BaseModel):
    """Headcount and balance figures for one organization."""

    total: int = 0
    active: int = 0
    inactive: int = 0
    linked: int = 0
    individual: int = 0
    total_balance: Decimal = ZERO
    average_balance: Decimal = ZERO
