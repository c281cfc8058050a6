"""Validation package."""

from labour_ledger.validation.validator import (
    PROFILE_FIELDS,
    PROTECTED_FIELDS,
    LabourValidator,
    as_decimal,
)

__all__ = ["LabourValidator", "PROFILE_FIELDS", "PROTECTED_FIELDS", "as_decimal"]
