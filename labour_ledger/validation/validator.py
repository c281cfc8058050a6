"""
Field-Level Validation

DESIGN DECISION: Validation collects EVERY violated rule before reporting.
A caller fixing a form should see all problems at once, never one at a
time.

Validators work on raw caller payloads (plain mappings), not on models:
a payload that pydantic would reject outright still has to produce a full
list of readable issues. Messages are complete sentences shown verbatim.

IMPORTANT: Validation NEVER silently fixes issues. Business rules that
need stored state (already linked, different organizations) are domain
checks in the registry, not here.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from labour_ledger.models.common import ValidationResult
from labour_ledger.models.labour import Gender, LabourStatus
from labour_ledger.models.wage import ProductionWageData

PROFILE_FIELDS = frozenset({
    "name", "gender", "status", "tags", "assigned_vehicle", "date_joined",
})

# Only update_balance and pair link/dissolve may touch these
PROTECTED_FIELDS = frozenset({
    "current_balance", "total_earned", "total_paid", "opening_balance",
    "linked_pair_id", "is_linked",
})


def as_decimal(value: Any) -> Optional[Decimal]:
    """Parse a number-like value; None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _enum_values(enum_cls) -> set[str]:
    return {member.value for member in enum_cls}


def _is_member(enum_cls, value: Any) -> bool:
    return getattr(value, "value", value) in _enum_values(enum_cls)


class LabourValidator:
    """
    Validates labour, wage and production payloads.

    Every method returns a ValidationResult holding all issues found.
    """

    def validate_create(self, data: Mapping[str, Any]) -> ValidationResult:
        result = ValidationResult(subject="labour_create")

        if _is_blank(data.get("name")):
            result.add("name", "missing", "Name is required.")

        if not _is_member(Gender, data.get("gender")):
            result.add("gender", "invalid_value", "A valid gender (Male or Female) is required.")

        if _is_blank(data.get("org_id")):
            result.add("org_id", "missing", "Organization ID is required.")

        tags = data.get("tags", [])
        if not isinstance(tags, (list, tuple)):
            result.add("tags", "invalid_type", "Tags must be a list.")

        if "status" in data and not _is_member(LabourStatus, data["status"]):
            result.add("status", "invalid_value", "Status must be Active or Inactive.")

        opening = data.get("opening_balance")
        if opening is not None:
            amount = as_decimal(opening)
            if amount is None or amount < 0:
                result.add(
                    "opening_balance",
                    "invalid_value",
                    "Opening balance must be a non-negative number.",
                )

        self._check_date(result, data, "date_joined", "Date joined")
        return result

    def validate_update(self, data: Mapping[str, Any]) -> ValidationResult:
        """Same rules as create, applied only to the supplied fields."""
        result = ValidationResult(subject="labour_update")

        for field in data:
            if field in PROTECTED_FIELDS:
                result.add(
                    field,
                    "not_allowed",
                    f"{field} cannot be changed directly; balances and links move only "
                    "through balance updates and pair operations.",
                )
            elif field not in PROFILE_FIELDS:
                result.add(field, "not_allowed", f"{field} is not an updatable labour field.")

        if "name" in data and _is_blank(data["name"]):
            result.add("name", "invalid_value", "Name cannot be empty.")

        if "gender" in data and not _is_member(Gender, data["gender"]):
            result.add("gender", "invalid_value", "Gender must be Male or Female.")

        if "status" in data and not _is_member(LabourStatus, data["status"]):
            result.add("status", "invalid_value", "Status must be Active or Inactive.")

        if "tags" in data and not isinstance(data["tags"], (list, tuple)):
            result.add("tags", "invalid_type", "Tags must be a list.")

        self._check_date(result, data, "date_joined", "Date joined")
        return result

    def validate_production_wage(self, data: ProductionWageData) -> ValidationResult:
        result = ValidationResult(subject="production_wage")

        if data.batch_number is not None and not data.batch_number.strip():
            result.add("batch_number", "missing", "Batch number is required.")

        if data.production_units is None or data.production_units <= 0:
            result.add("production_units", "invalid_value", "Production units must be greater than 0.")

        if data.thappi_units < 0:
            result.add("thappi_units", "invalid_value", "Thappi units cannot be negative.")

        if data.wage_per_1000_units is None or data.wage_per_1000_units <= 0:
            result.add(
                "wage_per_1000_units", "invalid_value", "Wage per 1000 units must be greater than 0."
            )

        if data.wage_per_thappi is None or data.wage_per_thappi <= 0:
            result.add("wage_per_thappi", "invalid_value", "Wage per thappi must be greater than 0.")

        if not data.labour_codes:
            result.add("labour_codes", "missing", "At least one labour must be selected.")

        if data.wage_date is None:
            result.add("wage_date", "missing", "Date is required.")

        return result

    @staticmethod
    def _check_date(result: ValidationResult, data: Mapping[str, Any], field: str, label: str) -> None:
        if field not in data or data[field] is None or isinstance(data[field], date):
            return
        try:
            date.fromisoformat(str(data[field]))
        except ValueError:
            result.add(field, "invalid_format", f"{label} must be a date (YYYY-MM-DD).")
