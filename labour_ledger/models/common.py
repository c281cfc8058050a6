"""
Shared model primitives: money handling, timestamps and validation results.

DESIGN DECISION: Money is always Decimal rupees. Computed amounts are
quantized to paise before they are posted so that every stored figure
is exactly representable.
"""

from datetime import datetime, timezone
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal
from typing import Optional

from pydantic import BaseModel, Field

MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0")


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def to_money(value, rounding: str = ROUND_HALF_EVEN) -> Decimal:
    """Convert a number to Decimal rupees quantized to paise."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANTUM, rounding=rounding)


def split_in_two(amount: Decimal) -> tuple[Decimal, Decimal]:
    """
    Split an amount into two paise-exact halves.

    The second half is rounded toward zero; the first takes the remainder,
    so the odd paisa always goes to the first share and the sum is exact.
    """
    whole = to_money(amount)
    second = (whole / 2).quantize(MONEY_QUANTUM, rounding=ROUND_DOWN)
    return whole - second, second


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'not_allowed')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one payload. Holds every issue, not just the first."""

    subject: str = Field(
        ...,
        description="What was validated (e.g. 'labour_create')"
    )
    validated_at: datetime = Field(default_factory=utc_now)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    def add(
        self,
        field: str,
        issue_type: str,
        message: str,
        severity: str = "error",
    ) -> None:
        self.issues.append(ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
            severity=severity,
        ))

    def first_message(self) -> Optional[str]:
        return self.issues[0].message if self.issues else None
