"""
Error Taxonomy

Every public operation either fully succeeds or raises one of these.
There is no "partial success with warnings" return shape.

- ValidationError: caller data breaks a field-level rule (lists ALL of them)
- DomainError: a business rule was violated (raised before any write)
- NotFoundError: a referenced worker, pair or ledger entity does not exist
- DatabaseError: the store adapter failed (carries the operation name)

Validation and domain messages are complete sentences so the UI can show
them verbatim. Database errors are shown as a generic failure and logged.
"""

from typing import Optional


class LabourLedgerError(Exception):
    """Base exception for the labour ledger core."""
    pass


class ValidationError(LabourLedgerError):
    """
    Caller-supplied data violates one or more field-level rules.

    Always carries every violated rule, never just the first.
    """

    def __init__(self, issues: list, message: Optional[str] = None):
        self.issues = list(issues)
        if message is None:
            messages = [getattr(issue, "message", str(issue)) for issue in self.issues]
            message = "Validation failed: " + "; ".join(messages)
        super().__init__(message)

    @property
    def messages(self) -> list[str]:
        return [getattr(issue, "message", str(issue)) for issue in self.issues]


class DomainError(LabourLedgerError):
    """A business-rule violation (already linked, linked worker delete, ...)."""
    pass


class LedgerConsistencyError(DomainError):
    """Ledger summary totals disagree with the running balance."""
    pass


class NotFoundError(LabourLedgerError):
    """Referenced entity does not exist."""

    def __init__(self, entity_type: str, entity_id: str, message: Optional[str] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type.replace('_', ' ').capitalize()} not found: {entity_id}")


class DatabaseError(LabourLedgerError):
    """
    The store adapter failed.

    The core never retries; retry policy belongs to the caller or the
    backend itself.
    """

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)
