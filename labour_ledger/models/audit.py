"""
Audit Models for Labour Ledger

Every mutation of workers, pairs, balances and wage postings is logged.
This provides:
1. Traceability of every balance movement
2. Debugging information when a multi-write sequence fails halfway
3. Accountability for manual operations

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from labour_ledger.models.common import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Labour lifecycle
    LABOUR_CREATED = "labour_created"
    LABOUR_UPDATED = "labour_updated"
    LABOUR_DELETED = "labour_deleted"

    # Linking
    PAIR_LINKED = "pair_linked"
    PAIR_DISSOLVED = "pair_dissolved"

    # Money
    BALANCE_UPDATED = "balance_updated"
    WAGES_POSTED = "wages_posted"
    WAGE_PAYMENT_PROCESSED = "wage_payment_processed"
    WAGE_REVERSED = "wage_reversed"

    # Read side
    LEDGER_BUILT = "ledger_built"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    DOMAIN_RULE_VIOLATED = "domain_rule_violated"
    PARTIAL_WRITE = "partial_write"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'labour', 'linked_pair', 'wage_entry')"
    )
    entity_id: Optional[str] = None
    org_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "org_id": self.org_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         org_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.org_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.labour_created(labour_id, code, org_id)
        event = AuditEventBuilder.pair_dissolved(pair_id, org_id, balances)
    """

    @staticmethod
    def labour_created(
        labour_id: str,
        labour_code: str,
        org_id: str,
        opening_balance: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LABOUR_CREATED,
            entity_type="labour",
            entity_id=labour_id,
            org_id=org_id,
            description=f"Labour created: {labour_code}",
            details={
                "labour_code": labour_code,
                "opening_balance": opening_balance,
            },
        )

    @staticmethod
    def labour_updated(labour_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LABOUR_UPDATED,
            entity_type="labour",
            entity_id=labour_id,
            description=f"Labour updated: {', '.join(fields)}",
            details={"fields": fields},
        )

    @staticmethod
    def labour_deleted(labour_id: str, org_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LABOUR_DELETED,
            entity_type="labour",
            entity_id=labour_id,
            org_id=org_id,
            description="Labour deleted",
        )

    @staticmethod
    def pair_linked(
        pair_id: str,
        org_id: str,
        labour1_id: str,
        labour2_id: str,
        shared_balance: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAIR_LINKED,
            entity_type="linked_pair",
            entity_id=pair_id,
            org_id=org_id,
            description=f"Linked pair created with shared balance {shared_balance}",
            details={
                "labour1_id": labour1_id,
                "labour2_id": labour2_id,
                "shared_balance": shared_balance,
            },
        )

    @staticmethod
    def pair_dissolved(
        pair_id: str,
        org_id: str,
        balances: dict[str, str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAIR_DISSOLVED,
            entity_type="linked_pair",
            entity_id=pair_id,
            org_id=org_id,
            description="Linked pair dissolved",
            details={"member_balances": balances},
        )

    @staticmethod
    def balance_updated(
        entity_type: str,
        entity_id: str,
        delta: str,
        reason: Optional[str],
        labour_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Balance changed by {delta}",
            details={
                "delta": delta,
                "reason": reason or "No reason provided",
                "labour_id": labour_id,
            },
        )

    @staticmethod
    def wages_posted(
        org_id: str,
        method: str,
        entry_ids: list[str],
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WAGES_POSTED,
            entity_type="wage_entry",
            org_id=org_id,
            correlation_id=correlation_id,
            description=f"{len(entry_ids)} wage entries posted ({method})",
            details={
                "method": method,
                "entry_ids": entry_ids,
                "total": total,
            },
        )

    @staticmethod
    def wage_payment_processed(
        per_worker: dict[str, str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WAGE_PAYMENT_PROCESSED,
            entity_type="labour",
            correlation_id=correlation_id,
            description=f"Wage payment applied to {len(per_worker)} workers",
            details={"per_worker": per_worker},
        )

    @staticmethod
    def wage_reversed(
        wage_entry_id: str,
        labour_id: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WAGE_REVERSED,
            severity=AuditSeverity.WARNING,
            entity_type="wage_entry",
            entity_id=wage_entry_id,
            description=f"Wage entry reversed: {amount}",
            details={"labour_id": labour_id, "amount": amount},
        )

    @staticmethod
    def ledger_built(
        entity_kind: str,
        entity_id: str,
        entry_count: int,
        closing_balance: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_BUILT,
            severity=AuditSeverity.DEBUG,
            entity_type=entity_kind,
            entity_id=entity_id,
            description=f"Ledger built with {entry_count} lines",
            details={"closing_balance": closing_balance},
        )

    @staticmethod
    def validation_failed(
        subject: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=subject,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def domain_rule_violated(
        operation: str,
        message: str,
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOMAIN_RULE_VIOLATED,
            severity=AuditSeverity.WARNING,
            entity_id=entity_id,
            description=f"{operation} rejected",
            error_message=message,
            details={"operation": operation},
        )

    @staticmethod
    def partial_write(
        operation: str,
        entity_id: str,
        applied: list[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTIAL_WRITE,
            severity=AuditSeverity.CRITICAL,
            entity_id=entity_id,
            description=f"{operation} failed after {len(applied)} writes; re-verify before retrying",
            error_message=error_message,
            details={"operation": operation, "applied_writes": applied},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
