"""
Audit Logger

DESIGN DECISION: Every mutation of workers, pairs and balances is logged.
This provides:
1. Traceability of every balance movement
2. A record of which writes landed when a multi-write sequence fails
3. Accountability for manual operations

The audit logger:
- Always logs locally through structlog
- Optionally persists to an AuditStorageInterface
- Never lets a persistence failure break the main flow
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from labour_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from labour_ledger.models.common import ValidationIssue
from labour_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for operators)
    2. Audit storage, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("labour_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_labour_created(
        self,
        labour_id: str,
        labour_code: str,
        org_id: str,
        opening_balance: str,
    ) -> None:
        await self.log(AuditEventBuilder.labour_created(
            labour_id=labour_id,
            labour_code=labour_code,
            org_id=org_id,
            opening_balance=opening_balance,
        ))

    async def log_labour_updated(self, labour_id: str, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.labour_updated(labour_id, fields))

    async def log_labour_deleted(self, labour_id: str, org_id: str) -> None:
        await self.log(AuditEventBuilder.labour_deleted(labour_id, org_id))

    async def log_pair_linked(
        self,
        pair_id: str,
        org_id: str,
        labour1_id: str,
        labour2_id: str,
        shared_balance: str,
    ) -> None:
        await self.log(AuditEventBuilder.pair_linked(
            pair_id=pair_id,
            org_id=org_id,
            labour1_id=labour1_id,
            labour2_id=labour2_id,
            shared_balance=shared_balance,
        ))

    async def log_pair_dissolved(self, pair_id: str, org_id: str, balances: dict[str, str]) -> None:
        await self.log(AuditEventBuilder.pair_dissolved(pair_id, org_id, balances))

    async def log_balance_updated(
        self,
        entity_type: str,
        entity_id: str,
        delta: str,
        reason: Optional[str],
        labour_id: str,
    ) -> None:
        await self.log(AuditEventBuilder.balance_updated(
            entity_type=entity_type,
            entity_id=entity_id,
            delta=delta,
            reason=reason,
            labour_id=labour_id,
        ))

    async def log_wages_posted(
        self,
        org_id: str,
        method: str,
        entry_ids: list[str],
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.wages_posted(
            org_id=org_id,
            method=method,
            entry_ids=entry_ids,
            total=total,
            correlation_id=correlation_id,
        ))

    async def log_wage_payment_processed(
        self,
        per_worker: dict[str, str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.wage_payment_processed(per_worker, correlation_id))

    async def log_wage_reversed(self, wage_entry_id: str, labour_id: str, amount: str) -> None:
        await self.log(AuditEventBuilder.wage_reversed(wage_entry_id, labour_id, amount))

    async def log_ledger_built(
        self,
        entity_kind: str,
        entity_id: str,
        entry_count: int,
        closing_balance: str,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_built(
            entity_kind=entity_kind,
            entity_id=entity_id,
            entry_count=entry_count,
            closing_balance=closing_balance,
        ))

    async def log_validation_failed(self, subject: str, issues: list[ValidationIssue]) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            subject=subject,
            issues=[issue.model_dump() for issue in issues],
        ))

    async def log_domain_rule_violated(
        self,
        operation: str,
        message: str,
        entity_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.domain_rule_violated(operation, message, entity_id))

    async def log_partial_write(
        self,
        operation: str,
        entity_id: str,
        applied: list[str],
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.partial_write(operation, entity_id, applied, error_message))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step action (e.g. post then apply wages)
    and pass it through all subsequent operations.
    """
    return uuid4()
