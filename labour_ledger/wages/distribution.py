"""
Wage Distribution Engine

Turns a gross amount, a list of caller-specified amounts, or a production
computation into per-worker WageEntry postings, and applies posted wages
to balances through LabourRegistry.update_balance.

Every entry point validates completely (amounts, codes, worker lookups)
before the first write, so a rejected request never leaves a partial set
of postings behind.
"""

import asyncio
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence, Union

import structlog

from labour_ledger.audit import AuditLogger, create_correlation_id
from labour_ledger.errors import DomainError, NotFoundError, ValidationError
from labour_ledger.models.common import ZERO, ValidationIssue, ValidationResult, to_money
from labour_ledger.models.labour import Labour
from labour_ledger.models.wage import (
    CustomWage,
    LedgerAdjustment,
    ProductionWageData,
    TransactionType,
    WageCalculation,
    WageDistribution,
    WageEntry,
    WageShare,
    WageSummary,
    WageType,
)
from labour_ledger.registry import LabourRegistry, apply_in_order
from labour_ledger.validation import LabourValidator, as_decimal

logger = structlog.get_logger(__name__)

INDIVIDUAL_DESCRIPTION = "Individual wage payment"
LINKED_DESCRIPTION = "Linked pair wage payment (shared)"
CUSTOM_DESCRIPTION = "Production wage payment"
PERCENT_TOLERANCE = Decimal("0.01")


# =============================================================================
# PURE CALCULATIONS
# =============================================================================

def calculate_equal_distribution(total_wage: Decimal, labour_codes: Sequence[str]) -> WageDistribution:
    if not labour_codes:
        raise ValidationError([ValidationIssue(
            field="labour_codes", issue_type="missing", message="At least one labour must be selected.",
        )])
    per_worker = to_money(Decimal(total_wage) / len(labour_codes))
    return WageDistribution(
        method="equal",
        total_wage=total_wage,
        distributions=[WageShare(labour_code=code, amount=per_worker) for code in labour_codes],
    )


def calculate_percentage_distribution(
    total_wage: Decimal,
    percentages: Sequence[tuple[str, Decimal]],
) -> WageDistribution:
    """Split by percentage; the percentages must add up to 100."""
    total_percentage = sum((Decimal(pct) for _, pct in percentages), ZERO)
    if abs(total_percentage - 100) > PERCENT_TOLERANCE:
        raise ValidationError([ValidationIssue(
            field="percentages",
            issue_type="invalid_value",
            message=f"Percentages must sum to 100% (got {total_percentage}%).",
        )])

    return WageDistribution(
        method="percentage",
        total_wage=total_wage,
        distributions=[
            WageShare(
                labour_code=code,
                amount=to_money(Decimal(total_wage) * Decimal(pct) / 100),
                percentage=Decimal(pct),
            )
            for code, pct in percentages
        ],
    )


def calculate_custom_distribution(wages: Sequence[CustomWage]) -> WageDistribution:
    return WageDistribution(
        method="custom",
        total_wage=sum((wage.amount for wage in wages), ZERO),
        distributions=[WageShare(labour_code=w.labour_code, amount=w.amount) for w in wages],
    )


def calculate_production_wage(
    data: ProductionWageData,
    validator: Optional[LabourValidator] = None,
) -> WageCalculation:
    """
    total = units * rate_per_1000 / 1000 + thappi * rate_per_thappi / 1000,
    split equally over the listed workers. Pure; no I/O.

    Raises:
        ValidationError: listing every problem with the inputs
    """
    result = (validator or LabourValidator()).validate_production_wage(data)
    if result.has_errors:
        raise ValidationError(result.errors)

    production_wage = data.production_units * data.wage_per_1000_units / 1000
    thappi_wage = data.thappi_units * data.wage_per_thappi / 1000
    total_wage = to_money(production_wage + thappi_wage)
    per_worker = to_money(total_wage / len(data.labour_codes))

    return WageCalculation(
        total_wage=total_wage,
        per_worker_wage=per_worker,
        distributions=[WageShare(labour_code=code, amount=per_worker) for code in data.labour_codes],
    )


# =============================================================================
# ENGINE
# =============================================================================

class WageDistributionEngine:
    """
    Posts wages and applies them to balances.

    Distribution methods return the posted entries; they do not move
    balances. Call process_wage_payment with the returned entries to
    bring current balances in line with the ledger.
    """

    def __init__(
        self,
        registry: LabourRegistry,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LabourValidator] = None,
    ):
        self._registry = registry
        self._adapter = registry.adapter
        self._audit_logger = audit_logger
        self._validator = validator or LabourValidator()

    async def _fail_validation(self, result: ValidationResult) -> ValidationError:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(result.subject, result.errors)
        return ValidationError(result.errors)

    async def _resolve_codes(
        self,
        labour_codes: Sequence[str],
        org_id: Optional[str] = None,
    ) -> dict[str, Labour]:
        unique = list(OrderedDict.fromkeys(labour_codes))
        matches = await asyncio.gather(
            *(self._adapter.find_labours_by_code(code, org_id) for code in unique)
        )
        missing = [code for code, found in zip(unique, matches) if not found]
        if missing:
            raise NotFoundError(
                "labour",
                ", ".join(missing),
                f"Some selected labours were not found: {', '.join(missing)}",
            )
        ambiguous = [code for code, found in zip(unique, matches) if len(found) > 1]
        if ambiguous:
            raise DomainError(
                f"Labour codes used in more than one organization: {', '.join(ambiguous)}; "
                "pass org_id to choose one."
            )
        return {code: found[0] for code, found in zip(unique, matches)}

    async def _post(self, operation: str, entries: list[WageEntry], method: str) -> list[WageEntry]:
        org_ids = {entry.org_id for entry in entries}
        if len(org_ids) > 1:
            raise DomainError("Cannot post wages across different organizations in one distribution.")

        await apply_in_order(
            operation,
            org_ids.pop(),
            [
                (f"wage entry {entry.id}", lambda entry=entry: self._adapter.create_wage_entry(entry))
                for entry in entries
            ],
            self._audit_logger,
        )

        total = sum((entry.amount for entry in entries), ZERO)
        logger.info("wages_posted", method=method, count=len(entries), total=str(total))
        if self._audit_logger:
            await self._audit_logger.log_wages_posted(
                org_id=entries[0].org_id,
                method=method,
                entry_ids=[entry.id for entry in entries],
                total=str(total),
            )
        return entries

    async def distribute_equal_wage(
        self,
        total_amount: Union[Decimal, int, str],
        labour_codes: Sequence[str],
        wage_type: WageType = WageType.PRODUCTION,
        wage_date: Optional[date] = None,
        org_id: Optional[str] = None,
    ) -> list[WageEntry]:
        """
        Post total_amount / len(labour_codes) to every listed worker.

        The per-head amount ignores pairing; linked workers only get a
        different description. A code listed twice is paid twice. org_id
        restricts code lookup to one organization.
        """
        result = ValidationResult(subject="equal_wage")
        total = as_decimal(total_amount)
        if not labour_codes:
            result.add("labour_codes", "missing", "No labours selected for wage distribution.")
        if total is None or total <= 0:
            result.add("total_amount", "invalid_value", "Total wage must be greater than 0.")
        if result.has_errors:
            raise await self._fail_validation(result)

        labours = await self._resolve_codes(labour_codes, org_id)
        distribution = calculate_equal_distribution(total, labour_codes)
        wage_date = wage_date or date.today()

        individual: list[WageEntry] = []
        by_pair: dict[str, list[WageEntry]] = OrderedDict()
        for share in distribution.distributions:
            labour = labours[share.labour_code]
            entry = WageEntry(
                org_id=labour.org_id,
                labour_id=labour.id,
                amount=share.amount,
                description=LINKED_DESCRIPTION if labour.is_linked else INDIVIDUAL_DESCRIPTION,
                wage_type=wage_type,
                wage_date=wage_date,
            )
            if labour.is_linked:
                by_pair.setdefault(labour.linked_pair_id, []).append(entry)
            else:
                individual.append(entry)

        entries = individual + [entry for group in by_pair.values() for entry in group]
        return await self._post("distribute_equal_wage", entries, "equal")

    async def distribute_custom_wage(
        self,
        wages: Iterable[Union[CustomWage, Mapping]],
        wage_type: WageType = WageType.PRODUCTION,
        wage_date: Optional[date] = None,
        org_id: Optional[str] = None,
    ) -> list[WageEntry]:
        """Post caller-specified amounts as given; nothing is recomputed."""
        items = list(wages)
        result = ValidationResult(subject="custom_wage")
        if not items:
            result.add("wages", "missing", "No wage distributions provided.")

        parsed: list[tuple[str, Optional[Decimal]]] = []
        for index, item in enumerate(items):
            if isinstance(item, CustomWage):
                code, raw = item.labour_code, item.amount
            else:
                code, raw = item.get("labour_code"), item.get("amount")
            amount = as_decimal(raw)
            if not code:
                result.add(f"wages[{index}].labour_code", "missing", f"Wage #{index + 1} has no labour code.")
            if amount is None or amount <= 0:
                result.add(
                    f"wages[{index}].amount",
                    "invalid_value",
                    f"Invalid wage amount for labour {code or index + 1}: {raw}.",
                )
            parsed.append((code, amount))

        if result.has_errors:
            raise await self._fail_validation(result)

        labours = await self._resolve_codes([code for code, _ in parsed], org_id)
        wage_date = wage_date or date.today()
        entries = [
            WageEntry(
                org_id=labours[code].org_id,
                labour_id=labours[code].id,
                amount=amount,
                description=CUSTOM_DESCRIPTION,
                wage_type=wage_type,
                wage_date=wage_date,
            )
            for code, amount in parsed
        ]
        return await self._post("distribute_custom_wage", entries, "custom")

    async def post_production_wage(self, data: ProductionWageData) -> list[WageEntry]:
        """Compute a production wage and post it with the batch linkage filled in."""
        result = self._validator.validate_production_wage(data)
        if result.has_errors:
            raise await self._fail_validation(result)

        calculation = calculate_production_wage(data, self._validator)
        labours = await self._resolve_codes(data.labour_codes, data.org_id)

        description = f"Production wage - batch {data.batch_number}" if data.batch_number else CUSTOM_DESCRIPTION
        entries = [
            WageEntry(
                org_id=labours[share.labour_code].org_id,
                labour_id=labours[share.labour_code].id,
                amount=share.amount,
                description=description,
                wage_type=WageType.PRODUCTION,
                wage_date=data.wage_date,
                production_entry_id=data.production_entry_id,
                batch_number=data.batch_number,
                production_units=data.production_units,
                thappi_units=data.thappi_units,
                wage_per_1000_units=data.wage_per_1000_units,
                wage_per_thappi=data.wage_per_thappi,
            )
            for share in calculation.distributions
        ]
        return await self._post("post_production_wage", entries, "production")

    async def process_wage_payment(self, entries: Sequence[WageEntry]) -> dict[str, Decimal]:
        """
        Apply posted wages to balances.

        Entries are summed per worker and update_balance runs once per
        worker with the aggregate, never once per entry.

        Returns:
            labour_id -> amount applied
        """
        if not entries:
            raise ValidationError([ValidationIssue(
                field="entries", issue_type="missing", message="No wage entries to process.",
            )])

        per_worker: dict[str, Decimal] = OrderedDict()
        for entry in entries:
            per_worker[entry.labour_id] = per_worker.get(entry.labour_id, ZERO) + entry.amount

        correlation_id = create_correlation_id()
        await apply_in_order(
            "process_wage_payment",
            ",".join(per_worker),
            [
                (
                    f"balance {labour_id}",
                    lambda labour_id=labour_id, amount=amount: self._registry.update_balance(
                        labour_id, amount, "Wage payment"
                    ),
                )
                for labour_id, amount in per_worker.items()
            ],
            self._audit_logger,
        )

        if self._audit_logger:
            await self._audit_logger.log_wage_payment_processed(
                {labour_id: str(amount) for labour_id, amount in per_worker.items()},
                correlation_id,
            )
        return dict(per_worker)

    async def reverse_wage_entry(self, wage_entry_id: str) -> LedgerAdjustment:
        """
        Undo a wage posting without deleting it.

        Records a compensating debit adjustment (category "adjustment")
        and moves the balance back through update_balance.
        """
        entry = await self._adapter.get_wage_entry(wage_entry_id)
        if entry is None:
            raise NotFoundError("wage_entry", wage_entry_id, f"Wage entry not found: {wage_entry_id}")

        existing = await self._adapter.list_adjustments(org_id=entry.org_id, labour_id=entry.labour_id)
        if any(adj.reference_id == entry.id and adj.category == "adjustment" for adj in existing):
            raise DomainError(f"Wage entry {wage_entry_id} has already been reversed.")

        adjustment = LedgerAdjustment(
            org_id=entry.org_id,
            labour_id=entry.labour_id,
            transaction_type=TransactionType.DEBIT,
            amount=entry.amount,
            description=f"Reversal: {entry.description}",
            category="adjustment",
            reference_id=entry.id,
            adjustment_date=date.today(),
        )
        await apply_in_order("reverse_wage_entry", wage_entry_id, [
            ("compensating adjustment", lambda: self._adapter.create_adjustment(adjustment)),
            ("balance", lambda: self._registry.update_balance(entry.labour_id, -entry.amount, "Wage reversal")),
        ], self._audit_logger)

        if self._audit_logger:
            await self._audit_logger.log_wage_reversed(wage_entry_id, entry.labour_id, str(entry.amount))
        return adjustment

    async def get_labour_wage_summary(
        self,
        labour_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> WageSummary:
        labour = await self._registry.get_labour(labour_id)
        entries = await self._adapter.list_wage_entries(
            [labour.id], org_id=labour.org_id, date_from=date_from, date_to=date_to,
        )

        if not entries:
            return WageSummary(labour_id=labour_id)

        total = sum((entry.amount for entry in entries), ZERO)
        return WageSummary(
            labour_id=labour_id,
            total_earned=total,
            total_entries=len(entries),
            average_wage=to_money(total / len(entries)),
            last_wage_date=max(entry.wage_date for entry in entries),
        )
