"""
Pure ledger assembly.

    (entity, wage entries, payments, adjustments, filters) -> LedgerResult

No I/O happens here; LedgerBuilder gathers the postings and hands them in.
The same inputs always produce the same entries and summary.

Line signs:
- WageEntry           -> credit, +amount
- Payment             -> debit, -allocation (individual) or -total (pair)
- LedgerAdjustment    -> credit or debit by its own transaction_type

With a date_from filter the opening line carries the balance brought
forward (base opening plus every earlier line), so running balances inside
the window match those of the unfiltered ledger.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from labour_ledger.errors import LedgerConsistencyError
from labour_ledger.models.common import ZERO, split_in_two
from labour_ledger.models.labour import Labour
from labour_ledger.models.ledger import (
    EntityRef,
    LedgerEntry,
    LedgerEntryKind,
    LedgerEntryType,
    LedgerFilters,
    LedgerResult,
    LedgerSummary,
    MemberBalance,
    PairRef,
)
from labour_ledger.models.wage import LedgerAdjustment, Payment, WageEntry

OPENING_ENTRY_ID = "opening"
OPENING_DESCRIPTION = "Opening balance"
BROUGHT_FORWARD_DESCRIPTION = "Balance brought forward"


@dataclass(frozen=True)
class _Line:
    entry: LedgerEntry
    member_id: Optional[str]


def _opening_date(members: Sequence[Labour]) -> date:
    return min(min(m.date_joined, m.created_at.date()) for m in members)


def _collect_lines(
    entity: EntityRef,
    wage_entries: Sequence[WageEntry],
    payments: Sequence[Payment],
    adjustments: Sequence[LedgerAdjustment],
) -> list[_Line]:
    members = {m.id: m for m in entity.members}
    is_pair = isinstance(entity, PairRef)
    lines: list[_Line] = []

    for wage in wage_entries:
        if wage.labour_id not in members:
            continue
        lines.append(_Line(
            entry=LedgerEntry(
                id=wage.id,
                entry_date=wage.wage_date,
                kind=LedgerEntryKind.CREDIT,
                description=wage.description,
                amount=wage.amount,
                member=members[wage.labour_id].name,
                category=wage.wage_type.value,
                reference_id=wage.production_entry_id or wage.batch_number,
            ),
            member_id=wage.labour_id,
        ))

    for payment in payments:
        if is_pair:
            if payment.pair_id != entity.id:
                continue
            amount = payment.total_amount
        else:
            allocation = payment.allocation_for(entity.id)
            if allocation is None:
                continue
            amount = allocation.amount
        lines.append(_Line(
            entry=LedgerEntry(
                id=payment.id,
                entry_date=payment.payment_date,
                kind=LedgerEntryKind.DEBIT,
                description=payment.remarks or "Payment",
                amount=-amount,
                member=None if is_pair else entity.name,
                category="payment",
            ),
            member_id=None if is_pair else entity.id,
        ))

    for adjustment in adjustments:
        if adjustment.labour_id in members:
            member_id = adjustment.labour_id
        elif is_pair and adjustment.pair_id == entity.id:
            member_id = None
        else:
            continue
        is_credit = adjustment.signed_amount > 0
        lines.append(_Line(
            entry=LedgerEntry(
                id=adjustment.id,
                entry_date=adjustment.adjustment_date,
                kind=LedgerEntryKind.CREDIT if is_credit else LedgerEntryKind.DEBIT,
                description=adjustment.description or adjustment.category.capitalize(),
                amount=adjustment.signed_amount,
                member=members[member_id].name if member_id else None,
                category=adjustment.category,
                reference_id=adjustment.reference_id,
            ),
            member_id=member_id,
        ))

    return lines


def _passes_kind_filters(line: _Line, filters: LedgerFilters) -> bool:
    entry = line.entry
    if filters.category and entry.category != filters.category:
        return False
    if filters.entry_type == LedgerEntryType.CREDITS and entry.kind != LedgerEntryKind.CREDIT:
        return False
    if filters.entry_type == LedgerEntryType.DEBITS and entry.kind != LedgerEntryKind.DEBIT:
        return False
    return True


def _attribute(
    lines: list[_Line],
    member_ids: list[str],
    kind: Optional[LedgerEntryKind] = None,
) -> list[Decimal]:
    """
    Sum line amounts per member.

    Lines carrying a member (own wage entries, member-scoped adjustments)
    count for that member. Shared lines (pair payments, pair-scoped
    adjustments) are split evenly; member 1 takes any odd paisa.
    """
    own = {member_id: ZERO for member_id in member_ids}
    shared = ZERO
    for line in lines:
        if kind is not None and line.entry.kind != kind:
            continue
        if line.member_id in own:
            own[line.member_id] += line.entry.amount
        else:
            shared += line.entry.amount

    first, second = split_in_two(shared)
    return [own[member_ids[0]] + first, own[member_ids[1]] + second]


def _member_breakdown(
    entity: PairRef,
    brought_forward: list[_Line],
    window: list[_Line],
) -> list[MemberBalance]:
    member_ids = [entity.member1.id, entity.member2.id]
    forward = _attribute(brought_forward, member_ids)
    credits = _attribute(window, member_ids, LedgerEntryKind.CREDIT)
    debits = _attribute(window, member_ids, LedgerEntryKind.DEBIT)

    breakdown = []
    for index, member in enumerate(entity.members):
        opening = member.opening_balance + forward[index]
        total_debits = -debits[index]
        breakdown.append(MemberBalance(
            labour_id=member.id,
            labour_name=member.name,
            opening_balance=opening,
            total_credits=credits[index],
            total_debits=total_debits,
            closing_balance=opening + credits[index] - total_debits,
        ))
    return breakdown


def assemble_ledger(
    entity: EntityRef,
    wage_entries: Sequence[WageEntry],
    payments: Sequence[Payment],
    adjustments: Sequence[LedgerAdjustment],
    filters: Optional[LedgerFilters] = None,
) -> LedgerResult:
    """
    Merge posting streams into one ordered, balance-annotated ledger.

    Postings not scoped to the entity are ignored, so callers may pass
    organization-wide lists.

    Raises:
        LedgerConsistencyError: if summary totals disagree with the running balance
    """
    filters = filters or LedgerFilters()

    lines = [
        line for line in _collect_lines(entity, wage_entries, payments, adjustments)
        if _passes_kind_filters(line, filters)
    ]
    # Stable: same-day lines keep source order (wages, payments, adjustments)
    lines.sort(key=lambda line: line.entry.entry_date)

    brought_forward: list[_Line] = []
    window: list[_Line] = []
    for line in lines:
        if filters.date_from and line.entry.entry_date < filters.date_from:
            brought_forward.append(line)
        elif filters.date_to and line.entry.entry_date > filters.date_to:
            continue
        else:
            window.append(line)

    opening = sum((m.opening_balance for m in entity.members), ZERO)
    opening += sum((line.entry.amount for line in brought_forward), ZERO)

    opening_date = _opening_date(entity.members)
    if filters.date_from and filters.date_from > opening_date:
        opening_date = filters.date_from

    entries = [LedgerEntry(
        id=OPENING_ENTRY_ID,
        entry_date=opening_date,
        kind=LedgerEntryKind.OPENING,
        description=BROUGHT_FORWARD_DESCRIPTION if filters.date_from else OPENING_DESCRIPTION,
        amount=opening,
        running_balance=opening,
    )]

    running = opening
    for line in window:
        running += line.entry.amount
        entries.append(line.entry.model_copy(update={"running_balance": running}))

    total_credits = sum(
        (line.entry.amount for line in window if line.entry.kind == LedgerEntryKind.CREDIT), ZERO
    )
    total_debits = -sum(
        (line.entry.amount for line in window if line.entry.kind == LedgerEntryKind.DEBIT), ZERO
    )
    closing = opening + total_credits - total_debits

    if closing != entries[-1].running_balance:
        raise LedgerConsistencyError(
            f"Ledger for {entity.id} is inconsistent: summary closes at {closing} "
            f"but the running balance ends at {entries[-1].running_balance}."
        )

    breakdown = None
    if isinstance(entity, PairRef):
        breakdown = _member_breakdown(entity, brought_forward, window)

    return LedgerResult(
        entity_kind=entity.kind,
        entity_id=entity.id,
        entity_name=entity.name,
        entries=entries,
        summary=LedgerSummary(
            opening_balance=opening,
            total_credits=total_credits,
            total_debits=total_debits,
            closing_balance=closing,
            member_breakdown=breakdown,
        ),
    )
