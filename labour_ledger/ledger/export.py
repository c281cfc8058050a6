"""
Ledger export: flat rows and CSV text.

Pure formatting over an already-built ledger; nothing here changes amounts.
"""

import csv
import io
from decimal import Decimal
from typing import Optional, Sequence

from labour_ledger.models.ledger import LedgerEntry, LedgerSummary

ROW_FIELDS = ["date", "type", "description", "member", "amount", "running_balance"]
CSV_HEADERS = ["Date", "Type", "Description", "Member", "Amount", "Running Balance"]


def _money(value: Decimal, currency_symbol: str = "") -> str:
    return f"{currency_symbol}{value:,.2f}" if currency_symbol else f"{value:.2f}"


def ledger_to_rows(
    entries: Sequence[LedgerEntry],
    summary: LedgerSummary,
    entity_name: str,
) -> list[dict[str, str]]:
    """
    One dict per ledger line plus a closing row.

    Amounts are plain two-decimal strings so spreadsheets parse them.
    """
    rows = [
        {
            "date": entry.entry_date.isoformat(),
            "type": entry.kind.value,
            "description": entry.description,
            "member": entry.member or "",
            "amount": _money(entry.amount),
            "running_balance": _money(entry.running_balance),
        }
        for entry in entries
    ]
    rows.append({
        "date": entries[-1].entry_date.isoformat() if entries else "",
        "type": "closing",
        "description": f"Closing balance - {entity_name}",
        "member": "",
        "amount": "",
        "running_balance": _money(summary.closing_balance),
    })
    return rows


def ledger_to_csv(
    entries: Sequence[LedgerEntry],
    summary: LedgerSummary,
    entity_name: str,
    currency_symbol: Optional[str] = None,
) -> str:
    """
    Export a ledger as CSV text: a summary block, a blank line, then the table.
    """
    symbol = currency_symbol or ""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow(["Ledger", entity_name])
    writer.writerow(["Opening Balance", _money(summary.opening_balance, symbol)])
    writer.writerow(["Total Credits", _money(summary.total_credits, symbol)])
    writer.writerow(["Total Debits", _money(summary.total_debits, symbol)])
    writer.writerow(["Closing Balance", _money(summary.closing_balance, symbol)])

    if summary.member_breakdown:
        for member in summary.member_breakdown:
            writer.writerow([
                f"Member: {member.labour_name}",
                _money(member.opening_balance, symbol),
                _money(member.total_credits, symbol),
                _money(member.total_debits, symbol),
                _money(member.closing_balance, symbol),
            ])

    writer.writerow([])
    writer.writerow(CSV_HEADERS)
    for row in ledger_to_rows(entries, summary, entity_name)[:-1]:
        writer.writerow([row[field] for field in ROW_FIELDS])

    return output.getvalue()
