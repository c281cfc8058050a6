"""Ledger construction and export package."""

from labour_ledger.ledger.builder import LedgerBuilder
from labour_ledger.ledger.compute import assemble_ledger
from labour_ledger.ledger.export import ledger_to_csv, ledger_to_rows

__all__ = ["LedgerBuilder", "assemble_ledger", "ledger_to_csv", "ledger_to_rows"]
