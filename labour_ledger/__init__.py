"""
Labour Ledger - Source Package

Workforce balance engine: worker and linked-pair registry, wage
distribution, and on-demand ledger reconstruction from wage postings,
payments and manual adjustments.

DESIGN PRINCIPLES:
1. Postings are the source of truth; ledgers are re-derived every time
2. Balances move through exactly one primitive (updateBalance)
3. Validate everything before the first write
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Labour Ledger Team"
