"""Read-side query package."""

from labour_ledger.queries.executor import LabourQueryExecutor, filter_labours

__all__ = ["LabourQueryExecutor", "filter_labours"]
