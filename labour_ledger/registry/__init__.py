"""Labour registry package."""

from labour_ledger.registry.labour_registry import (
    LabourRegistry,
    apply_in_order,
    generate_labour_code,
    issues_from_pydantic,
)

__all__ = [
    "LabourRegistry",
    "apply_in_order",
    "generate_labour_code",
    "issues_from_pydantic",
]
